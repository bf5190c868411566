"""Alert sound API."""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..board import KitchenBoard
from .deps import get_board

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


class MuteRequest(BaseModel):
    """Set the mute state, or toggle it when omitted."""
    muted: Optional[bool] = None


class AlertState(BaseModel):
    muted: bool
    sound_playing: bool
    alert_count: int


def _state(board: KitchenBoard) -> AlertState:
    return AlertState(
        muted=board.alerter.muted,
        sound_playing=board.sound.is_playing,
        alert_count=board.alerter.alert_count,
    )


@router.get("", response_model=AlertState)
async def get_alert_state(board: KitchenBoard = Depends(get_board)):
    return _state(board)


@router.post("/mute", response_model=AlertState)
async def set_mute(request: MuteRequest, board: KitchenBoard = Depends(get_board)):
    """Mute silences the sound only; alerts and badge counts keep coming."""
    if request.muted is None:
        board.alerter.toggle_mute()
    else:
        board.alerter.set_muted(request.muted)
    return _state(board)
