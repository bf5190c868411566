"""Kitchen board API - board view, refresh, swipes and quick actions."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..board import KitchenBoard
from ..errors import StatusUpdateFailed
from ..schemas.order import (
    BoardResponse,
    DragRequest,
    DragResponse,
    Order,
    StatusTransitionIntent,
    StatusUpdateRequest,
    StatusUpdateResponse,
    TransitionOrigin,
)
from ..services.state_machine import is_available
from .deps import get_board

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["board"])


class RefreshResponse(BaseModel):
    """Result of a forced poll."""
    health: str
    has_new_orders: bool
    new_order_ids: list
    error: str | None = None


class AutoRefreshRequest(BaseModel):
    enabled: bool


def _order_or_404(board: KitchenBoard, order_id: int) -> Order:
    order = board.find_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order #{order_id} is not on the board")
    return order


@router.get("/board", response_model=BoardResponse)
async def get_board_view(board: KitchenBoard = Depends(get_board)):
    """Get the current board, grouped by kitchen column."""
    return board.view()


@router.post("/board/refresh", response_model=RefreshResponse)
async def refresh_board(board: KitchenBoard = Depends(get_board)):
    """Poll the order backend now instead of waiting for the next tick.

    A failed poll is not an error here; it is reported through health.
    """
    result = await board.poller.refresh()
    return RefreshResponse(
        health=result.health.value,
        has_new_orders=result.has_new_orders,
        new_order_ids=sorted(result.new_ids),
        error=result.error,
    )


@router.post("/board/auto-refresh")
async def set_auto_refresh(request: AutoRefreshRequest, board: KitchenBoard = Depends(get_board)):
    """Pause or resume scheduled polling."""
    board.poller.set_auto_refresh(request.enabled)
    return {"auto_refresh": board.poller.auto_refresh}


@router.post("/orders/{order_id}/drag", response_model=DragResponse)
async def drag_order(
    order_id: int,
    request: DragRequest,
    board: KitchenBoard = Depends(get_board),
):
    """Report a swipe on an order card.

    While dragging, only the feedback intensity comes back. On release the
    swipe either commits the order's next status or snaps back.
    """
    order = _order_or_404(board, order_id)
    offset = board.gesture.clamp(request.offset)
    response = DragResponse(
        order_id=order_id,
        offset=offset,
        intensity=board.gesture.feedback_intensity(offset),
    )
    if not request.released:
        return response

    intent = board.gesture.release(order_id, order.status, offset)
    if intent is None:
        return response

    try:
        await board.apply(intent)
    except StatusUpdateFailed as e:
        raise HTTPException(status_code=502, detail=f"Status update did not take effect: {e.reason}")

    response.committed = True
    response.target_status = intent.target_status
    return response


@router.post("/orders/{order_id}/status", response_model=StatusUpdateResponse)
async def update_order_status(
    order_id: int,
    request: StatusUpdateRequest,
    board: KitchenBoard = Depends(get_board),
):
    """Quick action: move an order to one of the statuses offered for it."""
    order = _order_or_404(board, order_id)
    if not is_available(order.status, request.status):
        raise HTTPException(
            status_code=409,
            detail=f"{order.status.value} -> {request.status.value} is not offered for order #{order_id}",
        )

    intent = StatusTransitionIntent(
        order_id=order_id,
        target_status=request.status,
        origin=TransitionOrigin.ACTION,
    )
    try:
        await board.apply(intent)
    except StatusUpdateFailed as e:
        raise HTTPException(status_code=502, detail=f"Status update did not take effect: {e.reason}")

    return StatusUpdateResponse(
        success=True,
        order_id=order_id,
        status=request.status,
        origin=TransitionOrigin.ACTION,
    )
