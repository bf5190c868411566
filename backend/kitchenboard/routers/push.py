"""Push registration API endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..board import KitchenBoard
from ..errors import BackendRejected, NoToken, PermissionDenied, RegistrationFailed
from ..schemas.push import (
    NotificationState,
    PushPayload,
    PushStatusResponse,
    RenderedNotification,
    TokenRefreshRequest,
    TokenRegisterRequest,
    TokenSubmitRequest,
)
from ..services.background_handler import ReportedWindows
from ..services.channel import PermissionState
from .deps import get_board

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/push", tags=["push"])


class TokenResponse(BaseModel):
    """Response after storing or syncing a token."""
    success: bool
    message: str


class ForegroundResponse(BaseModel):
    """Whether a relayed foreground push raised an alert."""
    alerted: bool
    order_ids: list = []


class ClickRequest(PushPayload):
    """A notification click reported by the background worker, with its open windows."""
    open_windows: List[str] = Field(default_factory=list)


class ClickResponse(BaseModel):
    """Where the worker should send the user."""
    destination: str
    focus: Optional[str] = None
    open: Optional[str] = None


async def _initialize_channel(board: KitchenBoard) -> str:
    if board.channel is None:
        raise HTTPException(status_code=503, detail="No push channel configured for this display")
    try:
        return await board.channel.initialize()
    except PermissionDenied:
        raise HTTPException(
            status_code=403,
            detail="Notification permission denied - allow notifications and try again",
        )
    except RegistrationFailed as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/initialize", response_model=TokenResponse)
async def initialize_channel(board: KitchenBoard = Depends(get_board)):
    """Register this display with its platform push channel.

    The resulting token is stored locally before the response is sent.
    """
    await _initialize_channel(board)
    return TokenResponse(success=True, message=f"Registered for {board.channel.platform.value} push")


@router.post("/token", response_model=TokenResponse)
async def submit_token(
    request: TokenSubmitRequest,
    board: KitchenBoard = Depends(get_board),
):
    """Store a token produced by a display's own web push registration.

    It becomes the current token immediately and survives restarts.
    """
    await board.registry.store_token(request.token, request.platform)
    return TokenResponse(success=True, message="Token stored")


@router.post("/register", response_model=TokenResponse)
async def register_token(
    request: TokenRegisterRequest,
    board: KitchenBoard = Depends(get_board),
):
    """Register the current token with the order backend.

    Safe to call on every display start; the backend updates the existing
    record for a token instead of adding another.
    """
    try:
        await board.token_sync.register_with_backend(request.identity, request.is_admin)
    except NoToken:
        raise HTTPException(
            status_code=409,
            detail="No push token yet - enable notifications on this display first",
        )
    except BackendRejected as e:
        raise HTTPException(status_code=502, detail=f"Backend rejected the token: {e}")

    registry = "admin" if request.is_admin else "customer"
    return TokenResponse(success=True, message=f"Token registered with the {registry} registry")


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    request: TokenRefreshRequest,
    board: KitchenBoard = Depends(get_board),
):
    """Re-run channel registration, then re-register with the admin registry.

    The admin marker is only updated once the backend accepts the new token.
    """
    token = await _initialize_channel(board)
    try:
        await board.token_sync.register_with_backend(request.identity, True)
    except NoToken:
        raise HTTPException(status_code=409, detail="Registration produced no push token")
    except BackendRejected as e:
        raise HTTPException(status_code=502, detail=f"Failed to refresh token: {e}")

    logger.info(f"Admin token refreshed: {token[:16]}...")
    return TokenResponse(success=True, message="Token refreshed")


@router.post("/test", response_model=TokenResponse)
async def send_test_notification(board: KitchenBoard = Depends(get_board)):
    """Ask the backend to push a test notification to the admin registry."""
    try:
        await board.token_sync.send_test_notification()
    except NoToken:
        raise HTTPException(
            status_code=409,
            detail="No push token yet - enable notifications on this display first",
        )
    except BackendRejected as e:
        raise HTTPException(status_code=502, detail=f"Test notification failed: {e}")

    return TokenResponse(success=True, message="Test notification sent - check your device")


@router.post("/unregister", response_model=TokenResponse)
async def unregister_token(board: KitchenBoard = Depends(get_board)):
    """Forget the token locally and ask the backend to drop it.

    Local state is always cleared, even if the backend is unreachable.
    """
    acknowledged = await board.token_sync.unregister_from_backend()
    message = "Token unregistered" if acknowledged else "Token cleared locally; backend did not confirm"
    return TokenResponse(success=True, message=message)


@router.post("/foreground", response_model=ForegroundResponse)
async def foreground_push(
    payload: PushPayload,
    board: KitchenBoard = Depends(get_board),
):
    """Relay of a push the display received while open."""
    alert = await board.alerter.on_foreground_push(payload)
    if alert is None:
        return ForegroundResponse(alerted=False)
    return ForegroundResponse(alerted=True, order_ids=list(alert.order_ids))


@router.post("/background/render", response_model=RenderedNotification)
async def render_background_push(
    payload: PushPayload,
    board: KitchenBoard = Depends(get_board),
):
    """Notification a background worker should show for a push."""
    return board.background.render(payload)


@router.post("/background/click", response_model=ClickResponse)
async def route_notification_click(
    request: ClickRequest,
    board: KitchenBoard = Depends(get_board),
):
    """Decide whether a click focuses one of the worker's windows or opens a new one."""
    windows = ReportedWindows(request.open_windows)
    destination = await board.background.handle_click(request.data, windows)
    return ClickResponse(destination=destination, focus=windows.focused_url, open=windows.opened)


async def _notification_state(board: KitchenBoard, has_token: bool) -> tuple:
    """Whether push is supported here, and what the setup screen should show."""
    if board.channel is None:
        # Only a token submitted by the display itself can make push work here
        if has_token:
            return True, NotificationState.ENABLED
        return False, NotificationState.UNSUPPORTED
    if not board.channel.is_supported():
        return False, NotificationState.UNSUPPORTED

    permission = await board.channel.permission_status()
    if permission == PermissionState.DENIED:
        return True, NotificationState.DENIED
    if permission == PermissionState.GRANTED and has_token:
        return True, NotificationState.ENABLED
    return True, NotificationState.PROMPT


@router.get("/status", response_model=PushStatusResponse)
async def get_push_status(board: KitchenBoard = Depends(get_board)):
    """Local push registration state."""
    current = await board.registry.resolve()
    supported, state = await _notification_state(board, current is not None)
    return PushStatusResponse(
        platform=current.platform if current else None,
        is_native=current.platform.is_native if current else False,
        has_token=current is not None,
        admin_registered_at=board.registry.admin_registered_at,
        supported=supported,
        permission=state,
    )
