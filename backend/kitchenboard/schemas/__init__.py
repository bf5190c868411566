"""Pydantic schemas for orders, push payloads and API request/response models."""
from .order import (
    OrderStatus,
    TransitionOrigin,
    Order,
    StatusTransitionIntent,
    QuickAction,
    BoardOrder,
    BoardColumns,
    BoardResponse,
    DragRequest,
    DragResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from .push import (
    Platform,
    PushToken,
    PushPayload,
    RenderedNotification,
    TokenSubmitRequest,
    TokenRegisterRequest,
    PushStatusResponse,
)

__all__ = [
    "OrderStatus",
    "TransitionOrigin",
    "Order",
    "StatusTransitionIntent",
    "QuickAction",
    "BoardOrder",
    "BoardColumns",
    "BoardResponse",
    "DragRequest",
    "DragResponse",
    "StatusUpdateRequest",
    "StatusUpdateResponse",
    "Platform",
    "PushToken",
    "PushPayload",
    "RenderedNotification",
    "TokenSubmitRequest",
    "TokenRegisterRequest",
    "PushStatusResponse",
]
