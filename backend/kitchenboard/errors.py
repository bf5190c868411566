"""Error taxonomy for push registration, token sync, polling and status updates."""
from typing import Optional


class KitchenBoardError(Exception):
    """Base class for all kitchen board errors."""


class PermissionDenied(KitchenBoardError):
    """The user declined notification permission.

    Fatal for the session; no retry without a new user action.
    """


class RegistrationFailed(KitchenBoardError):
    """Push transport registration failed. Safe to retry on next foreground."""


class TokenExchangeFailed(KitchenBoardError):
    """Device token could not be exchanged for a delivery-service token.

    Native only. Recovered inside the channel adapter by falling back to the
    raw device token; never surfaced to callers.
    """


class NoToken(KitchenBoardError):
    """No current or persisted push token to sync."""


class BackendRejected(KitchenBoardError):
    """The order backend refused a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PollFailure(KitchenBoardError):
    """Fetching the order list failed during a poll tick."""


class StatusUpdateFailed(KitchenBoardError):
    """A status transition was not applied by the backend."""

    def __init__(self, order_id: int, status: str, reason: str):
        super().__init__(f"Order #{order_id} -> {status} failed: {reason}")
        self.order_id = order_id
        self.status = status
        self.reason = reason
