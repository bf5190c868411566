"""Push token and push payload schemas."""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Platform(str, Enum):
    """Delivery channel platform."""
    WEB = "web"
    IOS = "ios"
    ANDROID = "android"

    @property
    def is_native(self) -> bool:
        return self is not Platform.WEB


class PushToken(BaseModel):
    """The current delivery token and what it was registered as."""
    token: str
    platform: Platform
    is_admin: bool = False


class PushNotificationContent(BaseModel):
    """Visible part of a push payload."""
    title: Optional[str] = None
    body: Optional[str] = None


class PushPayload(BaseModel):
    """Inbound push message.

    The data map is strings only on the wire; anything else is coerced so
    consumers never rely on numeric or boolean types surviving transport.
    """
    notification: Optional[PushNotificationContent] = None
    data: Dict[str, str] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def coerce_data_to_strings(cls, value):
        if value is None:
            return {}
        coerced = {}
        for key, item in dict(value).items():
            if item is None:
                continue
            if isinstance(item, bool):
                item = "true" if item else "false"
            coerced[str(key)] = str(item)
        return coerced

    @property
    def title(self) -> Optional[str]:
        return self.notification.title if self.notification else None

    @property
    def body(self) -> Optional[str]:
        return self.notification.body if self.notification else None

    @property
    def order_id(self) -> Optional[str]:
        return self.data.get("orderId") or None


class NotificationAction(BaseModel):
    """Action button on a rendered notification."""
    action: str
    title: str


class RenderedNotification(BaseModel):
    """A notification ready for the platform's show-notification call."""
    title: str
    body: str
    icon: str
    badge: str
    tag: str
    data: Dict[str, str] = Field(default_factory=dict)
    actions: List[NotificationAction] = Field(default_factory=list)
    vibrate: List[int] = Field(default_factory=lambda: [100, 50, 100])
    require_interaction: bool = False


class TokenSubmitRequest(BaseModel):
    """A token obtained by a client-side web registration."""
    token: str
    platform: Platform = Platform.WEB


class TokenRegisterRequest(BaseModel):
    """Request to sync the current token with the order backend."""
    identity: str
    is_admin: bool = False


class NotificationState(str, Enum):
    """What the admin setup screen shows for this display."""
    UNSUPPORTED = "unsupported"
    DENIED = "denied"
    PROMPT = "prompt"
    ENABLED = "enabled"


class TokenRefreshRequest(BaseModel):
    """Request to re-run registration and re-register with the admin registry."""
    identity: str


class PushStatusResponse(BaseModel):
    """Local push registration state."""
    platform: Optional[Platform] = None
    is_native: bool = False
    has_token: bool
    admin_registered_at: Optional[str] = None
    supported: bool = False
    permission: NotificationState = NotificationState.UNSUPPORTED
