"""Background delivery handler - renders pushes and routes notification clicks.

Runs in the background worker runtime, outside the live display, and is
driven only by inbound push payloads. Rendering never fails on missing
optional fields.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Mapping, Optional
from urllib.parse import urlsplit

from ..config import settings
from ..schemas.push import NotificationAction, PushPayload, RenderedNotification

logger = logging.getLogger(__name__)

DEFAULT_TAG = "default"


class WindowClient(ABC):
    """An open application window the worker can control."""

    url: str

    @abstractmethod
    async def focus(self) -> None:
        ...

    @abstractmethod
    async def navigate(self, url: str) -> None:
        ...


class WindowClients(ABC):
    """The worker's view of application windows."""

    @abstractmethod
    async def match_all(self) -> List[WindowClient]:
        """All window clients, including uncontrolled ones."""
        ...

    @abstractmethod
    async def open_window(self, url: str) -> Optional[WindowClient]:
        ...


def click_destination(data: Optional[Mapping[str, str]]) -> str:
    """Where a notification click should land.

    Order id wins over an explicit url; with neither, the app root.
    """
    data = data or {}
    order_id = data.get("orderId")
    if order_id:
        return f"/order-status/{order_id}"
    url = data.get("url")
    if url:
        return url
    return "/"


class BackgroundDeliveryHandler:
    """Turns push payloads into notifications and clicks into navigation."""

    def __init__(
        self,
        app_origin: Optional[str] = None,
        brand_name: Optional[str] = None,
        default_body: Optional[str] = None,
    ):
        self.app_origin = app_origin or settings.app_origin
        self.brand_name = brand_name or settings.brand_name
        self.default_body = default_body or settings.default_notification_body

    def render(self, payload: PushPayload) -> RenderedNotification:
        """Build the notification for a background message."""
        data = payload.data
        return RenderedNotification(
            title=payload.title or self.brand_name,
            body=payload.body or self.default_body,
            icon=settings.notification_icon,
            badge=settings.notification_badge,
            tag=data.get("tag") or DEFAULT_TAG,
            data=dict(data),
            actions=[NotificationAction(action="open", title="View Order")],
            require_interaction=data.get("requireInteraction") == "true",
        )

    def _matches_origin(self, url: str) -> bool:
        app = urlsplit(self.app_origin)
        candidate = urlsplit(url)
        return (candidate.scheme, candidate.netloc) == (app.scheme, app.netloc)

    async def handle_click(self, data: Optional[Mapping[str, str]], clients: WindowClients) -> str:
        """Focus and navigate an open app window, or open one if none is open.

        Returns the destination path.
        """
        destination = click_destination(data)

        for client in await clients.match_all():
            if self._matches_origin(client.url):
                await client.focus()
                await client.navigate(destination)
                logger.info(f"Reused open window for {destination}")
                return destination

        await clients.open_window(destination)
        logger.info(f"Opened new window for {destination}")
        return destination


class ReportedWindow(WindowClient):
    """A window listed by a worker that asks the service to route a click."""

    def __init__(self, url: str):
        self.url = url
        self.focused = False
        self.navigated_to: Optional[str] = None

    async def focus(self) -> None:
        self.focused = True

    async def navigate(self, url: str) -> None:
        self.navigated_to = url


class ReportedWindows(WindowClients):
    """Window list sent by a worker; records what the handler chose to do."""

    def __init__(self, urls: List[str]):
        self.windows = [ReportedWindow(url) for url in urls]
        self.opened: Optional[str] = None

    async def match_all(self) -> List[WindowClient]:
        return list(self.windows)

    async def open_window(self, url: str) -> Optional[WindowClient]:
        self.opened = url
        return None

    @property
    def focused_url(self) -> Optional[str]:
        for window in self.windows:
            if window.focused:
                return window.url
        return None
