"""Services for push registration, order polling, alerting and status transitions."""
from .alerter import AlertCoordinator
from .backend_client import OrderBackendClient
from .background_handler import BackgroundDeliveryHandler, ReportedWindows
from .channel import NotificationChannel, create_channel
from .events import EventEmitter
from .gesture import GestureInterpreter
from .poller import OrderFeedPoller
from .state_machine import OrderStatusMachine
from .token_registry import TokenRegistry
from .token_sync import BackendTokenSync
from .websocket_manager import ConnectionManager

__all__ = [
    "AlertCoordinator",
    "OrderBackendClient",
    "BackgroundDeliveryHandler",
    "ReportedWindows",
    "NotificationChannel",
    "create_channel",
    "EventEmitter",
    "GestureInterpreter",
    "OrderFeedPoller",
    "OrderStatusMachine",
    "TokenRegistry",
    "BackendTokenSync",
    "ConnectionManager",
]
