"""Notification channel adapters - platform push registration.

Two flows produce a deliverable token:

- Native (iOS/Android): the OS transport is asked to register and answers
  asynchronously through events. The device token it reports is exchanged for
  a delivery-service token; if that exchange keeps failing the raw device
  token is used instead, so delivery degrades rather than stops.
- Web: a background worker script is registered at a fixed path and a token
  scoped to that registration is requested with the public VAPID key. Any
  failure fails initialization.

Either way the token is stored in the TokenRegistry before initialize()
returns.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..config import settings
from ..errors import PermissionDenied, RegistrationFailed, TokenExchangeFailed
from ..schemas.push import Platform
from .events import EventEmitter, Listener, NativePushEvent, Subscription
from .token_registry import TokenRegistry

logger = logging.getLogger(__name__)


class PermissionState(str, Enum):
    """Notification permission as the platform reports it."""
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class ChannelEvent(str, Enum):
    """Events a channel re-emits to the application."""
    RECEIVED = "received"  # push arrived while foregrounded
    ACTION = "action"  # user tapped a delivered notification


@dataclass
class DeviceRegistration:
    """Payload of a NativePushEvent.REGISTRATION event."""
    value: str


@dataclass
class RegistrationError:
    """Payload of a NativePushEvent.REGISTRATION_ERROR event."""
    error: str


@dataclass
class WorkerRegistration:
    """A registered background worker."""
    scope: str
    script_url: str


class NativePushTransport(ABC):
    """OS push transport. Emits NativePushEvent events on `events` after register()."""

    events: EventEmitter

    @abstractmethod
    async def check_permissions(self) -> PermissionState:
        ...

    @abstractmethod
    async def request_permissions(self) -> PermissionState:
        ...

    @abstractmethod
    async def register(self) -> None:
        """Start OS registration. The outcome arrives as an event."""
        ...

    @abstractmethod
    async def exchange_token(self) -> str:
        """Exchange the registered device token for a delivery-service token."""
        ...


class WebPushTransport(ABC):
    """Browser push transport (service worker + messaging token)."""

    @abstractmethod
    def is_supported(self) -> bool:
        ...

    @abstractmethod
    async def permission_status(self) -> PermissionState:
        ...

    @abstractmethod
    async def request_permission(self) -> PermissionState:
        ...

    @abstractmethod
    async def register_worker(self, script_path: str) -> WorkerRegistration:
        ...

    @abstractmethod
    async def get_token(self, vapid_key: str, registration: WorkerRegistration) -> str:
        ...


class NotificationChannel(ABC):
    """Base adapter: permission first, then platform registration, then persist."""

    platform: Platform

    def __init__(self, registry: TokenRegistry):
        self._registry = registry
        self.events = EventEmitter(name=f"{self.__class__.__name__}")

    @abstractmethod
    def is_supported(self) -> bool:
        ...

    @abstractmethod
    async def permission_status(self) -> PermissionState:
        ...

    @abstractmethod
    async def request_permission(self) -> bool:
        ...

    @abstractmethod
    async def _register(self) -> str:
        ...

    async def initialize(self) -> str:
        """Obtain a delivery token.

        Raises:
            PermissionDenied: permission not granted; no registration attempted
            RegistrationFailed: transport could not produce a token
        """
        if not await self.request_permission():
            raise PermissionDenied("Push notification permission denied")

        token = await self._register()
        await self._registry.store_token(token, self.platform)
        return token

    def add_listener(self, event: ChannelEvent, listener: Listener) -> Subscription:
        return self.events.add_listener(event, listener)

    async def cleanup(self):
        """Drop all application listeners."""
        await self.events.remove_all_listeners()


class NativeNotificationChannel(NotificationChannel):
    """iOS/Android registration through the OS push transport."""

    def __init__(
        self,
        registry: TokenRegistry,
        transport: NativePushTransport,
        platform: Platform,
        exchange_delay: Optional[float] = None,
        exchange_attempts: Optional[int] = None,
        exchange_timeout: Optional[float] = None,
        registration_timeout: Optional[float] = None,
    ):
        if not platform.is_native:
            raise ValueError(f"{platform.value} is not a native platform")
        super().__init__(registry)
        self.platform = platform
        self._transport = transport
        self._exchange_delay = settings.token_exchange_delay_seconds if exchange_delay is None else exchange_delay
        self._exchange_attempts = max(1, exchange_attempts or settings.token_exchange_attempts)
        self._exchange_timeout = exchange_timeout or settings.token_exchange_timeout_seconds
        self._registration_timeout = registration_timeout or settings.registration_timeout_seconds
        self._forwarders: List[Subscription] = []

    def is_supported(self) -> bool:
        return True

    async def permission_status(self) -> PermissionState:
        return await self._transport.check_permissions()

    async def request_permission(self) -> bool:
        return await self._transport.request_permissions() == PermissionState.GRANTED

    def _ensure_forwarders(self):
        if self._forwarders:
            return
        transport_events = self._transport.events

        async def forward_received(notification):
            logger.info("Push notification received in foreground")
            await self.events.emit(ChannelEvent.RECEIVED, notification)

        async def forward_action(notification):
            logger.info("Push notification action performed")
            await self.events.emit(ChannelEvent.ACTION, notification)

        self._forwarders = [
            transport_events.add_listener(NativePushEvent.PUSH_RECEIVED, forward_received),
            transport_events.add_listener(NativePushEvent.ACTION_PERFORMED, forward_action),
        ]

    async def _exchange(self) -> str:
        try:
            token = await asyncio.wait_for(
                self._transport.exchange_token(),
                timeout=self._exchange_timeout,
            )
        except Exception as e:
            raise TokenExchangeFailed(str(e) or type(e).__name__) from e
        if not token:
            raise TokenExchangeFailed("empty delivery token")
        return token

    async def _exchange_or_fallback(self, device_token: str) -> str:
        for attempt in range(1, self._exchange_attempts + 1):
            # Give the OS-level registration time to propagate
            await asyncio.sleep(self._exchange_delay)
            try:
                token = await self._exchange()
                logger.info(f"Delivery token obtained: {token[:16]}...")
                return token
            except TokenExchangeFailed as e:
                logger.warning(
                    f"Token exchange failed (attempt {attempt}/{self._exchange_attempts}): {e}"
                )
        logger.error("Token exchange failed, falling back to device token")
        return device_token

    async def _register(self) -> str:
        loop = asyncio.get_running_loop()
        registered: asyncio.Future = loop.create_future()
        transport_events = self._transport.events
        # The first outcome event decides; anything after it is ignored
        outcome = {"seen": False}

        async def on_registration(registration: DeviceRegistration):
            if outcome["seen"]:
                logger.debug("Ignoring registration event after first outcome")
                return
            outcome["seen"] = True
            logger.info(f"Push registration success, device token: {registration.value[:16]}...")
            token = await self._exchange_or_fallback(registration.value)
            if not registered.done():
                registered.set_result(token)

        def on_error(error: RegistrationError):
            if outcome["seen"]:
                logger.warning(f"Ignoring push registration error after first outcome: {error.error}")
                return
            outcome["seen"] = True
            logger.error(f"Push registration error: {error.error}")
            if not registered.done():
                registered.set_exception(
                    RegistrationFailed(f"Failed to register for push notifications: {error.error}")
                )

        pending = [
            transport_events.add_listener(NativePushEvent.REGISTRATION, on_registration),
            transport_events.add_listener(NativePushEvent.REGISTRATION_ERROR, on_error),
        ]
        self._ensure_forwarders()

        try:
            try:
                await self._transport.register()
            except Exception as e:
                raise RegistrationFailed(f"Failed to register for push notifications: {e}") from e
            return await asyncio.wait_for(registered, timeout=self._registration_timeout)
        except asyncio.TimeoutError as e:
            raise RegistrationFailed("Push registration timed out") from e
        finally:
            for subscription in pending:
                await subscription.remove()

    async def cleanup(self):
        """Unsubscribe from the transport and drop application listeners."""
        for subscription in self._forwarders:
            await subscription.remove()
        self._forwarders = []
        await super().cleanup()


class WebNotificationChannel(NotificationChannel):
    """Browser registration through a background worker and VAPID key."""

    platform = Platform.WEB

    def __init__(
        self,
        registry: TokenRegistry,
        transport: WebPushTransport,
        vapid_key: Optional[str] = None,
        service_worker_path: Optional[str] = None,
    ):
        super().__init__(registry)
        self._transport = transport
        self._vapid_key = vapid_key if vapid_key is not None else settings.vapid_key
        self._service_worker_path = service_worker_path or settings.service_worker_path

    def is_supported(self) -> bool:
        return self._transport.is_supported()

    async def permission_status(self) -> PermissionState:
        if not self.is_supported():
            return PermissionState.DENIED
        return await self._transport.permission_status()

    async def request_permission(self) -> bool:
        if not self.is_supported():
            return False
        return await self._transport.request_permission() == PermissionState.GRANTED

    async def _register(self) -> str:
        try:
            registration = await self._transport.register_worker(self._service_worker_path)
            logger.info(f"Background worker registered: {registration.script_url}")
            token = await self._transport.get_token(self._vapid_key, registration)
        except Exception as e:
            logger.error(f"Web push initialization error: {e}")
            raise RegistrationFailed(f"Web push registration failed: {e}") from e

        if not token:
            raise RegistrationFailed("No delivery token issued")
        return token


def create_channel(
    platform: Platform,
    registry: TokenRegistry,
    native_transport: Optional[NativePushTransport] = None,
    web_transport: Optional[WebPushTransport] = None,
) -> NotificationChannel:
    """Pick the channel adapter for a platform."""
    if platform.is_native:
        if native_transport is None:
            raise ValueError(f"{platform.value} requires a native push transport")
        return NativeNotificationChannel(registry, native_transport, platform)
    if web_transport is None:
        raise ValueError("web requires a web push transport")
    return WebNotificationChannel(registry, web_transport)
