"""Typed event emitter with per-listener unsubscribe handles.

Fan-out is best-effort: every listener is called, a failing listener is
logged and never prevents delivery to the ones after it.
"""
import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Union

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Union[None, Awaitable[None]]]


class NativePushEvent(str, Enum):
    """Signals a native push transport delivers after register()."""
    REGISTRATION = "registration"
    REGISTRATION_ERROR = "registrationError"
    PUSH_RECEIVED = "pushNotificationReceived"
    ACTION_PERFORMED = "pushNotificationActionPerformed"


class Subscription:
    """Handle returned by add_listener; removing it detaches exactly that listener."""

    def __init__(self, emitter: "EventEmitter", event: Hashable, listener: Listener):
        self._emitter = emitter
        self.event = event
        self.listener = listener
        self.active = True

    async def remove(self):
        """Detach the listener. Returns once the removal has completed."""
        await self._emitter._remove(self)


class EventEmitter:
    """Dispatches events to listeners registered per event key."""

    def __init__(self, name: str = "events"):
        self.name = name
        self._subscriptions: Dict[Hashable, List[Subscription]] = {}
        self._lock = asyncio.Lock()

    def add_listener(self, event: Hashable, listener: Listener) -> Subscription:
        """Register a listener (sync or async callable) for one event."""
        subscription = Subscription(self, event, listener)
        self._subscriptions.setdefault(event, []).append(subscription)
        return subscription

    async def _remove(self, subscription: Subscription):
        async with self._lock:
            listeners = self._subscriptions.get(subscription.event, [])
            if subscription in listeners:
                listeners.remove(subscription)
            subscription.active = False

    async def remove_all_listeners(self):
        """Detach every listener for every event."""
        async with self._lock:
            for listeners in self._subscriptions.values():
                for subscription in listeners:
                    subscription.active = False
            self._subscriptions.clear()

    def listener_count(self, event: Optional[Hashable] = None) -> int:
        if event is not None:
            return len(self._subscriptions.get(event, []))
        return sum(len(listeners) for listeners in self._subscriptions.values())

    async def emit(self, event: Hashable, data: Any = None) -> int:
        """Deliver an event to all its listeners.

        Returns the number of listeners that handled it without raising.
        """
        # Copy so listeners may unsubscribe while being called
        subscriptions = list(self._subscriptions.get(event, []))

        delivered = 0
        for subscription in subscriptions:
            if not subscription.active:
                continue
            try:
                result = subscription.listener(data)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(f"{self.name}: listener for {event!s} failed: {e}")
        return delivered
