"""Backend token sync - registers and unregisters the current token."""
import asyncio
import logging

import httpx

from ..errors import NoToken
from .backend_client import OrderBackendClient
from .token_registry import TokenRegistry

logger = logging.getLogger(__name__)


class BackendTokenSync:
    """Keeps the order backend's token registries in step with the local token."""

    def __init__(self, registry: TokenRegistry, backend: OrderBackendClient):
        self._registry = registry
        self._backend = backend

    async def register_with_backend(self, identity: str, is_admin: bool = False) -> dict:
        """Register the current token for an identity.

        Safe to call on every foreground: the backend upserts on token, so a
        repeated call refreshes the record instead of duplicating it.

        Raises:
            NoToken: no current or persisted token
            BackendRejected: backend refused or was unreachable
        """
        push_token = await self._registry.resolve()
        if push_token is None:
            raise NoToken("No push token available")

        ack = await self._backend.register_token(push_token, identity, is_admin)

        if is_admin:
            await self._registry.mark_admin_registered()
        return ack

    async def send_test_notification(self) -> dict:
        """Have the backend push a test notification to the admin registry.

        Raises:
            NoToken: this display has no token to receive it
            BackendRejected: backend refused or was unreachable
        """
        if await self._registry.resolve() is None:
            raise NoToken("No push token available")
        return await self._backend.send_test_notification("admin")

    async def unregister_from_backend(self) -> bool:
        """Ask the backend to forget the token, then clear local state regardless.

        Returns True if the backend acknowledged the removal.
        """
        acknowledged = False
        try:
            push_token = await self._registry.resolve()
            if push_token is not None:
                acknowledged = await self._backend.unregister_token(push_token.token)
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not unregister token from backend: {e}")
        except Exception as e:
            logger.error(f"Error unregistering token: {e}")
        finally:
            await self._registry.clear()
        return acknowledged
