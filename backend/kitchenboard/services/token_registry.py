"""Token registry - owns the current push token and its persisted copy."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models.local_value import PUSH_TOKEN_KEY, PUSH_PLATFORM_KEY, ADMIN_REGISTERED_AT_KEY
from ..schemas.push import Platform, PushToken
from .local_store import LocalStore

logger = logging.getLogger(__name__)


@dataclass
class RegistryState:
    """Mutable registry state; only TokenRegistry writes it."""
    token: Optional[str] = None
    platform: Optional[Platform] = None
    is_admin: bool = False
    admin_registered_at: Optional[str] = None


class TokenRegistry:
    """Holds at most one current token per session and persists it immediately."""

    def __init__(self, store: LocalStore):
        self._store = store
        self._state = RegistryState()

    @property
    def current(self) -> Optional[PushToken]:
        """Copy of the current token, or None."""
        if not self._state.token or not self._state.platform:
            return None
        return PushToken(
            token=self._state.token,
            platform=self._state.platform,
            is_admin=self._state.is_admin,
        )

    @property
    def admin_registered_at(self) -> Optional[str]:
        return self._state.admin_registered_at

    async def store_token(self, token: str, platform: Platform) -> PushToken:
        """Make a token current and persist it before returning."""
        self._state.token = token
        self._state.platform = platform
        self._state.is_admin = False
        await self._store.set(PUSH_TOKEN_KEY, token)
        await self._store.set(PUSH_PLATFORM_KEY, platform.value)
        logger.info(f"Push token stored ({platform.value}): {token[:16]}...")
        return self.current

    async def load(self) -> Optional[PushToken]:
        """Recover a persisted token into memory (e.g. after a restart)."""
        token = await self._store.get(PUSH_TOKEN_KEY)
        platform = await self._store.get(PUSH_PLATFORM_KEY)
        self._state.admin_registered_at = await self._store.get(ADMIN_REGISTERED_AT_KEY)
        if not token:
            return None
        try:
            self._state.platform = Platform(platform) if platform else Platform.WEB
        except ValueError:
            logger.warning(f"Unknown persisted push platform {platform!r}, assuming web")
            self._state.platform = Platform.WEB
        self._state.token = token
        logger.info(f"Loaded persisted push token ({self._state.platform.value}): {token[:16]}...")
        return self.current

    async def resolve(self) -> Optional[PushToken]:
        """Current token, falling back to the persisted one."""
        return self.current or await self.load()

    async def mark_admin_registered(self, when: Optional[datetime] = None) -> str:
        """Persist the admin registration marker."""
        stamp = (when or datetime.utcnow()).isoformat()
        self._state.is_admin = True
        self._state.admin_registered_at = stamp
        await self._store.set(ADMIN_REGISTERED_AT_KEY, stamp)
        return stamp

    async def clear(self):
        """Forget the token in memory and in storage."""
        self._state = RegistryState()
        await self._store.remove(PUSH_TOKEN_KEY, PUSH_PLATFORM_KEY, ADMIN_REGISTERED_AT_KEY)
        logger.info("Push token cleared")
