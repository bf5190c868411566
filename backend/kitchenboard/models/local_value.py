"""LocalValue model - client-local key/value storage that survives restarts."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime

from ..database import Base


class LocalValue(Base):
    """A persisted value keyed by a fixed name."""

    __tablename__ = "local_values"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Fixed storage keys. Changing them orphans state from existing installs.
PUSH_TOKEN_KEY = "push_token"
PUSH_PLATFORM_KEY = "push_platform"
ADMIN_REGISTERED_AT_KEY = "admin_fcm_registered_at"
