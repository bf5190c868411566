"""Application configuration from environment variables."""
import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Order backend base URL (orders and push token endpoints live under it)
    api_url: str = "http://localhost:8080/api"
    api_timeout_seconds: float = 30

    # Order feed polling
    poll_interval_seconds: int = 30

    # Path for SQLite local storage (used if DATABASE_URL not set)
    data_path: str = "/data"

    # Database URL (optional - overrides the default SQLite file if set)
    database_url: str | None = None

    # Web server port for the kitchen display
    web_port: int = 8000

    # Origin of the display app, used to reuse open windows on notification click
    app_origin: str = "http://localhost:8000"

    # Notification presentation
    brand_name: str = "Kitchen Board"
    default_notification_body: str = "You have a new notification"
    notification_icon: str = "/logo192.png"
    notification_badge: str = "/badge72.png"

    # Web push registration
    vapid_key: str = ""
    service_worker_path: str = "/firebase-messaging-sw.js"

    # Native push registration
    token_exchange_delay_seconds: float = 0.5
    token_exchange_attempts: int = 2
    token_exchange_timeout_seconds: float = 5
    registration_timeout_seconds: float = 30

    # Swipe gestures (same unit as the display's drag coordinates)
    commit_threshold: float = 100
    feedback_max_offset: float = 150

    # Alert sound
    alert_sound_path: str = "/notification.mp3"
    alert_sound_seconds: float = 3.0
    alert_volume: float = 0.5
    # Successful polls a push-alerted order is remembered for
    push_dedup_ticks: int = 3

    # Board layout
    completed_column_limit: int = 5

    class Config:
        env_prefix = ""
        case_sensitive = False


settings = Settings()


def get_database_url() -> str:
    """Get the local storage database URL.

    Priority:
    1. DATABASE_URL environment variable
    2. Default SQLite in DATA_PATH
    """
    if settings.database_url:
        url = settings.database_url
        if url.startswith("sqlite://"):
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url

    db_path = os.path.join(settings.data_path, "kitchenboard.db")
    return f"sqlite+aiosqlite:///{db_path}"
