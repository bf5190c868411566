"""API routers."""
from .board import router as board_router
from .alerts import router as alerts_router
from .push import router as push_router

__all__ = ["board_router", "alerts_router", "push_router"]
