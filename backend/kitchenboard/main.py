"""Main FastAPI application for the kitchen display service."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .board import KitchenBoard
from .config import settings
from .database import async_session, init_db, close_db
from .routers import board_router, alerts_router, push_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    board: KitchenBoard = app.state.board
    logger.info(f"Starting Kitchen Board (backend={board.backend.base_url})")

    if app.state.manage_db:
        await init_db()

    await board.start()
    logger.info("Order polling started")

    yield

    await board.stop()
    if app.state.manage_db:
        await close_db()
    logger.info("Shutdown complete")


def create_app(board: Optional[KitchenBoard] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Pass a prebuilt board (e.g. with its own storage and backend) to run
    isolated instances; otherwise one is built on the default local storage.
    """
    app = FastAPI(
        title="Kitchen Board",
        description="Live kitchen order board with new-order alerts and swipe-to-advance",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.manage_db = board is None
    app.state.board = board or KitchenBoard(async_session)

    # CORS middleware for display clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(board_router)
    app.include_router(alerts_router)
    app.include_router(push_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "poll_health": app.state.board.poller.health.value,
        }

    @app.websocket("/ws")
    async def board_socket(websocket: WebSocket):
        connections = app.state.board.connections
        await connections.connect(websocket)
        try:
            while True:
                # Displays only listen; incoming text is ignored
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            await connections.disconnect(websocket)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
