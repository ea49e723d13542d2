"""Rooms chat backend application.

This is the main entry point for the two-person chat service: accounts,
rooms, message history and notifications over REST, plus a WebSocket
channel for real-time delivery.

Modules:
    - auth: registration, login and profile (JWT bearer tokens)
    - rooms: two-person rooms and participant checks
    - chat: WebSocket endpoint, connection manager, message pipeline
    - notifications: per-recipient notices and their REST surface
    - storage: DuckDB-backed persistence gateway
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.auth.router import router as auth_router
from app.chat.manager import manager
from app.chat.messages_router import router as messages_router
from app.chat.router import router as chat_router
from app.config import get_config
from app.errors import register_error_handlers
from app.notifications.router import router as notifications_router
from app.rooms.router import router as rooms_router
from app.storage import DuckDBStore, get_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
for _noisy in (
    "urllib3",
    "httpx",
    "httpcore",
    "websockets",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in rooms.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    get_store()
    logger.info(f"Store ready at {config.database.path}")
    logger.info(f"Server running on http://{config.server.host}:{config.server.port}")

    yield  # Application runs here

    # Shutdown
    manager.clear()
    DuckDBStore.reset_instance()
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Rooms API",
    description="Backend service for two-person real-time chat rooms",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register all routers
app.include_router(auth_router)
app.include_router(rooms_router)
app.include_router(messages_router)
app.include_router(notifications_router)
app.include_router(chat_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}
