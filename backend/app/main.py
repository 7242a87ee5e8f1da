"""Huddle Backend Application.

This is the main entry point for the Huddle chat service: a single chat
room for a handful of people, with shared history, typing indicators and
inline media.

Modules:
    - chat: Room coordinator and WebSocket endpoint
    - files: Media upload storage (disk + DuckDB metadata)
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.chat.manager import manager
from app.chat.router import router as chat_router
from app.config import get_config
from app.files.router import router as files_router
from app.files.service import FileStorageService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence per-request access noise; room events are logged by the app.
for _noisy in ("uvicorn.access", "multipart", "python_multipart"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in huddle.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    manager.reset(
        max_users=config.room.max_users,
        replay_count=config.room.history_replay_count,
        query_count=config.room.history_query_count,
    )
    FileStorageService.get_instance(
        upload_dir=config.uploads.upload_dir,
        db_path=config.uploads.db_path,
        max_file_size_bytes=config.uploads.max_file_size_bytes,
    )
    logger.info(
        f"Server running on http://{config.server.host}:{config.server.port} "
        f"(max users: {manager.max_users})"
    )

    yield  # Application runs here

    # Shutdown
    FileStorageService.reset_instance()
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Huddle API",
    description="Backend service for Huddle - a small, capacity-bounded chat room",
    version="0.1.0",
    lifespan=lifespan,
)

# Register all routers
app.include_router(chat_router)
app.include_router(files_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}


# The browser client is served as plain static files when present.
# Mounted last so the API routes above take precedence.
_static_dir = get_config().server.static_dir
if _static_dir and Path(_static_dir).is_dir():
    app.mount("/", StaticFiles(directory=_static_dir, html=True), name="static")


def run() -> None:
    """Run the server with uvicorn (``huddle`` console script)."""
    config = get_config()
    uvicorn.run(
        "app.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    run()
