"""Composer Upload Service.

Hosts upload sessions behind HTTP and WebSocket endpoints so an editor can
drive the upload coordinator remotely.

Modules:
    - session: session manager, registry and router
    - routing: validation and upload handler routing
    - preprocessing: stage pipeline run before transfer
    - document: placeholder spans and auto-grid in the document buffer
    - reporting: buffered upload errors
    - transport: plain multipart transfer over httpx

Run with:
    uvicorn composer_upload.main:app --app-dir backend
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from composer_upload.config import get_config
from composer_upload.session.router import get_registry, router as uploads_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# httpx/httpcore log every TCP connection and request
for _noisy in (
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    registry = get_registry()
    logger.info(
        f"Upload service ready on http://{config.server.host}:{config.server.port} "
        f"(storage endpoint {config.transport.base_url}{config.transport.endpoint})"
    )

    yield  # Application runs here

    # Shutdown
    await registry.close_all()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Composer Upload API",
    description="Upload session coordinator for the rich-text composer",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(uploads_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}
