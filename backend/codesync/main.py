"""CodeSync Backend Application.

This is the main entry point for the CodeSync collaboration service.
Participants join named rooms over a WebSocket and edit a shared set of
text files; the server holds the authoritative copy of every room.

Modules:
    - rooms: room registry, per-room file store, inspection endpoint
    - membership: connection id -> display name tracking
    - gateway: WebSocket protocol, dispatch and fan-out
    - client: Python client that mirrors a room locally

Run with:
    uvicorn codesync.main:app --host 0.0.0.0 --port 5000
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codesync.config import get_config
from codesync.gateway.router import router as ws_router
from codesync.rooms.router import router as rooms_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# uvicorn's access log and the websockets library log every request,
# upgrade and handshake at INFO/DEBUG
for _noisy in ("uvicorn.access", "websockets", "websockets.client", "websockets.server"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in codesync.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    limit = config.session.max_participants
    logger.info(
        "CodeSync ready on %s:%s (max participants per room: %s)",
        config.server.host,
        config.server.port,
        limit if limit > 0 else "unlimited",
    )

    yield  # Application runs here

    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="CodeSync API",
    description="Real-time collaborative editing of shared files in rooms",
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

# Register all routers
app.include_router(ws_router)
app.include_router(rooms_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}
