"""FastAPI WebSocket server for Crazy Eights rooms."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
import sentry_sdk
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from config import config
from handlers import HANDLERS, ConnectionContext
from logging_config import bind_context, setup_logging
from models.messages import RoomSummary, parse_client_message
from room import Connection, RoomManager
from routers.health import router as health_router
from routers.health import set_health_dependencies

# Initialize Sentry if configured
if config.SENTRY_DSN:
    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.ENVIRONMENT,
        traces_sample_rate=0.1 if config.ENVIRONMENT == "production" else 1.0,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
    )
    logging.getLogger(__name__).info("Sentry error tracking initialized")

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


room_manager = RoomManager()
_redis_client: Optional[redis.Redis] = None


async def _init_redis():
    """Connect to Redis for readiness checks."""
    global _redis_client
    try:
        _redis_client = redis.from_url(config.REDIS_URL, decode_responses=False)
        await _redis_client.ping()
        logger.info("Redis client connected")
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}")
        _redis_client = None


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for room in list(room_manager.rooms.values()):
        for peer in room.players.values():
            peer.connection.close()
            try:
                await peer.connection.websocket.close(code=1001, reason="Server shutting down")
            except Exception:
                pass
    logger.info("All WebSocket connections closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    if config.REDIS_URL:
        await _init_redis()

    set_health_dependencies(
        redis_client=_redis_client,
        room_manager=room_manager,
    )

    logger.info(f"Crazy Eights server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _close_all_websockets()
    room_manager.rooms.clear()
    if _redis_client:
        await _redis_client.close()
        logger.info("Redis connection closed")
    logger.info("Shutdown complete")


app = FastAPI(
    title="Crazy Eights",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health_router)


@app.get("/api/rooms", response_model=list[RoomSummary])
async def list_rooms():
    """Public rooms with at least one player."""
    async with room_manager.lock:
        return room_manager.room_list()


@app.websocket("/ws/crazy-eights")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection = Connection(websocket=websocket)
    ctx = ConnectionContext(connection=connection)
    bind_context(connection.connection_id)
    logger.debug(f"WebSocket connected as {connection.connection_id}")

    pump = asyncio.create_task(connection.pump())

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                logger.debug("Dropped non-JSON frame")
                continue
            try:
                message = parse_client_message(data)
            except ValidationError as e:
                logger.debug(f"Dropped invalid message: {e.error_count()} errors")
                continue
            handler = HANDLERS.get(message.type)
            if handler:
                await handler(message, ctx, room_manager=room_manager)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection.connection_id} disconnected")
    finally:
        async with room_manager.lock:
            room_manager.handle_disconnect(connection)
        connection.close()
        await pump


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Crazy Eights server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
