import asyncio
from contextlib import asynccontextmanager
from typing import Optional
import uuid

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from backend import RoomRegistry
from connections import ConnectionManager
from constants import (
    CORS_ORIGINS,
    EMPTY_ROOM_CLEANUP_SECONDS,
    IDLE_ROOM_THRESHOLD_SECONDS,
    IDLE_SWEEP_INTERVAL_SECONDS,
    LOG_FILE,
    LOG_LEVEL,
)
from execution import ExecutionBridge, PistonClient
from logging_config import get_logger, setup_logging
from reaper import CleanupScheduler, IdleReaper
from routers.rooms import rooms_router
from session import SessionController

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(
    registry: Optional[RoomRegistry] = None,
    execution_client=None,
    cleanup_delay_seconds: float = EMPTY_ROOM_CLEANUP_SECONDS,
    idle_threshold_seconds: float = IDLE_ROOM_THRESHOLD_SECONDS,
    idle_sweep_interval_seconds: float = IDLE_SWEEP_INTERVAL_SECONDS,
) -> FastAPI:
    registry = registry if registry is not None else RoomRegistry()
    connections = ConnectionManager()
    scheduler = CleanupScheduler(registry, delay_seconds=cleanup_delay_seconds)
    reaper = IdleReaper(registry, threshold_seconds=idle_threshold_seconds, interval_seconds=idle_sweep_interval_seconds)
    bridge = ExecutionBridge(execution_client or PistonClient())
    controller = SessionController(registry, connections, bridge, scheduler)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        reaper.start()
        yield
        await reaper.stop()
        await controller.drain()
        await scheduler.shutdown()
        logger.info("Collaboration server shut down")

    app = FastAPI(title="CodeSync", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry
    app.state.connections = connections
    app.state.scheduler = scheduler
    app.state.reaper = reaper
    app.state.controller = controller

    app.include_router(rooms_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """One socket per client. Room and user are bound later by a `join` event."""
        connection_id = str(uuid.uuid4())
        await websocket.accept()
        connections.register(connection_id, websocket)
        writer_task = asyncio.create_task(connections.run_writer(connection_id))
        controller.connect(connection_id)
        logger.info(f"User Connected {connection_id}")

        try:
            message_count = 0
            while True:
                data = await websocket.receive_text()
                message_count += 1
                logger.debug(f"Received message #{message_count} from connection {connection_id}")
                await controller.handle_frame(connection_id, data)
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected normally for connection {connection_id}")
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
        finally:
            # Synchronous so a cancelled handler still broadcasts the leave
            connections.unregister(connection_id)
            controller.disconnect(connection_id)
            writer_task.cancel()

    logger.info("FastAPI application initialized")
    return app


app = create_app()
