from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import uvicorn

from .core.config import settings
from .core.database import (
    connect_to_mongo_async, close_mongo_connection_async, get_database_async, is_database_healthy_async,
)
from .core.dependencies import get_email_service
from .core.logging_config import setup_logging
from .core.middleware import RequestLoggingMiddleware
from .domains.blood_requests.repository import BloodRequestRepository
from .domains.blood_requests.router import router as blood_router
from .domains.notifications.repository import NotificationRepository
from .domains.notifications.router import router as notifications_router
from .domains.users.repository import UserRepository
from .domains.users.router import router as users_router
from .shared.events.event_bus import EventBus, set_event_bus
from .shared.exceptions.handlers import (
    base_api_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler
)
from .shared.exceptions.custom_exceptions import BaseAPIException
from .shared.realtime import connection_manager

logger = logging.getLogger(__name__)


async def ensure_indexes() -> None:
    db = await get_database_async()
    for repository in (UserRepository(db), BloodRequestRepository(db), NotificationRepository(db)):
        await repository.ensure_indexes()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: storage, event bus and its consumer"""
    setup_logging()
    logger.info("Starting application...")

    try:
        await connect_to_mongo_async()
        await ensure_indexes()
    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        raise

    event_bus = EventBus(connection_manager, email_sender=get_email_service())
    if settings.event_bus_enabled:
        await event_bus.connect()
    else:
        logger.info("Event bus disabled, events are broadcast directly")
    set_event_bus(event_bus)
    event_bus.start_consumer()
    app.state.event_bus = event_bus

    logger.info("Application started")

    yield

    logger.info("Shutting down application...")
    try:
        await event_bus.close()
    except Exception as e:
        logger.error(f"Error closing event bus: {e}")
    set_event_bus(None)
    try:
        await close_mongo_connection_async()
    except Exception as e:
        logger.error(f"Error closing MongoDB connection: {e}")
    logger.info("Application stopped")


app = FastAPI(
    title="BloodLink API",
    description="""
    Blood donation matching service.

    Seekers post blood requests; available donors of the matching blood type
    are notified in the app and by email and can accept. Acceptances are
    pushed to connected clients over the `/ws` WebSocket.

    Every error response carries `success: false` and a top-level `message`.
    """,
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# specific handlers first, catch-all last
app.add_exception_handler(BaseAPIException, base_api_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(blood_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.websocket("/ws")
async def realtime_events(websocket: WebSocket):
    """Pushes blood-request-notification and donation-accepted-notification events"""
    await connection_manager.connect(websocket)
    try:
        while True:
            # clients do not send anything meaningful; reading detects disconnects
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        connection_manager.disconnect(websocket)


@app.get("/", tags=["Basic"], summary="Service information")
def root():
    return {
        "service": "BloodLink API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "api_v1": "/api/v1",
            "websocket": "/ws",
        },
    }


@app.get("/health", tags=["Basic"], summary="Service health")
async def health_check():
    """Database and broker status; the service stays up in broker fallback mode"""
    db_status = "connected" if await is_database_healthy_async() else "disconnected"

    event_bus = getattr(app.state, "event_bus", None)
    if event_bus is None:
        broker_status = "not started"
    elif await event_bus.is_healthy():
        broker_status = "connected"
    else:
        broker_status = "fallback"

    return {
        "status": "healthy" if db_status == "connected" else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_status,
        "broker": broker_status,
        "realtime_clients": len(connection_manager.active_connections),
        "version": "1.0.0",
    }


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
