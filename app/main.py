"""Main FastAPI application: the Talestolen relay"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import rooms
from api.schemas import HealthResponse
from app.dependencies import get_room_connections, get_room_registry
from core.config import get_settings
from core.logging_config import setup_logging
from core.utils import now_ms
from services.relay import run_garbage_collector

settings = get_settings()

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info(f"Starting {settings.app_name} relay v0.1.0")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Room TTL: {settings.room_ttl_minutes} min, GC every {settings.room_gc_interval_seconds}s")

    gc_task = asyncio.create_task(
        run_garbage_collector(get_room_registry(), settings.room_gc_interval_seconds)
    )

    yield

    gc_task.cancel()
    with suppress(asyncio.CancelledError):
        await gc_task
    logger.info(f"Shutting down {settings.app_name} relay")


app = FastAPI(
    title=settings.app_name,
    description="Speaker queue and timer state relay",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms.router)


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
        "environment": settings.app_env,
    }


@app.get("/health", tags=["Health"], response_model=HealthResponse)
async def health():
    """Health check endpoint"""
    return HealthResponse(
        ok=True,
        ts=now_ms(),
        rooms=len(get_room_registry()),
        connections=get_room_connections().count(),
    )


@app.get("/api", tags=["API"])
async def api_info():
    """API information"""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "endpoints": {
            "health": "/health",
            "docs": "/docs" if settings.debug else "disabled",
            "rooms": "/api/room",
            "websocket": "/ws/rooms/{room_id}",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
