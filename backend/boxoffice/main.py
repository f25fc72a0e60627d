"""
Box Office Reservations API - Main Application Entry Point

Seat reservation core for theatre performances:
- Compare-and-swap seat status transitions, no double holds or double sales
- All-or-nothing, time-boxed holds with lazy and periodic expiry
- Atomic hold -> booking finalization
- External seat ids ("premium-3-7") resolved per show
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from boxoffice.core.config import get_settings
from boxoffice.core.logging import setup_logging, get_logger
from boxoffice.core.metrics import metrics_endpoint
from boxoffice.api.errors import register_exception_handlers
from boxoffice.api.router import api_router
from boxoffice.api.middleware import RequestLoggingMiddleware
from boxoffice.db.session import AsyncSessionLocal
from boxoffice.services.cache_service import get_redis, close_redis, get_cache_stats
from boxoffice.services.hold_sweeper import HoldSweeper

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without seat map cache")

    sweeper = HoldSweeper(AsyncSessionLocal, settings=settings)
    if settings.HOLD_SWEEP_ENABLED:
        sweeper.start()

    yield

    await sweeper.stop()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Seat reservation API with concurrency-safe holds and bookings",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router)
app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Health"], include_in_schema=False)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
