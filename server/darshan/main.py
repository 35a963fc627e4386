"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .core.clock import utcnow
from .core.config import settings
from .core.database import async_session_factory, close_db, init_db, open_session
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    request_validation_handler,
    store_error_handler,
)
from .core.middleware import setup_middleware
from .core.observability import (
    SERVICE_NAME,
    SERVICE_VERSION,
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .realtime.feed import ChangeFeed
from .routers import (
    booking,
    crowd,
    emergency,
    health,
    metrics,
    notification,
    parking,
    payment,
    queue,
    realtime,
    traffic,
    weather,
)
from .workers.manager import worker_manager

# Mounted under /v1 in this order; health and metrics wrap them
FEATURE_ROUTERS = (booking, queue, crowd, parking, traffic, weather, payment, notification, emergency, realtime)

setup_structured_logging()
# Services and routers log through stdlib logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan of the darshan API.

    Sets up observability, creates tables and runs the background
    workers for the lifetime of the application.
    """
    logger.info("Starting Smart Darshan API", extra={"environment": settings.environment})

    setup_tracing()
    setup_metrics()
    instrument_sqlalchemy()

    await init_db()
    logger.info("Database initialized")

    if settings.enable_workers:
        await worker_manager.start_all()

    yield

    logger.info("Shutting down Smart Darshan API")
    try:
        await worker_manager.stop_all()
    finally:
        await close_db()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    The change feed and session factory are created here rather than
    in the lifespan so the app is usable without running it.
    """
    app = FastAPI(
        title="Smart Darshan API",
        description="Temple visit management: bookings, live queue positions, crowd levels and forecasts, "
                    "parking, traffic, weather impact, UPI payments and emergency alerts",
        version=SERVICE_VERSION,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.change_feed = ChangeFeed(queue_size=settings.realtime_queue_size)
    app.state.session_factory = async_session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    setup_middleware(app, enable_logging=True)

    instrument_fastapi(app)

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get(
        "/health",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Health Check",
        response_model=dict,
    )
    async def health_check():
        """Liveness: the process is up and serving requests."""
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.environment,
            "timestamp": utcnow().isoformat(),
        }

    @app.get(
        "/ready",
        tags=["Health"],
        summary="Readiness Check",
        description="Check that the database answers and report live subscriptions",
        response_model=dict,
    )
    async def readiness_check():
        """Readiness: 200 when the database answers, 503 otherwise."""
        database = "ok"
        try:
            async with open_session(app.state.session_factory) as db:
                await db.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Readiness check failed", extra={"error": str(e)})
            database = "unavailable"

        ready = database == "ok"
        return JSONResponse(
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ready" if ready else "not_ready",
                "service": SERVICE_NAME,
                "checks": {
                    "database": database,
                    "workers": worker_manager.get_worker_status(),
                    "realtime_subscribers": app.state.change_feed.subscriber_count(),
                },
            },
        )

    @app.get("/info", tags=["Info"], summary="Service Information", response_model=dict)
    async def service_info():
        """Service identity, enabled integrations and the mounted feature areas."""
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "environment": settings.environment,
            "features": {
                "authentication": True,
                "realtime": True,
                "tracing": bool(settings.otlp_endpoint),
                "payment_expiry": settings.enable_workers,
                "weather_provider": settings.weather_api_url,
            },
            "areas": [r.router.prefix for r in FEATURE_ROUTERS],
        }

    for module in (health, *FEATURE_ROUTERS, metrics):
        app.include_router(module.router)

    logger.info("Smart Darshan API configured", extra={"routers": len(FEATURE_ROUTERS)})
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "darshan.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
