"""
FastAPI application entry point.

Configures the application with:
- Lifespan handlers for store hydration, the persistence mirror and the LPR auto-scanner
- Domain exception handlers
- CORS middleware
- Correlation ID middleware
- Health and readiness probes
- API routes
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from vims.api import api_router
from vims.application.container import Services, build_services
from vims.application.lpr import LprAutoScanner
from vims.application.store import Store
from vims.core.config import get_settings
from vims.core.logging import get_correlation_id, get_logger, set_correlation_id, setup_logging
from vims.domain.errors import (
    BlacklistedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from vims.domain.models import LprMode
from vims.infrastructure.db.session import close_db, get_session_factory, init_db
from vims.infrastructure.ml.ocr import CameraSource
from vims.infrastructure.notify import EmailNotifier
from vims.infrastructure.persistence import PersistenceMirror

# Initialize logging
setup_logging()
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str = "1.0.0"


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: str
    persistence_enabled: bool
    mirror_running: bool
    auto_scan_running: bool


def build_lifespan(preset: Services | None = None):
    """
    Application lifespan manager.

    With ``preset`` services the application serves them as-is and owns
    no background workers.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.mirror = None
        app.state.scanner = None

        if preset is not None:
            app.state.services = preset
            yield
            return

        settings = get_settings()
        logger.info("application_starting")

        mirror: PersistenceMirror | None = None
        try:
            if settings.persistence_enabled:
                await init_db()
                logger.info("database_initialized")
                mirror = PersistenceMirror(get_session_factory())

            store = Store(mirror=mirror, timezone=settings.timezone)
            if mirror is not None:
                await store.hydrate(mirror.load)
                await mirror.start()
        except Exception as e:
            logger.error("startup_failed", error=str(e))
            raise

        notifier = EmailNotifier(
            settings.notify_endpoint,
            settings.notify_from,
            timeout=settings.notify_timeout_seconds,
        )
        services = build_services(settings, store, notifier)
        services.vips.refresh_expired()

        scanner: LprAutoScanner | None = None
        if settings.lpr_camera_source:
            source = settings.lpr_camera_source
            scanner = LprAutoScanner(
                services.lpr,
                services.plate_reader,
                camera_factory=lambda: CameraSource(source),
                mode=LprMode(settings.lpr_auto_scan_mode),
                interval=settings.lpr_auto_scan_interval_seconds,
                cooldown=settings.lpr_scan_cooldown_seconds,
            )
            await scanner.start()

        app.state.services = services
        app.state.mirror = mirror
        app.state.scanner = scanner
        logger.info("application_started", persistence=mirror is not None, auto_scan=scanner is not None)

        yield

        # Shutdown
        logger.info("application_shutting_down")
        if scanner is not None:
            await scanner.stop()
        await notifier.aclose()
        if mirror is not None:
            await mirror.stop()
        await close_db()
        logger.info("application_shutdown_complete")

    return lifespan


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": exc.message, "errors": exc.errors},
        )

    @app.exception_handler(BlacklistedError)
    async def blacklisted_handler(request: Request, exc: BlacklistedError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": exc.message, "reason": exc.reason},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message},
        )

    @app.exception_handler(InvalidTransitionError)
    async def transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message},
        )


def create_app(services: Services | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        services: Pre-built services to serve instead of wiring them at startup.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Visitor Management & Access Control",
        description="Visitor registration, checkpoint access decisions and LPR gate control",
        version="1.0.0",
        lifespan=build_lifespan(services),
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else ["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Add correlation ID to each request."""
        set_correlation_id(request.headers.get("X-Correlation-ID"))
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = get_correlation_id()
        return response

    register_exception_handlers(app)

    # Health check endpoints
    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
    )
    async def health_check() -> HealthResponse:
        """
        Basic liveness probe.

        Returns 200 if the application is running.
        """
        return HealthResponse(status="healthy")

    @app.get(
        "/ready",
        response_model=ReadinessResponse,
        tags=["health"],
    )
    async def readiness_check(request: Request) -> ReadinessResponse:
        """
        Readiness probe.

        Returns 503 while persistence is enabled but the mirror is not running.
        """
        mirror = getattr(request.app.state, "mirror", None)
        scanner = getattr(request.app.state, "scanner", None)
        persistence = mirror is not None
        response = ReadinessResponse(
            status="ready",
            persistence_enabled=persistence,
            mirror_running=persistence and mirror.running,
            auto_scan_running=scanner is not None and scanner.running,
        )
        if persistence and not mirror.running:
            response.status = "not_ready"
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=response.model_dump(),
            )
        return response

    # Include API routes
    app.include_router(api_router)

    return app


def run() -> None:
    """Console entry point."""
    settings = get_settings()
    uvicorn.run(
        "vims.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


# Create app instance
app = create_app()
