"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from onboarding_engine import __version__
from onboarding_engine.api.routes import assessments_router, health_router, onboarding_router
from onboarding_engine.api.schemas import ErrorResponse
from onboarding_engine.config import Settings, get_settings
from onboarding_engine.database import dispose_db, init_db
from onboarding_engine.errors import OnboardingError
from onboarding_engine.logging_config import configure_logging
from onboarding_engine.scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler: database and reminder scheduler."""
    settings: Settings = app.state.settings
    _, session_factory = init_db(settings.database_url)
    scheduler: ReminderScheduler | None = None
    if settings.scheduler_enabled:
        scheduler = ReminderScheduler(session_factory, settings=settings)
        scheduler.start()
    app.state.scheduler = scheduler
    yield
    if scheduler is not None:
        await scheduler.stop()
    await dispose_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Onboarding Engine API",
        description="New-hire onboarding journeys, task ledger and supervisor assessments",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(OnboardingError)
    async def onboarding_error_handler(
        request: Request, exc: OnboardingError
    ) -> JSONResponse:
        """Map domain errors to their status code and stable error code."""
        body = ErrorResponse(detail=exc.message, code=exc.code, context=exc.context or None)
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(body),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(onboarding_router, prefix="/api/v1")
    app.include_router(assessments_router, prefix="/api/v1")

    return app
