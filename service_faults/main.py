"""
service-faults - Application Factory

Builds a FastAPI application with the fault boundary, correlation header
validation and the error-code catalogue. Services embedding the library
call install_middleware() on their own app instead.

Run standalone with:
    uvicorn service_faults.main:app

Patterns Applied:
- Lifespan context manager for startup/shutdown
- One-time configure_logging() when the app is created
- Settings injected into create_app() (tests pass their own)
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from service_faults.api.error_codes import router as error_codes_router
from service_faults.core.config import Settings, get_settings
from service_faults.core.logging import configure_logging, get_logger
from service_faults.core.tracing import configure_tracing
from service_faults.middleware import install_middleware

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the service-faults application.

    Args:
        settings: Application settings (read from the environment if None)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_output=settings.log_json,
        service_name=settings.service_name,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # =====================================================================
        # STARTUP
        # =====================================================================
        logger.info(
            "startup",
            service=settings.service_name,
            version=settings.version,
            environment=settings.environment,
            required_headers=settings.required_headers if settings.header_validation_enabled else [],
        )

        if settings.tracing_enabled:
            configure_tracing(
                service_name=settings.service_name,
                service_version=settings.version,
                console_export=settings.tracing_console_export,
            )
            logger.info("tracing_configured")

        app.state.settings = settings

        yield

        # =====================================================================
        # SHUTDOWN
        # =====================================================================
        logger.info("shutdown", service=settings.service_name)

    app = FastAPI(
        title="service-faults",
        description="Fault classification and ServiceError responses",
        version=settings.version,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan,
    )

    app.state.fault_boundary = install_middleware(app, settings)
    app.include_router(error_codes_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        return {
            "service": settings.service_name,
            "version": settings.version,
            "error_codes": "/v1/error-codes",
        }

    return app


app = create_app()
