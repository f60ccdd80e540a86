"""Certificate Tracker — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from certtracker.auth.router import router as auth_router
from certtracker.certificates.router import certificates_router, types_router
from certtracker.common.constants import LOG_DATE_FORMAT, LOG_FORMAT
from certtracker.common.exceptions import register_exception_handlers
from certtracker.common.rate_limit import limiter
from certtracker.compliance.router import router as compliance_router
from certtracker.config import settings
from certtracker.database import engine
from certtracker.documents.router import router as documents_router
from certtracker.notifications.router import router as notifications_router
from certtracker.self_service.router import router as self_service_router
from certtracker.workforce.router import (
    employees_router,
    positions_router,
    requirements_router,
)

logger = logging.getLogger("certtracker")


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info(
        "Certificate Tracker starting (environment=%s, mail=%s)",
        settings.ENVIRONMENT,
        "configured" if settings.mail_configured else "not configured",
    )
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="Certificate Tracker",
        description="Employee certificate and training compliance tracking",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])
    app.include_router(positions_router, prefix="/api/v1/positions", tags=["positions"])
    app.include_router(
        requirements_router, prefix="/api/v1/position-requirements", tags=["position-requirements"],
    )
    app.include_router(types_router, prefix="/api/v1/certificate-types", tags=["certificate-types"])
    app.include_router(certificates_router, prefix="/api/v1/certificates", tags=["certificates"])
    app.include_router(documents_router, prefix="/api/v1/documents", tags=["documents"])
    app.include_router(compliance_router, prefix="/api/v1/compliance", tags=["compliance"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])
    app.include_router(self_service_router, prefix="/api/v1/self-service", tags=["self-service"])

    return app


app = create_app()
