"""
TxGuard Security Insights - FastAPI application.

Creates the app, wires logging and the shared risk provider transport into
the lifespan, and mounts the versioned API.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .analysis.aggregator import ReviewCoordinator
from .api import api_router
from .core.exceptions import TxGuardException, exception_handler
from .core.logging import cleanup_logging, get_logger, setup_logging
from .core.settings import settings
from .services.risk_gateway import HttpRiskTransport, RiskSourceGateway

logger = get_logger(__name__)


def _normalize_cors(origins: Optional[List[str]]) -> List[str]:
    """
    Normalize CORS origins. Accepts list, comma-separated string, or wildcard.

    Returns:
        List[str]: normalized list of origins (empty means no CORS).
    """
    if origins is None:
        return []
    if isinstance(origins, list):
        if len(origins) == 1 and isinstance(origins[0], str) and "," in origins[0]:
            return [o.strip() for o in origins[0].split(",") if o.strip()]
        return [o.strip() for o in origins if isinstance(o, str) and o.strip()]
    return [o.strip() for o in str(origins).split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown tasks."""
    setup_logging(
        log_level=settings.log_level,
        debug=settings.debug,
        environment=settings.environment,
        log_dir=settings.logs_dir,
    )

    transport = HttpRiskTransport(settings)
    app.state.started_at = datetime.now(timezone.utc)
    app.state.risk_gateway = RiskSourceGateway(transport)
    app.state.review_coordinator = ReviewCoordinator()

    logger.info(
        f"Starting {settings.app_name}",
        extra={
            "extra_data": {
                "environment": settings.environment,
                "version": settings.version,
                "risk_api": settings.risk_api_base_url,
            }
        },
    )

    try:
        yield
    finally:
        uptime = (datetime.now(timezone.utc) - app.state.started_at).total_seconds()
        logger.info(
            f"Shutting down {settings.app_name}",
            extra={"extra_data": {"uptime_sec": uptime}},
        )
        await transport.aclose()
        cleanup_logging()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    docs_enabled = settings.debug or settings.environment != "production"

    app = FastAPI(
        title=settings.app_name,
        description="Pre-signing risk review for EVM wallet transactions",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
    )

    cors_origins = _normalize_cors(settings.cors_origins)
    allow_all = "*" in cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else cors_origins,
        allow_credentials=settings.cors_allow_credentials and not allow_all,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=600,
    )

    app.add_exception_handler(TxGuardException, exception_handler)
    app.add_exception_handler(Exception, exception_handler)

    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
