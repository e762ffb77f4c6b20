"""FastAPI application factory and main entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from genealogy_buddy import __version__
from genealogy_buddy.api.middleware.exception_handler import setup_exception_handlers
from genealogy_buddy.api.middleware.logging import LoggingMiddleware
from genealogy_buddy.api.middleware.metrics import MetricsMiddleware
from genealogy_buddy.api.routes import (
    analyses_router,
    health_router,
    subscription_router,
    tiers_router,
    tools_router,
    usage_router,
)
from genealogy_buddy.core.config import get_settings
from genealogy_buddy.core.database import engine
from genealogy_buddy.core.logging import configure_logging, get_logger
from genealogy_buddy.core.redis import close_redis

settings = get_settings()

configure_logging(
    json_logs=settings.is_production,
    log_level="DEBUG" if settings.debug else "INFO",
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("application_startup", app_name=settings.app_name, env=settings.app_env)
    yield
    logger.info("application_shutdown")
    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="AI genealogy tools with tiered monthly usage limits",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Usage-Current",
            "X-Usage-Limit",
            "X-Usage-Remaining",
            "X-Usage-Recorded",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "X-Correlation-ID",
            "Retry-After",
        ],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_exception_handlers(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(
        tools_router,
        prefix=f"{settings.api_v1_prefix}/tools",
        tags=["Tools"],
    )
    app.include_router(
        usage_router,
        prefix=f"{settings.api_v1_prefix}/usage",
        tags=["Usage"],
    )
    app.include_router(
        subscription_router,
        prefix=f"{settings.api_v1_prefix}/subscription",
        tags=["Subscription"],
    )
    app.include_router(
        tiers_router,
        prefix=f"{settings.api_v1_prefix}/tiers",
        tags=["Tiers"],
    )
    app.include_router(
        analyses_router,
        prefix=f"{settings.api_v1_prefix}/analyses",
        tags=["Analyses"],
    )

    return app


app = create_app()
