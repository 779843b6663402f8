"""FastAPI application factory for the tenant billing API."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.billing import router as billing_router
from src.models import Base
from src.services import async_engine
from src.services.billing_cache import BillingCache, CacheSweeper
from src.services.config import AppSettings, get_settings

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[AppSettings] = None,
    cache: Optional[BillingCache] = None,
) -> FastAPI:
    """Build the application.

    The billing cache is created here (or injected) and kept on app.state.
    Its sweeper runs for the lifetime of the application.

    Args:
        settings: Settings to use (default: loaded from environment)
        cache: Pre-built cache, mainly for tests
    """
    settings = settings or get_settings()
    if cache is None:
        cache = BillingCache(default_ttl=settings.billing_cache_ttl_seconds)
    sweeper = CacheSweeper(cache, interval=settings.billing_cache_sweep_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables and run the cache sweeper while the app is up."""
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized")
        sweeper.start()
        try:
            yield
        finally:
            sweeper.stop()
            cache.clear()
            logger.info("Application shutting down")

    app = FastAPI(
        title=settings.api_title,
        description="Overdue billing checks and payment settlement for institutions",
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.billing_cache = cache
    app.state.cache_sweeper = sweeper

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(billing_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app
