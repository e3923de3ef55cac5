from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.feed_fetcher import build_default_fetcher
from services.ingestion import build_default_coordinator
from services.scheduler import build_scheduler
from settings import get_settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    coordinator = build_default_coordinator()
    scheduler = None
    if settings.enable_periodic_updates:
        scheduler = build_scheduler(
            coordinator,
            interval=settings.update_interval_seconds,
            grace_period=settings.startup_grace_seconds,
        )
        scheduler.start()
    app.state.scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()
        app.state.scheduler = None
        coordinator.fetcher.close()
        build_default_coordinator.cache_clear()
        build_default_fetcher.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="METAR Ingest",
        description="Periodic ingestion of METAR observations with point and average lookups.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.scheduler = None
    app.include_router(router)
    return app

app = create_app()
