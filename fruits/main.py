"""FastAPI application entrypoint for the fruits catalog service."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from fruits import __version__
from fruits.catalog import FruitMemoryRepository, FruitService, LogPublisher, MonitoredFruitService
from fruits.catalog import router as catalog_router
from fruits.config import Settings, get_settings
from fruits.errors import DatasetError
from fruits.lib.logger import configure_logging, get_logger
from fruits.lib.metrics import MetricsServer
from fruits.monitoring import MetricsAggregator

settings = get_settings()

configure_logging(settings.log_level)
logger = get_logger(__name__)

MONITOR_STOP_TIMEOUT = 5.0


def _create_repository(settings: Settings) -> FruitMemoryRepository:
    repository = FruitMemoryRepository()
    if settings.load_dataset:
        logger.info("dataset_loading", extra={"path": str(settings.dataset_path)})
        try:
            repository.load_dataset_file(settings.dataset_path)
        except DatasetError:
            # The service still starts; /status reports the failure.
            logger.exception("dataset_load_failed", extra={"path": str(settings.dataset_path)})
    return repository


def _create_monitor(app: FastAPI) -> MetricsAggregator:
    monitor = MetricsAggregator(
        app.state.settings.metrics_interval_seconds,
        size_provider=app.state.fruit_repository,
        sink=app.state.metrics,
    )
    app.state.monitor = monitor
    app.state.fruit_service = MonitoredFruitService(app.state.fruit_core_service, monitor)
    return monitor


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run a fresh metrics worker for each application start."""

    monitor = _create_monitor(app)
    monitor_task = asyncio.create_task(monitor.run())
    logger.info("application_started", extra={"port": app.state.settings.application_port})
    try:
        yield
    finally:
        await app.state.fruit_core_service.wait_for_publications()
        monitor.shutdown()
        try:
            await asyncio.wait_for(monitor_task, timeout=MONITOR_STOP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("monitor_stop_timeout", extra={"timeout": MONITOR_STOP_TIMEOUT})
        monitor.flush()
        logger.info("application_stopped")


app = FastAPI(title="Fruits Service", version=__version__, lifespan=lifespan)

app.state.settings = settings
app.state.fruit_repository = _create_repository(settings)
app.state.metrics = MetricsServer()
app.state.fruit_core_service = FruitService(app.state.fruit_repository, LogPublisher())

app.include_router(catalog_router, tags=["fruits"])


@app.get("/health", tags=["system"], summary="Health check")
async def health_check() -> JSONResponse:
    """Return liveness response for uptime monitoring."""
    payload = {"ok": True, "data": {"status": "healthy"}}
    return JSONResponse(content=payload)


@app.get("/metrics", tags=["system"], summary="Last pushed metrics report")
async def metrics_endpoint() -> JSONResponse:
    snapshot = app.state.metrics.snapshot()
    return JSONResponse({"ok": True, "data": snapshot})
