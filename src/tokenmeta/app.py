"""FastAPI application factory."""

import asyncio
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

import structlog
from fastapi import Depends, FastAPI, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text

from tokenmeta.core.config import Settings, configure_logging
from tokenmeta.core.counter import UpdateIDCounter
from tokenmeta.core.database import setup_db_session
from tokenmeta.core.dependencies import get_metrics, get_uow
from tokenmeta.core.metrics import Metrics
from tokenmeta.services.resolution import TokenMetadataResolution
from tokenmeta.services.resolver import MetadataResolver
from tokenmeta.uow import UnitOfWork, create_uow_factory
from tokenmeta.workers.token_metadata_worker import run_token_metadata_worker

logger = structlog.get_logger()

RESTART_DELAY = 1  # Fixed 1 second delay between restarts


def create_resilient_worker(
    coro_factory: Callable[[], Awaitable[None]], worker_name: str, shutdown_event: asyncio.Event
) -> asyncio.Task:
    """Create a worker with automatic restart on failure.

    Args:
        coro_factory: Zero-argument callable returning the worker coroutine
        worker_name: Human-readable worker name for logging
        shutdown_event: Event to signal graceful shutdown

    Returns:
        Initial task handle (will be auto-recreated on crash)
    """

    def on_worker_done(task: asyncio.Task):
        if shutdown_event.is_set():
            logger.info("worker.shutdown_complete", worker=worker_name)
            return

        if task.cancelled():
            logger.info("worker.cancelled", worker=worker_name)
            return

        exc = task.exception()
        if exc:
            logger.error(
                "worker.crashed",
                worker=worker_name,
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in_seconds=RESTART_DELAY,
                exc_info=exc,
            )
        else:
            # Worker stopped cleanly (unexpected for infinite loop workers)
            logger.warning(
                "worker.stopped_unexpectedly",
                worker=worker_name,
                retry_in_seconds=RESTART_DELAY,
            )

        async def restart_worker():
            await asyncio.sleep(RESTART_DELAY)

            # Check again if shutdown was requested during sleep
            if shutdown_event.is_set():
                return

            logger.info("worker.restarting", worker=worker_name)
            new_task = asyncio.create_task(coro_factory())
            new_task.add_done_callback(on_worker_done)

        asyncio.create_task(restart_worker())

    task = asyncio.create_task(coro_factory())
    task.add_done_callback(on_worker_done)
    return task


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown tasks:
    - Startup: Configure logging, initialize database, seed update counter, start worker
    - Shutdown: Stop worker, dispose engine
    """
    settings: Settings = app.state.settings
    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    app.state.session_factory = session_factory
    app.state.uow_factory = uow_factory

    # Continue the update sequence where the previous process stopped
    async with await uow_factory() as uow:
        counter = UpdateIDCounter(start=await uow.token_metadata.get_max_update_id())
    app.state.counter = counter

    resolution = TokenMetadataResolution(
        resolver=MetadataResolver.from_settings(settings),
        counter=counter,
        metrics=app.state.metrics,
        max_retry_count=settings.max_retry_count_on_error,
        timeout_seconds=settings.resolve_timeout_seconds,
    )

    shutdown_event = asyncio.Event()
    worker_task = create_resilient_worker(
        lambda: run_token_metadata_worker(uow_factory, resolution, settings),
        "token_metadata",
        shutdown_event,
    )

    logger.info(
        "application.startup",
        db_url=settings.database_url.split("@")[-1],
        network=settings.network,
        update_id=counter.current,
    )

    yield

    logger.info("application.shutdown")
    shutdown_event.set()
    worker_task.cancel()
    await asyncio.gather(worker_task, return_exceptions=True)

    # Close database connection pool
    await session_factory.kw["bind"].dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="Token Metadata Resolver",
        description="Resolves and reconciles on-chain token metadata",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.metrics = Metrics()

    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy"} if database connection succeeds
            503: {"status": "unhealthy", "error": {...}} if database connection fails
        """
        try:
            async with app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy"}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    @app.get("/metrics")
    async def metrics_endpoint(metrics: Metrics = Depends(get_metrics)):
        """Prometheus exposition of resolution counters."""
        return Response(content=generate_latest(metrics.registry), media_type=CONTENT_TYPE_LATEST)

    @app.get("/stats")
    async def stats(uow: UnitOfWork = Depends(get_uow)):
        """Number of token metadata records per status."""
        return {"tokens": await uow.token_metadata.count_by_status()}

    return app


# Create app instance for uvicorn
app = create_app()
