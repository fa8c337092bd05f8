# bunjang_bridge/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bunjang_bridge.core.config import get_settings
from bunjang_bridge.core.logging_config import configure_logging
from bunjang_bridge.database import async_session
from bunjang_bridge.routes import health, sync, webhooks
from bunjang_bridge.scheduler import get_scheduler_status, start_scheduler, stop_scheduler
from bunjang_bridge.services.inventory_service import ProductLockRegistry
from bunjang_bridge.services.job_worker import JobWorker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    missing = settings.missing_required()
    if missing:
        logger.warning(f"Missing configuration: {', '.join(missing)}")

    app.state.product_locks = ProductLockRegistry()
    worker = None
    worker_task = None

    if settings.JOB_WORKER_ENABLED:
        worker = JobWorker(settings, async_session, locks=app.state.product_locks)
        worker_task = asyncio.create_task(worker.run_forever())

    if settings.SCHEDULER_ENABLED:
        await start_scheduler(settings, async_session)
    else:
        logger.info("Scheduler is disabled. Set SCHEDULER_ENABLED=true to enable")

    try:
        yield
    finally:
        await stop_scheduler()
        if worker is not None:
            worker.stop()
            await worker_task


def create_app() -> FastAPI:
    app = FastAPI(
        title="Bunjang Shopify Bridge",
        description="Order sync and reconciliation between Shopify and Bunjang",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.product_locks = ProductLockRegistry()

    app.include_router(health.router)
    app.include_router(webhooks.router)
    app.include_router(sync.router)

    @app.get("/scheduler/status", tags=["health"])
    async def scheduler_status():
        return get_scheduler_status()

    return app


app = create_app()
