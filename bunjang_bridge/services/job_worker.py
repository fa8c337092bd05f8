"""
Background worker that drains the ``jobs`` table.

Webhook handlers and the scheduler only enqueue; everything that talks to
Bunjang or Shopify runs here, one job at a time per worker. Jobs are
delivered at least once, so every handler is safe to repeat.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.enums import InventoryDirection, JobType
from bunjang_bridge.core.exceptions import (
    InventoryAdjustmentError,
    ServerMisconfigurationError,
    ValidationError,
)
from bunjang_bridge.models.job import Job
from bunjang_bridge.schemas.shopify import ShopifyOrder
from bunjang_bridge.services.bunjang.client import BunjangClient
from bunjang_bridge.services.factory import build_services
from bunjang_bridge.services.inventory_service import ProductLockRegistry
from bunjang_bridge.services.job_queue import (
    fetch_next_queued_job,
    mark_job_completed,
    mark_job_failed,
    mark_job_in_progress,
)
from bunjang_bridge.services.notification_service import AlertNotifier
from bunjang_bridge.services.shopify.client import ShopifyClient

logger = logging.getLogger(__name__)

# Retrying these cannot succeed
NON_RETRYABLE_ERRORS = (ValidationError, ServerMisconfigurationError)


class JobWorker:
    def __init__(
        self,
        settings: Settings,
        session_factory: Callable[[], AsyncSession],
        *,
        shopify: Optional[ShopifyClient] = None,
        bunjang: Optional[BunjangClient] = None,
        notifier: Optional[AlertNotifier] = None,
        locks: Optional[ProductLockRegistry] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.shopify = shopify or ShopifyClient.from_settings(settings)
        self.bunjang = bunjang or BunjangClient.from_settings(settings)
        self.notifier = notifier or AlertNotifier(settings)
        self.locks = locks or ProductLockRegistry()
        self._stop = asyncio.Event()

    async def _dispatch(self, session: AsyncSession, job: Job) -> Dict[str, Any]:
        services = build_services(
            self.settings,
            session,
            shopify=self.shopify,
            bunjang=self.bunjang,
            notifier=self.notifier,
            locks=self.locks,
        )
        payload = job.payload or {}
        job_type = JobType(job.job_type)

        if job_type == JobType.PROCESS_ORDER:
            order = ShopifyOrder.model_validate(payload.get("order") or {})
            result = await services.order_sync.process_order(order, job_id=str(job.id))
            return result.model_dump(mode="json")

        if job_type == JobType.ADJUST_INVENTORY:
            order = ShopifyOrder.model_validate(payload.get("order") or {})
            direction = InventoryDirection(payload.get("direction", InventoryDirection.DECREMENT.value))
            done = payload.get("done_line_items")
            if direction == InventoryDirection.RESTORE:
                adjustments = await services.inventory.apply_order_cancelled(order, done)
            else:
                adjustments = await services.inventory.apply_order_created(order, done)
            return {"adjustments": [a.model_dump(mode="json") for a in adjustments]}

        if job_type == JobType.SYNC_ORDER_STATUSES:
            start = datetime.fromisoformat(payload["start"])
            end = datetime.fromisoformat(payload["end"])
            result = await services.status_sync.sync_statuses(start, end, job_id=str(job.id))
            return result.model_dump(mode="json")

        if job_type == JobType.FULL_INVENTORY_SYNC:
            result = await services.inventory.full_sync(cap=payload.get("cap"), job_id=str(job.id))
            return result.model_dump(mode="json")

        raise ValidationError(f"Unknown job type {job.job_type}")

    async def run_once(self) -> Optional[int]:
        """Process one due job. Returns its id, or None when the queue is empty."""
        async with self.session_factory() as session:
            job = await fetch_next_queued_job(session)
            if job is None:
                await session.commit()
                return None

            job_id = job.id
            try:
                await mark_job_in_progress(session, job)
                await session.commit()
            except Exception as exc:
                await session.rollback()
                logger.error(f"Failed to mark job {job_id} in progress: {exc}", exc_info=True)
                return None

            logger.info(f"Job {job_id} ({job.job_type}) started, attempt {job.attempts}/{job.max_attempts}")
            try:
                result = await self._dispatch(session, job)
                await mark_job_completed(session, job, result)
                await session.commit()
                logger.info(f"Job {job_id} ({job.job_type}) completed")
            except Exception as exc:
                await session.rollback()
                job = await session.get(Job, job_id, populate_existing=True)
                retryable = not isinstance(exc, NON_RETRYABLE_ERRORS)
                if isinstance(exc, InventoryAdjustmentError):
                    # A retry only touches the line items that failed
                    job.payload = {**(job.payload or {}), "done_line_items": exc.done_line_items}
                logger.error(f"Job {job_id} failed: {exc}", exc_info=not isinstance(exc, ValidationError))
                await mark_job_failed(
                    session,
                    job,
                    str(exc) or exc.__class__.__name__,
                    retryable=retryable,
                    backoff_seconds=self.settings.JOB_BACKOFF_SECONDS,
                )
                await session.commit()
            return job_id

    async def run_forever(self) -> None:
        logger.info(f"Job worker started (poll={self.settings.JOB_POLL_INTERVAL_SECONDS}s)")
        while not self._stop.is_set():
            try:
                job_id = await self.run_once()
            except Exception as exc:
                logger.exception(f"Job worker loop error: {exc}")
                job_id = None
            if job_id is None:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.settings.JOB_POLL_INTERVAL_SECONDS)
                except asyncio.TimeoutError:
                    pass
        logger.info("Job worker stopped")

    def stop(self) -> None:
        self._stop.set()
