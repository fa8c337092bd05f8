"""Operator endpoints for triggering and inspecting reconciliation work."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.enums import JobType
from bunjang_bridge.core.exceptions import ValidationError
from bunjang_bridge.dependencies import get_app_settings, get_db, get_sync_services
from bunjang_bridge.schemas.sync import (
    BatchSyncResult,
    InventoryTarget,
    JobStatusResponse,
    LowStockProduct,
    StatusSyncRequest,
)
from bunjang_bridge.services.factory import SyncServices
from bunjang_bridge.services.job_queue import enqueue_job, get_job
from bunjang_bridge.services.order_status_sync_service import validate_sync_window

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/order-statuses")
async def trigger_order_status_sync(
    request: StatusSyncRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    try:
        validate_sync_window(request.start_date, request.end_date, settings.ORDER_STATUS_SYNC_MAX_WINDOW_DAYS)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    job = await enqueue_job(
        db,
        job_type=JobType.SYNC_ORDER_STATUSES,
        payload={"start": request.start_date.isoformat(), "end": request.end_date.isoformat()},
        max_attempts=settings.JOB_MAX_ATTEMPTS,
    )
    await db.commit()
    logger.info(f"Queued order status sync job {job.id} ({request.start_date} - {request.end_date})")
    return {"status": "queued", "job_id": job.id}


@router.post("/inventory/full")
async def trigger_full_inventory_sync(
    cap: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    job = await enqueue_job(
        db,
        job_type=JobType.FULL_INVENTORY_SYNC,
        payload={"cap": cap} if cap else {},
        max_attempts=settings.JOB_MAX_ATTEMPTS,
    )
    await db.commit()
    logger.info(f"Queued full inventory sync job {job.id}")
    return {"status": "queued", "job_id": job.id}


@router.post("/inventory/batch", response_model=BatchSyncResult)
async def sync_inventory_batch(
    targets: List[InventoryTarget],
    services: SyncServices = Depends(get_sync_services),
):
    for target in targets:
        if target.quantity < 0:
            raise HTTPException(status_code=400, detail=f"Negative quantity for PID {target.pid}")
    return await services.inventory.sync_batch((t.pid, t.quantity) for t in targets)


@router.get("/inventory/low-stock", response_model=List[LowStockProduct])
async def low_stock_products(
    threshold: Optional[int] = Query(None, ge=0),
    services: SyncServices = Depends(get_sync_services),
):
    return await services.inventory.low_stock_scan(threshold)


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def job_status(job_id: int, db: AsyncSession = Depends(get_db)):
    job = await get_job(db, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return JobStatusResponse.from_orm_model(job)
