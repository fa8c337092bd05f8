"""
Shopify webhook receivers.

Every request is authenticated against the raw body before anything else
happens; handlers then only enqueue jobs and acknowledge.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.enums import InventoryDirection, JobType
from bunjang_bridge.core.exceptions import ServerMisconfigurationError, WebhookUnauthorizedError
from bunjang_bridge.dependencies import get_app_settings, get_db
from bunjang_bridge.services.job_queue import enqueue_job
from bunjang_bridge.services.webhook_verification import verify_shopify_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SUCCESS_RESPONSE = {"status": "success"}


@dataclass
class VerifiedWebhook:
    topic: Optional[str]
    shop_domain: Optional[str]
    payload: Dict[str, Any]


async def verify_webhook_signature(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> VerifiedWebhook:
    """Authenticate the Shopify webhook and parse its body."""
    hmac_header = request.headers.get("X-Shopify-Hmac-Sha256")
    topic = request.headers.get("X-Shopify-Topic")
    shop_domain = request.headers.get("X-Shopify-Shop-Domain")
    logger.debug(f"Webhook received: topic={topic} shop={shop_domain} path={request.url.path}")

    raw_body = await request.body()
    try:
        verify_shopify_webhook(raw_body, hmac_header, settings.SHOPIFY_WEBHOOK_SECRET)
    except WebhookUnauthorizedError as e:
        logger.warning(f"Rejected webhook {topic} from {shop_domain}: {e.reason}")
        raise HTTPException(status_code=401, detail=f"Unauthorized - {e.reason}")
    except ServerMisconfigurationError:
        raise HTTPException(status_code=500, detail="Server configuration error")

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    return VerifiedWebhook(topic=topic, shop_domain=shop_domain, payload=payload)


def _internal_error() -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@router.post("/orders/create")
async def orders_create_webhook(
    webhook: VerifiedWebhook = Depends(verify_webhook_signature),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """New Shopify order: place Bunjang orders and take the stock out."""
    order_id = webhook.payload.get("id")
    try:
        order_job = await enqueue_job(
            db,
            job_type=JobType.PROCESS_ORDER,
            payload={"order": webhook.payload},
            max_attempts=settings.JOB_MAX_ATTEMPTS,
        )
        inventory_job = await enqueue_job(
            db,
            job_type=JobType.ADJUST_INVENTORY,
            payload={"order": webhook.payload, "direction": InventoryDirection.DECREMENT.value},
            max_attempts=settings.JOB_MAX_ATTEMPTS,
        )
        await db.commit()
    except Exception as e:
        logger.exception(f"Failed to enqueue jobs for order {order_id}: {e}")
        return _internal_error()

    logger.info(f"Order {order_id}: queued order job {order_job.id} and inventory job {inventory_job.id}")
    return SUCCESS_RESPONSE


@router.post("/orders/updated")
async def orders_updated_webhook(
    webhook: VerifiedWebhook = Depends(verify_webhook_signature),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Cancelled Shopify order: put the stock back."""
    order_id = webhook.payload.get("id")
    if not webhook.payload.get("cancelled_at"):
        logger.debug(f"Order {order_id} updated without cancellation; nothing to do")
        return SUCCESS_RESPONSE

    try:
        job = await enqueue_job(
            db,
            job_type=JobType.ADJUST_INVENTORY,
            payload={"order": webhook.payload, "direction": InventoryDirection.RESTORE.value},
            max_attempts=settings.JOB_MAX_ATTEMPTS,
        )
        await db.commit()
    except Exception as e:
        logger.exception(f"Failed to enqueue inventory restore for order {order_id}: {e}")
        return _internal_error()

    logger.info(f"Order {order_id} cancelled: queued inventory restore job {job.id}")
    return SUCCESS_RESPONSE


@router.post("/inventory_levels/update")
async def inventory_levels_update_webhook(
    webhook: VerifiedWebhook = Depends(verify_webhook_signature),
):
    payload = webhook.payload
    logger.info(
        f"Inventory level update: item={payload.get('inventory_item_id')} "
        f"location={payload.get('location_id')} available={payload.get('available')}"
    )
    return SUCCESS_RESPONSE
