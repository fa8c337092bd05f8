# bunjang_bridge/services/order_status_sync_service.py
"""
Pulls Bunjang order status changes for a time window and mirrors them onto the
matching Shopify orders as tags and metafields.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.enums import (
    CANCELLATION_STATUSES,
    FULFILLMENT_STATUSES,
    BunjangOrderStatus,
)
from bunjang_bridge.core.exceptions import ValidationError
from bunjang_bridge.core.utils import to_utc_iso, utcnow
from bunjang_bridge.schemas.bunjang import BunjangOrder, BunjangOrderItem
from bunjang_bridge.schemas.shopify import Metafield
from bunjang_bridge.schemas.sync import StatusSyncResult
from bunjang_bridge.services.bunjang.client import BunjangClient
from bunjang_bridge.services.order_link_store import OrderLinkStore
from bunjang_bridge.services.shopify.client import ShopifyClient

logger = logging.getLogger(__name__)

METAFIELD_NAMESPACE = "bunjang"


def validate_sync_window(start: datetime, end: datetime, max_days: int) -> None:
    """Raise ValidationError for an inverted window or one longer than ``max_days``."""
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    if end < start:
        raise ValidationError(f"Status sync window ends before it starts ({start} > {end})")
    if end - start > timedelta(days=max_days):
        raise ValidationError(f"Status sync window may not exceed {max_days} days")


class OrderStatusSyncService:
    def __init__(
        self,
        settings: Settings,
        shopify: ShopifyClient,
        bunjang: BunjangClient,
        order_links: OrderLinkStore,
    ):
        self.settings = settings
        self.shopify = shopify
        self.bunjang = bunjang
        self.order_links = order_links

    async def sync_statuses(self, start: datetime, end: datetime, job_id: str = "N/A") -> StatusSyncResult:
        """
        Reconcile every Bunjang order whose status changed in ``[start, end]``.

        A failure on one order is counted and skipped. A failure to fetch a
        page propagates, since the remaining pages cannot be trusted.

        Raises:
            ValidationError: the window exceeds the configured maximum
        """
        validate_sync_window(start, end, self.settings.ORDER_STATUS_SYNC_MAX_WINDOW_DAYS)
        start_iso = to_utc_iso(start)
        end_iso = to_utc_iso(end)
        log_prefix = f"[StatusSync:Job-{job_id}]"
        logger.info(f"{log_prefix} Syncing Bunjang order statuses from {start_iso} to {end_iso}")

        result = StatusSyncResult()
        page = 0
        while True:
            try:
                order_page = await self.bunjang.get_orders(
                    start_iso, end_iso, page=page, size=self.settings.ORDER_STATUS_SYNC_PAGE_SIZE
                )
            except Exception:
                logger.exception(f"{log_prefix} Failed to fetch Bunjang orders page {page}")
                raise

            if not order_page.data:
                break

            for bunjang_order in order_page.data:
                try:
                    found = await self.apply_order_status(bunjang_order, log_prefix)
                except Exception as e:
                    logger.error(f"{log_prefix} Failed to sync Bunjang order {bunjang_order.id}: {e}", exc_info=True)
                    result.error_count += 1
                    continue
                if found:
                    result.synced_count += 1
                else:
                    result.not_found_count += 1

            if page >= order_page.total_pages - 1:
                break
            page += 1

        logger.info(
            f"{log_prefix} Status sync finished: synced={result.synced_count} "
            f"errors={result.error_count} not_found={result.not_found_count}"
        )
        return result

    async def find_shopify_order_gid(self, bunjang_order_id: str) -> Optional[str]:
        link = await self.order_links.find_by_bunjang_order_id(bunjang_order_id)
        if link is not None:
            return link.shopify_order_gid
        order = await self.shopify.find_order_by_tag(f"BunjangOrderID-{bunjang_order_id}")
        return order.id if order else None

    async def apply_order_status(self, bunjang_order: BunjangOrder, log_prefix: str = "") -> bool:
        """Mirror one Bunjang order onto Shopify. Returns False when no Shopify order matches."""
        order_gid = await self.find_shopify_order_gid(bunjang_order.id)
        if not order_gid:
            logger.warning(f"{log_prefix} No Shopify order found for Bunjang order {bunjang_order.id}")
            return False

        last_status = None
        for item in bunjang_order.order_items:
            last_status = item.status
            await self._apply_item_status(order_gid, bunjang_order.id, item, log_prefix)

        metafields = [
            Metafield(namespace=METAFIELD_NAMESPACE, key="last_status_sync",
                      value=to_utc_iso(utcnow()), type="date_time"),
        ]
        if last_status:
            metafields.append(
                Metafield(namespace=METAFIELD_NAMESPACE, key="last_bunjang_status", value=last_status)
            )
        await self.shopify.update_order(order_gid, metafields=metafields)
        return True

    async def _apply_item_status(self, order_gid: str, bunjang_order_id: str, item: BunjangOrderItem, log_prefix: str):
        status = item.status
        if status in {s.value for s in FULFILLMENT_STATUSES}:
            await self.update_fulfillment_status(order_gid, bunjang_order_id, status)
        elif status == BunjangOrderStatus.PURCHASE_CONFIRM.value:
            confirmed_at = item.purchase_confirmed_at or to_utc_iso(utcnow())
            await self.shopify.update_order(
                order_gid,
                metafields=[
                    Metafield(namespace=METAFIELD_NAMESPACE, key="purchase_confirmed", value="true"),
                    Metafield(namespace=METAFIELD_NAMESPACE, key="purchase_confirmed_at",
                              value=confirmed_at, type="date_time"),
                ],
            )
            logger.info(f"{log_prefix} Bunjang order {bunjang_order_id} purchase confirmed")
        elif status in {s.value for s in CANCELLATION_STATUSES}:
            tags: List[str] = [f"BunjangStatus-{status}", f"BunjangOrder-{bunjang_order_id}-{status}"]
            await self.shopify.update_order(order_gid, tags=tags)
            logger.info(f"{log_prefix} Bunjang order {bunjang_order_id} is {status}")
        else:
            logger.debug(f"{log_prefix} Bunjang order {bunjang_order_id} status {status} needs no action")

    async def update_fulfillment_status(self, order_gid: str, bunjang_order_id: str, status: str):
        # Fulfillment creation on Shopify is not automated yet
        logger.info(f"Fulfillment update for {order_gid} (Bunjang order {bunjang_order_id}): {status}")
