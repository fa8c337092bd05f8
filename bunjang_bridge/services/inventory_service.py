# bunjang_bridge/services/inventory_service.py
"""
Keeps Shopify stock for Bunjang-linked products in line with Bunjang.

Quantity writes for a PID are serialized in-process with a per-PID lock, and
read-modify-write adjustments additionally go through a compare-and-swap on
the ProductLink row so concurrent workers cannot lose updates.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.exceptions import (
    BunjangAPIError,
    InventoryAdjustmentError,
    InventoryConflictError,
    ValidationError,
)
from bunjang_bridge.models.product_link import ProductLink
from bunjang_bridge.schemas.shopify import ShopifyLineItem, ShopifyOrder
from bunjang_bridge.schemas.sync import (
    BatchSyncItem,
    BatchSyncResult,
    FullSyncResult,
    InventoryAdjustment,
    LowStockProduct,
)
from bunjang_bridge.services.bunjang.client import BunjangClient
from bunjang_bridge.services.notification_service import AlertNotifier
from bunjang_bridge.services.product_link_store import ProductLinkStore
from bunjang_bridge.services.shopify.client import ShopifyClient

logger = logging.getLogger(__name__)

# Returned by check_and_sync when Bunjang could not be read
QUANTITY_UNKNOWN = -1


class ProductLockRegistry:
    """One asyncio.Lock per Bunjang PID, shared by every service in the process."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, pid: str) -> asyncio.Lock:
        return self._locks[pid]


class InventoryService:
    def __init__(
        self,
        settings: Settings,
        shopify: ShopifyClient,
        bunjang: BunjangClient,
        product_links: ProductLinkStore,
        notifier: AlertNotifier,
        locks: Optional[ProductLockRegistry] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.shopify = shopify
        self.bunjang = bunjang
        self.product_links = product_links
        self.notifier = notifier
        self.locks = locks or ProductLockRegistry()
        self._sleep = sleep

    async def _push_to_shopify(self, link: ProductLink, target_quantity: int) -> Optional[bool]:
        """
        Set the Shopify quantity of the linked product's first variant.
        Returns True if pushed, False if already equal, None if the variant is missing.
        """
        inventory = await self.shopify.get_product_inventory(link.shopify_product_gid)
        if inventory is None:
            logger.error(
                f"No Shopify variant found for product {link.shopify_product_gid} (PID {link.bunjang_pid})"
            )
            return None

        if inventory.quantity == target_quantity:
            logger.debug(f"PID {link.bunjang_pid}: Shopify already at {target_quantity}, nothing to do")
            return False

        await self.shopify.set_inventory_quantity(
            inventory.inventory_item_id,
            self.settings.SHOPIFY_DEFAULT_LOCATION_ID,
            target_quantity,
        )
        logger.info(
            f"PID {link.bunjang_pid}: Shopify inventory {inventory.quantity} -> {target_quantity}"
        )
        return True

    async def sync_one(self, pid: str, target_quantity: int) -> bool:
        """
        Make Shopify show ``target_quantity`` for the product linked to ``pid``.

        Returns False when there is no link or the Shopify product has no
        variant; True otherwise, whether or not anything was pushed.

        Raises:
            ValidationError: ``target_quantity`` is negative
        """
        if target_quantity < 0:
            raise ValidationError(f"Refusing to push negative quantity {target_quantity} for PID {pid}")

        async with self.locks.lock_for(pid):
            link = await self.product_links.get_by_pid(pid)
            if link is None:
                logger.warning(f"No product link for PID {pid}; inventory not synced")
                return False

            pushed = await self._push_to_shopify(link, target_quantity)
            if pushed is None:
                return False
            if pushed:
                await self.product_links.update_quantity(pid, target_quantity)
            return True

    async def sync_batch(self, targets: Iterable[Tuple[str, int]]) -> BatchSyncResult:
        result = BatchSyncResult()
        for pid, quantity in targets:
            try:
                ok = await self.sync_one(pid, quantity)
            except Exception as e:
                logger.error(f"Batch inventory sync failed for PID {pid}: {e}")
                result.failed += 1
                result.details.append(BatchSyncItem(pid=pid, success=False, error=str(e)))
                continue
            if ok:
                result.success += 1
                result.details.append(BatchSyncItem(pid=pid, success=True, quantity=quantity))
            else:
                result.failed += 1
                result.details.append(BatchSyncItem(pid=pid, success=False, error="Product link or variant not found"))
        return result

    async def _fetch_bunjang_quantity(self, pid: str) -> int:
        try:
            product = await self.bunjang.get_product_details(pid)
        except BunjangAPIError as e:
            logger.error(f"Could not fetch Bunjang product {pid}: {e}")
            return QUANTITY_UNKNOWN
        if product is None:
            return QUANTITY_UNKNOWN
        return product.quantity or 0

    async def check_and_sync(self, pid: str) -> int:
        """Fetch the Bunjang quantity for ``pid`` and push it. Returns -1 if Bunjang could not be read."""
        quantity = await self._fetch_bunjang_quantity(pid)
        if quantity == QUANTITY_UNKNOWN:
            logger.warning(f"Bunjang quantity for PID {pid} unavailable; leaving Shopify untouched")
            return QUANTITY_UNKNOWN
        await self.sync_one(pid, quantity)
        return quantity

    async def low_stock_scan(self, threshold: Optional[int] = None) -> List[LowStockProduct]:
        if threshold is None:
            threshold = self.settings.LOW_STOCK_THRESHOLD
        links = await self.product_links.list_low_stock(threshold)
        return [
            LowStockProduct(
                bunjang_pid=link.bunjang_pid,
                shopify_product_gid=link.shopify_product_gid,
                product_name=link.bunjang_product_name,
                current_stock=link.bunjang_quantity,
                last_updated=link.last_inventory_sync_at,
            )
            for link in links
        ]

    async def full_sync(self, cap: Optional[int] = None, job_id: str = "N/A") -> FullSyncResult:
        """Re-read every SYNCED link from Bunjang and push its quantity to Shopify."""
        cap = cap or self.settings.FULL_SYNC_PRODUCT_CAP
        log_prefix = f"[InventorySync:Job-{job_id}]"
        links = await self.product_links.list_synced(cap)
        result = FullSyncResult(total=len(links))
        logger.info(f"{log_prefix} Full inventory sync over {len(links)} products")

        for link in links:
            try:
                quantity = await self.check_and_sync(link.bunjang_pid)
            except Exception as e:
                logger.error(f"{log_prefix} Inventory sync failed for PID {link.bunjang_pid}: {e}")
                result.failed += 1
                continue

            if quantity == QUANTITY_UNKNOWN:
                result.skipped += 1
                continue

            result.synced += 1
            if quantity <= self.settings.LOW_STOCK_THRESHOLD:
                result.low_stock.append(
                    LowStockProduct(
                        bunjang_pid=link.bunjang_pid,
                        shopify_product_gid=link.shopify_product_gid,
                        product_name=link.bunjang_product_name,
                        current_stock=quantity,
                        last_updated=link.last_inventory_sync_at,
                    )
                )
            if result.synced % self.settings.FULL_SYNC_THROTTLE_EVERY == 0:
                await self._sleep(self.settings.FULL_SYNC_THROTTLE_SECONDS)

        if result.low_stock:
            await self.notifier.send_low_stock_alert(result.low_stock)

        logger.info(
            f"{log_prefix} Full inventory sync done: synced={result.synced} failed={result.failed} "
            f"skipped={result.skipped} low_stock={len(result.low_stock)}"
        )
        return result

    async def adjust_quantity(self, pid: str, delta: int) -> Optional[InventoryAdjustment]:
        """
        Apply ``delta`` to the Bunjang quantity of ``pid`` (floored at zero),
        push it to Shopify and then persist it.

        The base is Bunjang's live quantity, or the cached one when Bunjang
        cannot be read. Returns None when there is no link or no known base.
        The cached quantity only moves once Shopify accepted the new value.

        Raises:
            InventoryConflictError: the compare-and-swap kept losing
            ShopifyAPIError: the push failed; nothing was persisted
        """
        async with self.locks.lock_for(pid):
            for attempt in range(1, self.settings.INVENTORY_CAS_MAX_ATTEMPTS + 1):
                link = await self.product_links.get_by_pid(pid)
                if link is None:
                    logger.warning(f"No product link for PID {pid}; inventory not adjusted")
                    return None

                current = await self._fetch_bunjang_quantity(pid)
                if current == QUANTITY_UNKNOWN:
                    current = link.bunjang_quantity
                if current is None or current < 0:
                    logger.warning(f"PID {pid}: no known quantity to adjust by {delta}; skipping")
                    return None

                target = max(0, current + delta)
                await self._push_to_shopify(link, target)
                if await self.product_links.compare_and_set_quantity(pid, link.bunjang_quantity, target):
                    logger.info(f"PID {pid}: quantity {current} {delta:+d} -> {target}")
                    return InventoryAdjustment(
                        bunjang_pid=pid,
                        previous_quantity=current,
                        new_quantity=target,
                    )

                logger.info(f"PID {pid}: concurrent quantity update detected (attempt {attempt}), retrying")

        raise InventoryConflictError(f"Could not adjust quantity for PID {pid} after repeated conflicts")

    async def _find_link_for_item(self, item: ShopifyLineItem) -> Optional[ProductLink]:
        if item.product_id:
            link = await self.product_links.get_by_shopify_product(item.product_id)
            if link is not None:
                return link
        prefix = self.settings.BUNJANG_SKU_PREFIX
        if item.sku and item.sku.startswith(prefix):
            return await self.product_links.get_by_pid(item.sku[len(prefix):])
        return None

    async def _apply_order(
        self,
        order: ShopifyOrder,
        sign: int,
        done_line_items: Optional[Iterable[str]] = None,
    ) -> List[InventoryAdjustment]:
        """
        Adjust every linked line item of ``order``, skipping ``done_line_items``.

        Raises:
            InventoryAdjustmentError: some line items failed; carries the ids
                that are finished so a retry leaves them alone
        """
        done = [str(line_item_id) for line_item_id in (done_line_items or [])]
        adjustments: List[InventoryAdjustment] = []
        failed: List[str] = []
        for item in order.line_items:
            item_id = str(item.id)
            if item_id in done:
                continue
            try:
                link = await self._find_link_for_item(item)
                if link is None:
                    logger.debug(f"Order {order.id}: line item {item.id} is not linked to a Bunjang product")
                    done.append(item_id)
                    continue
                adjustment = await self.adjust_quantity(link.bunjang_pid, sign * item.quantity)
            except Exception as e:
                logger.error(f"Order {order.id}: inventory update failed for line item {item.id}: {e}")
                failed.append(item_id)
                continue
            done.append(item_id)
            if adjustment is not None:
                adjustments.append(adjustment)

        if failed:
            raise InventoryAdjustmentError(
                f"Inventory update failed for line item(s) {', '.join(failed)} of order {order.id}",
                done_line_items=done,
            )
        return adjustments

    async def apply_order_created(
        self, order: ShopifyOrder, done_line_items: Optional[Iterable[str]] = None
    ) -> List[InventoryAdjustment]:
        """Take ordered quantities out of stock."""
        return await self._apply_order(order, -1, done_line_items)

    async def apply_order_cancelled(
        self, order: ShopifyOrder, done_line_items: Optional[Iterable[str]] = None
    ) -> List[InventoryAdjustment]:
        """Put the quantities of a cancelled order back."""
        return await self._apply_order(order, 1, done_line_items)
