# bunjang_bridge/services/order_sync_service.py
"""
Places Bunjang orders for the Bunjang-sourced line items of a Shopify order.

Each linked line item (SKU ``BJ-<pid>``) is claimed, priced against live
Bunjang data, ordered with a zero delivery fee and annotated back onto the
Shopify order with tags and ``bunjang`` metafields. A failing line item is
tagged and skipped; it never stops the rest of the order.
"""

import logging
import math
from typing import List, Optional

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.enums import BunjangErrorCode, OrderFailureReason, failure_tag_suffix
from bunjang_bridge.core.exceptions import BunjangAPIError, ShopifyAPIError, ValidationError
from bunjang_bridge.schemas.bunjang import BunjangProductDetail
from bunjang_bridge.schemas.shopify import Metafield, ShopifyLineItem, ShopifyOrder
from bunjang_bridge.schemas.sync import OrderProcessResult
from bunjang_bridge.services.bunjang.client import BunjangClient
from bunjang_bridge.services.notification_service import AlertNotifier
from bunjang_bridge.services.order_link_store import OrderLinkStore
from bunjang_bridge.services.order_mapper import map_to_bunjang_order_payload
from bunjang_bridge.services.shopify.client import ShopifyClient

logger = logging.getLogger(__name__)

METAFIELD_NAMESPACE = "bunjang"
ORDER_PLACED_TAG = "BunjangOrderPlaced"


class OrderSyncService:
    def __init__(
        self,
        settings: Settings,
        shopify: ShopifyClient,
        bunjang: BunjangClient,
        order_links: OrderLinkStore,
        notifier: AlertNotifier,
    ):
        self.settings = settings
        self.shopify = shopify
        self.bunjang = bunjang
        self.order_links = order_links
        self.notifier = notifier

    @staticmethod
    def _validate(order: ShopifyOrder):
        if not order.id:
            raise ValidationError("Shopify order is missing its id")
        if not order.admin_graphql_api_id:
            raise ValidationError(f"Shopify order {order.id} is missing admin_graphql_api_id")
        if not order.line_items:
            raise ValidationError(f"Shopify order {order.id} has no line items")

    def order_identifier(self, order: ShopifyOrder) -> str:
        return f"{self.settings.BUNJANG_ORDER_IDENTIFIER_PREFIX}{order.id}"

    async def process_order(self, order: ShopifyOrder, job_id: str = "N/A") -> OrderProcessResult:
        """
        Create Bunjang orders for every linked line item of ``order``.

        Raises:
            ValidationError: the order lacks an id, a GraphQL id or line items
        """
        self._validate(order)
        log_prefix = f"[OrderSync:Job-{job_id}] Order {order.id}"
        identifier = self.order_identifier(order)
        sku_prefix = self.settings.BUNJANG_SKU_PREFIX

        created: List[str] = []
        already_processed: List[str] = []
        linked_items = 0

        for item in order.line_items:
            if not item.sku or not item.sku.startswith(sku_prefix):
                logger.debug(f"{log_prefix}: line item {item.id} (SKU {item.sku}) is not a Bunjang item, skipping")
                continue

            linked_items += 1
            pid = item.sku[len(sku_prefix):]

            claim = await self.order_links.claim(
                shopify_order_id=str(order.id),
                shopify_order_gid=order.admin_graphql_api_id,
                line_item_id=str(item.id),
                bunjang_pid=pid,
            )
            if not claim.claimed:
                existing = claim.existing
                logger.info(
                    f"{log_prefix}: line item {item.id} (PID {pid}) already processed "
                    f"(status={existing.status if existing else 'unknown'}), skipping"
                )
                if existing is not None and existing.bunjang_order_id:
                    already_processed.append(existing.bunjang_order_id)
                continue

            try:
                bunjang_order_id = await self._process_line_item(order, item, pid, identifier, log_prefix)
            except Exception as e:
                logger.exception(f"{log_prefix}: unexpected error on line item {item.id} (PID {pid}): {e}")
                await self._record_failure(order, item, pid, identifier, OrderFailureReason.EXCEPTION.value, log_prefix)
                continue

            if bunjang_order_id:
                created.append(bunjang_order_id)

        if created:
            message = f"Created {len(created)} Bunjang order(s): {', '.join(created)}"
        elif linked_items == 0:
            message = "No Bunjang-linked line items in order"
        elif already_processed and len(already_processed) == linked_items:
            message = "All Bunjang line items were already processed"
        else:
            message = "No Bunjang orders were created"

        logger.info(f"{log_prefix}: {message}")
        return OrderProcessResult(
            success=bool(created),
            bunjang_order_ids=created,
            message=message,
            already_processed=already_processed,
        )

    async def _process_line_item(
        self,
        order: ShopifyOrder,
        item: ShopifyLineItem,
        pid: str,
        identifier: str,
        log_prefix: str,
    ) -> Optional[str]:
        """Returns the new Bunjang order id, or None after recording a failure."""
        try:
            product = await self.bunjang.get_product_details(pid)
        except BunjangAPIError as e:
            logger.error(f"{log_prefix}: could not fetch Bunjang product {pid}: {e}")
            product = None
        if product is None:
            await self._record_failure(order, item, pid, identifier, OrderFailureReason.NOT_FOUND.value, log_prefix)
            return None

        payload = map_to_bunjang_order_payload(item, pid, product)
        if payload is None:
            await self._record_failure(order, item, pid, identifier, OrderFailureReason.MAP_FAIL.value, log_prefix)
            return None

        # Delivery fee is never charged through the API
        payload.delivery_price = 0

        try:
            response = await self.bunjang.create_order(payload)
        except BunjangAPIError as e:
            suffix = failure_tag_suffix(e.error_code)
            if e.error_code == BunjangErrorCode.POINT_SHORTAGE.value:
                logger.critical(f"{log_prefix}: Bunjang point shortage while ordering PID {pid}: {e.reason}")
                await self.notifier.send_point_shortage_alert(pid, str(order.id))
            else:
                logger.error(f"{log_prefix}: Bunjang rejected order for PID {pid}: {e.error_code} {e.reason}")
            await self._record_failure(order, item, pid, identifier, suffix, log_prefix)
            return None

        bunjang_order_id = response.get("id") if response else None
        if not bunjang_order_id:
            logger.error(f"{log_prefix}: Bunjang order response for PID {pid} carried no id: {response}")
            await self._record_failure(order, item, pid, identifier, OrderFailureReason.NO_ORDER_ID.value, log_prefix)
            return None

        bunjang_order_id = str(bunjang_order_id)
        logger.info(f"{log_prefix}: created Bunjang order {bunjang_order_id} for PID {pid}")

        # The Bunjang order exists from here on; nothing below may release the claim
        try:
            await self.order_links.mark_placed(str(order.id), str(item.id), bunjang_order_id)
        except Exception as e:
            logger.critical(
                f"{log_prefix}: Bunjang order {bunjang_order_id} placed but could not be recorded "
                f"(line item {item.id} stays claimed): {e}"
            )

        try:
            await self.shopify.update_order(
                order.admin_graphql_api_id,
                tags=[ORDER_PLACED_TAG, identifier, f"BunjangOrderID-{bunjang_order_id}"],
                metafields=self._success_metafields(
                    bunjang_order_id, pid, product, payload.product.price, payload.delivery_price
                ),
            )
        except Exception as e:
            logger.error(
                f"{log_prefix}: Bunjang order {bunjang_order_id} placed but Shopify annotation failed: {e}"
            )
        await self._check_point_balance(order, log_prefix)
        return bunjang_order_id

    @staticmethod
    def _success_metafields(
        bunjang_order_id: str,
        pid: str,
        product: BunjangProductDetail,
        item_price: int,
        sent_shipping_fee: int,
    ) -> List[Metafield]:
        return [
            Metafield(namespace=METAFIELD_NAMESPACE, key="order_id", value=bunjang_order_id),
            Metafield(namespace=METAFIELD_NAMESPACE, key="ordered_pid", value=pid),
            Metafield(namespace=METAFIELD_NAMESPACE, key="ordered_item_price_krw",
                      value=str(item_price), type="number_integer"),
            Metafield(namespace=METAFIELD_NAMESPACE, key="api_sent_shipping_fee_krw",
                      value=str(sent_shipping_fee), type="number_integer"),
            Metafield(namespace=METAFIELD_NAMESPACE, key="actual_bunjang_shipping_fee_krw",
                      value=str(int(product.shipping_fee or 0)), type="number_integer"),
        ]

    async def _check_point_balance(self, order: ShopifyOrder, log_prefix: str):
        """Tags the order and alerts when the point balance runs low. Failures are only logged."""
        try:
            balance = await self.bunjang.get_point_balance()
            if balance is None:
                logger.warning(f"{log_prefix}: Bunjang returned no point balance")
                return

            critical = balance.balance < self.settings.BUNJANG_CRITICAL_BALANCE_THRESHOLD
            low = balance.balance < self.settings.BUNJANG_LOW_BALANCE_THRESHOLD
            if not (critical or low):
                return

            logger.warning(f"{log_prefix}: Bunjang point balance is {balance.balance}")
            await self.shopify.update_order(
                order.admin_graphql_api_id,
                tags=[f"LowPointBalance-{math.floor(balance.balance)}"],
            )
            await self.notifier.send_low_balance_alert(
                balance.balance, critical=critical, order_reference=str(order.id)
            )
        except Exception as e:
            logger.warning(f"{log_prefix}: point balance check failed: {e}")

    async def _record_failure(
        self,
        order: ShopifyOrder,
        item: ShopifyLineItem,
        pid: str,
        identifier: str,
        suffix: str,
        log_prefix: str,
    ):
        """Releases the claim and tags the Shopify order with the failure reason."""
        failure_tag = f"PID-{pid}-{suffix}"
        await self.order_links.mark_failed(str(order.id), str(item.id), failure_tag)
        try:
            await self.shopify.update_order(
                order.admin_graphql_api_id,
                tags=[f"{identifier}_Error", failure_tag],
            )
        except ShopifyAPIError as e:
            logger.error(f"{log_prefix}: could not tag order with {failure_tag}: {e}")
