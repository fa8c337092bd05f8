"""Turns a Shopify line item plus live Bunjang product detail into an order payload."""

import logging
from typing import Optional

from bunjang_bridge.schemas.bunjang import BunjangOrderPayload, BunjangOrderProduct, BunjangProductDetail
from bunjang_bridge.schemas.shopify import ShopifyLineItem

logger = logging.getLogger(__name__)


def map_to_bunjang_order_payload(
    line_item: ShopifyLineItem,
    pid: str,
    product: BunjangProductDetail,
) -> Optional[BunjangOrderPayload]:
    """
    Build the Bunjang order payload for one linked line item.

    The price is Bunjang's current price for the product, not the storefront
    price. Shipping is always sent as zero; the order sync service records the
    real fee separately. Returns None when the product cannot be ordered as
    described (non-numeric PID, missing or non-positive price).
    """
    if not pid.isdigit():
        logger.warning(f"Line item {line_item.id}: PID '{pid}' is not numeric")
        return None
    if product.price is None or product.price <= 0:
        logger.warning(f"Line item {line_item.id}: Bunjang product {pid} has no usable price ({product.price})")
        return None

    return BunjangOrderPayload(
        product=BunjangOrderProduct(id=int(pid), price=int(product.price)),
        delivery_price=0,
    )
