"""Wires the sync services for one database session."""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.core.config import Settings
from bunjang_bridge.services.bunjang.client import BunjangClient
from bunjang_bridge.services.inventory_service import InventoryService, ProductLockRegistry
from bunjang_bridge.services.notification_service import AlertNotifier
from bunjang_bridge.services.order_link_store import OrderLinkStore
from bunjang_bridge.services.order_status_sync_service import OrderStatusSyncService
from bunjang_bridge.services.order_sync_service import OrderSyncService
from bunjang_bridge.services.product_link_store import ProductLinkStore
from bunjang_bridge.services.shopify.client import ShopifyClient


@dataclass
class SyncServices:
    order_sync: OrderSyncService
    status_sync: OrderStatusSyncService
    inventory: InventoryService


def build_services(
    settings: Settings,
    db: AsyncSession,
    *,
    shopify: Optional[ShopifyClient] = None,
    bunjang: Optional[BunjangClient] = None,
    notifier: Optional[AlertNotifier] = None,
    locks: Optional[ProductLockRegistry] = None,
) -> SyncServices:
    shopify = shopify or ShopifyClient.from_settings(settings)
    bunjang = bunjang or BunjangClient.from_settings(settings)
    notifier = notifier or AlertNotifier(settings)
    order_links = OrderLinkStore(db)
    product_links = ProductLinkStore(db)

    return SyncServices(
        order_sync=OrderSyncService(settings, shopify, bunjang, order_links, notifier),
        status_sync=OrderStatusSyncService(settings, shopify, bunjang, order_links),
        inventory=InventoryService(settings, shopify, bunjang, product_links, notifier, locks=locks),
    )
