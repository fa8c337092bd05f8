"""Persistence for ProductLink rows (Bunjang PID <-> Shopify product)."""

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.core.enums import SyncStatus
from bunjang_bridge.core.utils import shopify_gid, utcnow
from bunjang_bridge.models.product_link import ProductLink

logger = logging.getLogger(__name__)


class ProductLinkStore:
    """
    Reads and writes ProductLink rows. Quantity writes are committed
    immediately so that other workers observe them.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(
        self,
        bunjang_pid: str,
        shopify_product_gid: str,
        *,
        product_name: Optional[str] = None,
        quantity: Optional[int] = None,
        sync_status: SyncStatus = SyncStatus.PENDING,
    ) -> ProductLink:
        link = ProductLink(
            bunjang_pid=bunjang_pid,
            shopify_product_gid=shopify_gid("Product", shopify_product_gid),
            bunjang_product_name=product_name,
            bunjang_quantity=quantity,
            sync_status=sync_status.value,
        )
        self.db.add(link)
        await self.db.commit()
        return link

    async def get_by_pid(self, bunjang_pid: str) -> Optional[ProductLink]:
        stmt = (
            select(ProductLink)
            .where(ProductLink.bunjang_pid == bunjang_pid)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_by_shopify_product(self, product_id) -> Optional[ProductLink]:
        """Lookup by Shopify product id (numeric or gid)."""
        stmt = (
            select(ProductLink)
            .where(ProductLink.shopify_product_gid == shopify_gid("Product", product_id))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_synced(self, limit: int) -> List[ProductLink]:
        stmt = (
            select(ProductLink)
            .where(ProductLink.sync_status == SyncStatus.SYNCED.value)
            .order_by(ProductLink.id.asc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_low_stock(self, threshold: int) -> List[ProductLink]:
        stmt = (
            select(ProductLink)
            .where(
                ProductLink.sync_status == SyncStatus.SYNCED.value,
                ProductLink.bunjang_quantity.is_not(None),
                ProductLink.bunjang_quantity >= 0,
                ProductLink.bunjang_quantity <= threshold,
            )
            .order_by(ProductLink.bunjang_quantity.asc(), ProductLink.bunjang_pid.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update_quantity(self, bunjang_pid: str, quantity: int) -> None:
        """Unconditionally record the quantity last pushed to Shopify."""
        stmt = (
            update(ProductLink)
            .where(ProductLink.bunjang_pid == bunjang_pid)
            .values(bunjang_quantity=quantity, last_inventory_sync_at=utcnow())
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def compare_and_set_quantity(
        self,
        bunjang_pid: str,
        expected: Optional[int],
        new_quantity: int,
    ) -> bool:
        """
        Atomically replace the cached quantity if it still equals ``expected``.
        Returns False when another writer changed it first.
        """
        current_matches = (
            ProductLink.bunjang_quantity.is_(None)
            if expected is None
            else ProductLink.bunjang_quantity == expected
        )
        stmt = (
            update(ProductLink)
            .where(ProductLink.bunjang_pid == bunjang_pid, current_matches)
            .values(bunjang_quantity=new_quantity, last_inventory_sync_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount == 1
