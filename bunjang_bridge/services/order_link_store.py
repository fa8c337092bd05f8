"""Persistence for (Shopify order, line item) -> Bunjang order claims."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.core.enums import OrderLinkStatus
from bunjang_bridge.models.order_link import OrderLink

logger = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    claimed: bool
    existing: Optional[OrderLink] = None


class OrderLinkStore:
    """
    Claims line items before a Bunjang order is placed.

    A claim is a conditional insert on the (order, line item) unique key, so
    two workers handling the same webhook cannot both reach Bunjang. A claim
    that ended in failure can be taken again by a later delivery.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        return pg_insert if dialect == "postgresql" else sqlite_insert

    async def get(self, shopify_order_id: str, line_item_id: str) -> Optional[OrderLink]:
        stmt = (
            select(OrderLink)
            .where(
                OrderLink.shopify_order_id == str(shopify_order_id),
                OrderLink.line_item_id == str(line_item_id),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def claim(
        self,
        shopify_order_id: str,
        shopify_order_gid: str,
        line_item_id: str,
        bunjang_pid: str,
    ) -> ClaimResult:
        insert = self._insert()
        stmt = (
            insert(OrderLink)
            .values(
                shopify_order_id=str(shopify_order_id),
                shopify_order_gid=shopify_order_gid,
                line_item_id=str(line_item_id),
                bunjang_pid=bunjang_pid,
                status=OrderLinkStatus.CLAIMED.value,
                attempts=1,
            )
            .on_conflict_do_nothing(index_elements=["shopify_order_id", "line_item_id"])
            .returning(OrderLink.id)
        )
        result = await self.db.execute(stmt)
        inserted_id = result.scalar_one_or_none()
        if inserted_id is not None:
            await self.db.commit()
            return ClaimResult(claimed=True)

        reclaim = (
            update(OrderLink)
            .where(
                OrderLink.shopify_order_id == str(shopify_order_id),
                OrderLink.line_item_id == str(line_item_id),
                OrderLink.status == OrderLinkStatus.FAILED.value,
            )
            .values(
                status=OrderLinkStatus.CLAIMED.value,
                attempts=OrderLink.attempts + 1,
                failure_tag=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(reclaim)
        await self.db.commit()
        if result.rowcount == 1:
            logger.info(f"Re-claimed failed line item {line_item_id} of order {shopify_order_id}")
            return ClaimResult(claimed=True)

        return ClaimResult(claimed=False, existing=await self.get(shopify_order_id, line_item_id))

    async def mark_placed(self, shopify_order_id: str, line_item_id: str, bunjang_order_id: str) -> None:
        await self._set_status(
            shopify_order_id,
            line_item_id,
            status=OrderLinkStatus.PLACED.value,
            bunjang_order_id=str(bunjang_order_id),
            failure_tag=None,
        )

    async def mark_failed(self, shopify_order_id: str, line_item_id: str, failure_tag: str) -> bool:
        """Release the claim. A placed line item is never released; returns False then."""
        released = await self._set_status(
            shopify_order_id,
            line_item_id,
            OrderLink.status != OrderLinkStatus.PLACED.value,
            status=OrderLinkStatus.FAILED.value,
            failure_tag=failure_tag,
        )
        if not released:
            logger.warning(
                f"Line item {line_item_id} of order {shopify_order_id} is already placed; not marking it failed"
            )
        return released

    async def _set_status(self, shopify_order_id: str, line_item_id: str, *conditions, **values) -> bool:
        stmt = (
            update(OrderLink)
            .where(
                OrderLink.shopify_order_id == str(shopify_order_id),
                OrderLink.line_item_id == str(line_item_id),
                *conditions,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount == 1

    async def find_by_bunjang_order_id(self, bunjang_order_id: str) -> Optional[OrderLink]:
        stmt = (
            select(OrderLink)
            .where(
                OrderLink.bunjang_order_id == str(bunjang_order_id),
                OrderLink.status == OrderLinkStatus.PLACED.value,
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()
