# Store tests against a real (SQLite) database
import pytest
from sqlalchemy import select

from bunjang_bridge.core.enums import OrderLinkStatus, SyncStatus
from bunjang_bridge.models.order_link import OrderLink
from bunjang_bridge.services.order_link_store import OrderLinkStore
from bunjang_bridge.services.product_link_store import ProductLinkStore

ORDER_GID = "gid://shopify/Order/987"


class TestOrderLinkStore:
    @pytest.mark.asyncio
    async def test_first_claim_wins(self, db_session):
        store = OrderLinkStore(db_session)

        first = await store.claim("987", ORDER_GID, "11", "12345")
        second = await store.claim("987", ORDER_GID, "11", "12345")

        assert first.claimed is True
        assert second.claimed is False
        assert second.existing.status == OrderLinkStatus.CLAIMED.value

        rows = (await db_session.execute(select(OrderLink))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_claims_are_per_line_item(self, db_session):
        store = OrderLinkStore(db_session)

        assert (await store.claim("987", ORDER_GID, "11", "12345")).claimed
        assert (await store.claim("987", ORDER_GID, "12", "67890")).claimed
        assert (await store.claim("988", "gid://shopify/Order/988", "11", "12345")).claimed

    @pytest.mark.asyncio
    async def test_placed_claim_is_never_reclaimed(self, db_session):
        store = OrderLinkStore(db_session)
        await store.claim("987", ORDER_GID, "11", "12345")
        await store.mark_placed("987", "11", "555")

        result = await store.claim("987", ORDER_GID, "11", "12345")

        assert result.claimed is False
        assert result.existing.bunjang_order_id == "555"

    @pytest.mark.asyncio
    async def test_placed_claim_cannot_be_marked_failed(self, db_session):
        store = OrderLinkStore(db_session)
        await store.claim("987", ORDER_GID, "11", "12345")
        await store.mark_placed("987", "11", "555")

        assert await store.mark_failed("987", "11", "PID-12345-Exception") is False

        link = await store.get("987", "11")
        assert link.status == OrderLinkStatus.PLACED.value
        assert link.bunjang_order_id == "555"
        assert link.failure_tag is None
        assert (await store.claim("987", ORDER_GID, "11", "12345")).claimed is False

    @pytest.mark.asyncio
    async def test_failed_claim_can_be_retaken(self, db_session):
        store = OrderLinkStore(db_session)
        await store.claim("987", ORDER_GID, "11", "12345")
        await store.mark_failed("987", "11", "PID-12345-NotFound")

        result = await store.claim("987", ORDER_GID, "11", "12345")

        assert result.claimed is True
        link = await store.get("987", "11")
        assert link.status == OrderLinkStatus.CLAIMED.value
        assert link.attempts == 2
        assert link.failure_tag is None

    @pytest.mark.asyncio
    async def test_find_by_bunjang_order_id_only_returns_placed(self, db_session):
        store = OrderLinkStore(db_session)
        await store.claim("987", ORDER_GID, "11", "12345")
        assert await store.find_by_bunjang_order_id("555") is None

        await store.mark_placed("987", "11", "555")
        link = await store.find_by_bunjang_order_id("555")

        assert link.shopify_order_gid == ORDER_GID


class TestProductLinkStore:
    @pytest.mark.asyncio
    async def test_add_normalizes_shopify_gid(self, db_session):
        store = ProductLinkStore(db_session)

        await store.add("12345", "8001", quantity=3, sync_status=SyncStatus.SYNCED)

        link = await store.get_by_shopify_product(8001)
        assert link.bunjang_pid == "12345"
        assert link.shopify_product_gid == "gid://shopify/Product/8001"
        assert (await store.get_by_shopify_product("gid://shopify/Product/8001")).bunjang_pid == "12345"

    @pytest.mark.asyncio
    async def test_compare_and_set(self, db_session):
        store = ProductLinkStore(db_session)
        await store.add("12345", "8001", quantity=3)

        assert await store.compare_and_set_quantity("12345", 3, 2) is True
        assert await store.compare_and_set_quantity("12345", 3, 1) is False
        assert (await store.get_by_pid("12345")).bunjang_quantity == 2

    @pytest.mark.asyncio
    async def test_compare_and_set_from_unknown_quantity(self, db_session):
        store = ProductLinkStore(db_session)
        await store.add("12345", "8001")

        assert await store.compare_and_set_quantity("12345", None, 4) is True
        assert (await store.get_by_pid("12345")).bunjang_quantity == 4

    @pytest.mark.asyncio
    async def test_list_synced_is_capped(self, db_session):
        store = ProductLinkStore(db_session)
        for i in range(3):
            await store.add(str(i), str(8000 + i), sync_status=SyncStatus.SYNCED)
        await store.add("9", "8009", sync_status=SyncStatus.ERROR)

        assert [link.bunjang_pid for link in await store.list_synced(2)] == ["0", "1"]
        assert len(await store.list_synced(10)) == 3
