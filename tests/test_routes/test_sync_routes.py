from datetime import datetime, timezone

import pytest

from bunjang_bridge.core.enums import JobStatus, JobType, SyncStatus
from bunjang_bridge.dependencies import get_sync_services
from bunjang_bridge.models.job import Job
from bunjang_bridge.schemas.shopify import ProductInventory
from bunjang_bridge.services.factory import build_services
from bunjang_bridge.services.job_queue import enqueue_job
from bunjang_bridge.services.product_link_store import ProductLinkStore


@pytest.fixture
def mocked_services(test_app, settings, session_factory, shopify_client, bunjang_client, notifier):
    """Route the sync services through mocked platform clients"""
    async def override():
        async with session_factory() as session:
            yield build_services(
                settings, session, shopify=shopify_client, bunjang=bunjang_client, notifier=notifier
            )

    test_app.dependency_overrides[get_sync_services] = override
    return test_app


@pytest.mark.asyncio
async def test_status_sync_is_queued(test_client, db_session):
    response = await test_client.post(
        "/sync/order-statuses",
        json={"start_date": "2025-06-01T00:00:00Z", "end_date": "2025-06-02T00:00:00Z"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "queued"

    job = await db_session.get(Job, data["job_id"])
    assert job.job_type == JobType.SYNC_ORDER_STATUSES.value
    assert datetime.fromisoformat(job.payload["start"]) == datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_status_sync_window_over_limit_is_rejected(test_client, db_session):
    response = await test_client.post(
        "/sync/order-statuses",
        json={"start_date": "2025-06-01T00:00:00Z", "end_date": "2025-06-20T00:00:00Z"},
    )

    assert response.status_code == 400
    assert "15 days" in response.json()["detail"]


@pytest.mark.asyncio
async def test_full_inventory_sync_is_queued(test_client, db_session):
    response = await test_client.post("/sync/inventory/full", params={"cap": 50})

    assert response.status_code == 200
    job = await db_session.get(Job, response.json()["job_id"])
    assert job.job_type == JobType.FULL_INVENTORY_SYNC.value
    assert job.payload == {"cap": 50}


@pytest.mark.asyncio
async def test_batch_sync_rejects_negative_quantity(mocked_services, test_client, shopify_client):
    response = await test_client.post("/sync/inventory/batch", json=[{"pid": "12345", "quantity": -1}])

    assert response.status_code == 400
    shopify_client.set_inventory_quantity.assert_not_awaited()


@pytest.mark.asyncio
async def test_batch_sync_pushes_quantities(mocked_services, test_client, db_session, shopify_client):
    await ProductLinkStore(db_session).add("12345", "8001", quantity=1, sync_status=SyncStatus.SYNCED)
    shopify_client.get_product_inventory.return_value = ProductInventory(
        variant_gid="gid://shopify/ProductVariant/9001",
        inventory_item_id="gid://shopify/InventoryItem/5001",
        quantity=1,
    )

    response = await test_client.post(
        "/sync/inventory/batch",
        json=[{"pid": "12345", "quantity": 4}, {"pid": "404", "quantity": 1}],
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] == 1
    assert data["failed"] == 1
    shopify_client.set_inventory_quantity.assert_awaited_once()


@pytest.mark.asyncio
async def test_low_stock_listing(mocked_services, test_client, db_session):
    store = ProductLinkStore(db_session)
    await store.add("1", "8001", product_name="Low", quantity=2, sync_status=SyncStatus.SYNCED)
    await store.add("2", "8002", product_name="Plenty", quantity=40, sync_status=SyncStatus.SYNCED)

    response = await test_client.get("/sync/inventory/low-stock")

    assert response.status_code == 200
    assert [p["bunjang_pid"] for p in response.json()] == ["1"]

    response = await test_client.get("/sync/inventory/low-stock", params={"threshold": 100})
    assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_job_status(test_client, db_session):
    job = await enqueue_job(db_session, job_type=JobType.PROCESS_ORDER, payload={"order": {}})
    await db_session.commit()

    response = await test_client.get(f"/sync/jobs/{job.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["job_type"] == JobType.PROCESS_ORDER.value
    assert data["status"] == JobStatus.QUEUED.value
    assert data["attempts"] == 0


@pytest.mark.asyncio
async def test_unknown_job_is_404(test_client):
    response = await test_client.get("/sync/jobs/999")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health_reports_queue_depth(test_client, db_session):
    await enqueue_job(db_session, job_type=JobType.FULL_INVENTORY_SYNC, payload={})
    await db_session.commit()

    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "connected", "queued_jobs": 1}
