import json

import pytest
from sqlalchemy import select

from bunjang_bridge.core.enums import InventoryDirection, JobStatus, JobType
from bunjang_bridge.models.job import Job
from bunjang_bridge.services.webhook_verification import compute_shopify_hmac
from tests.factories import make_order_payload

SECRET = "test_webhook_secret"


def _signed(payload, secret=SECRET):
    body = json.dumps(payload).encode()
    headers = {
        "X-Shopify-Hmac-Sha256": compute_shopify_hmac(body, secret),
        "X-Shopify-Topic": "orders/create",
        "X-Shopify-Shop-Domain": "test-shop.myshopify.com",
        "Content-Type": "application/json",
    }
    return body, headers


async def _jobs(db_session):
    result = await db_session.execute(select(Job).order_by(Job.id))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_order_created_queues_order_and_inventory_jobs(test_client, db_session):
    """A verified orders/create webhook is acknowledged and turned into two jobs"""
    payload = make_order_payload()
    body, headers = _signed(payload)

    response = await test_client.post("/webhooks/orders/create", content=body, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "success"}

    jobs = await _jobs(db_session)
    assert [j.job_type for j in jobs] == [JobType.PROCESS_ORDER.value, JobType.ADJUST_INVENTORY.value]
    assert all(j.status == JobStatus.QUEUED.value for j in jobs)
    assert jobs[0].payload == {"order": payload}
    assert jobs[1].payload["direction"] == InventoryDirection.DECREMENT.value


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(test_client, db_session):
    body, headers = _signed(make_order_payload())
    del headers["X-Shopify-Hmac-Sha256"]

    response = await test_client.post("/webhooks/orders/create", content=body, headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized - Missing HMAC header"
    assert await _jobs(db_session) == []


@pytest.mark.asyncio
async def test_wrong_secret_is_rejected(test_client, db_session):
    body, headers = _signed(make_order_payload(), secret="someone-else")

    response = await test_client.post("/webhooks/orders/create", content=body, headers=headers)

    assert response.status_code == 401
    assert await _jobs(db_session) == []


@pytest.mark.asyncio
async def test_tampered_body_is_rejected(test_client):
    body, headers = _signed(make_order_payload())

    response = await test_client.post(
        "/webhooks/orders/create", content=body.replace(b"987", b"988"), headers=headers
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_secret_is_server_error(test_app, test_client, settings):
    from bunjang_bridge.dependencies import get_app_settings

    test_app.dependency_overrides[get_app_settings] = lambda: settings.model_copy(
        update={"SHOPIFY_WEBHOOK_SECRET": ""}
    )
    body, headers = _signed(make_order_payload())

    response = await test_client.post("/webhooks/orders/create", content=body, headers=headers)

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_signed_non_json_body_is_bad_request(test_client):
    body = b"not json"
    headers = {"X-Shopify-Hmac-Sha256": compute_shopify_hmac(body, SECRET)}

    response = await test_client.post("/webhooks/orders/create", content=body, headers=headers)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_enqueue_failure_returns_500(test_client, mocker):
    mocker.patch("bunjang_bridge.routes.webhooks.enqueue_job", side_effect=RuntimeError("db down"))
    body, headers = _signed(make_order_payload())

    response = await test_client.post("/webhooks/orders/create", content=body, headers=headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_cancelled_order_queues_restore(test_client, db_session):
    payload = make_order_payload()
    payload["cancelled_at"] = "2025-06-01T10:00:00+09:00"
    body, headers = _signed(payload)

    response = await test_client.post("/webhooks/orders/updated", content=body, headers=headers)

    assert response.status_code == 200
    jobs = await _jobs(db_session)
    assert len(jobs) == 1
    assert jobs[0].job_type == JobType.ADJUST_INVENTORY.value
    assert jobs[0].payload["direction"] == InventoryDirection.RESTORE.value


@pytest.mark.asyncio
async def test_updated_order_without_cancellation_is_ignored(test_client, db_session):
    body, headers = _signed(make_order_payload())

    response = await test_client.post("/webhooks/orders/updated", content=body, headers=headers)

    assert response.status_code == 200
    assert await _jobs(db_session) == []


@pytest.mark.asyncio
async def test_inventory_level_update_is_acknowledged(test_client, db_session):
    body, headers = _signed({"inventory_item_id": 5001, "location_id": 70000000001, "available": 3})

    response = await test_client.post("/webhooks/inventory_levels/update", content=body, headers=headers)

    assert response.status_code == 200
    assert await _jobs(db_session) == []
