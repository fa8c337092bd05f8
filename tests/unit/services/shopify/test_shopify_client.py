# Shopify Admin API client unit tests
from unittest.mock import AsyncMock

import pytest

from bunjang_bridge.core.exceptions import ShopifyAPIError, ShopifyGraphQLError
from bunjang_bridge.schemas.shopify import Metafield
from bunjang_bridge.services.shopify.client import ShopifyClient
from tests.factories import mock_httpx_response

ORDER_GID = "gid://shopify/Order/987"


@pytest.fixture
def client():
    return ShopifyClient("test-shop.myshopify.com", "shpat_test_token", api_version="2025-04")


def _graphql(data=None, errors=None, available=900.0):
    body = {
        "data": data,
        "extensions": {
            "cost": {
                "throttleStatus": {
                    "maximumAvailable": 1000.0,
                    "currentlyAvailable": available,
                    "restoreRate": 50.0,
                }
            }
        },
    }
    if errors:
        body["errors"] = errors
    return mock_httpx_response(200, body)


"""
1. Transport and throttling
"""

@pytest.mark.asyncio
async def test_graphql_request_shape(client, mock_http):
    mock_http.return_value = _graphql({"shop": {"name": "test"}})

    data = await client.execute("{ shop { name } }")

    assert data == {"shop": {"name": "test"}}
    kwargs = mock_http.call_args.kwargs
    assert kwargs["method"] == "POST"
    assert kwargs["url"] == "https://test-shop.myshopify.com/admin/api/2025-04/graphql.json"
    assert kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_test_token"
    assert kwargs["json"] == {"query": "{ shop { name } }"}


@pytest.mark.asyncio
async def test_throttle_status_is_tracked(client, mock_http, mocker):
    sleep = mocker.patch("bunjang_bridge.services.shopify.client.asyncio.sleep", new_callable=AsyncMock)
    mock_http.return_value = _graphql({}, available=100.0)

    await client.execute("{ shop { name } }")
    assert client.currently_available_points == 100.0
    sleep.assert_not_awaited()

    # 100 points left is under cost + 20% buffer, so the next call waits
    await client.execute("{ shop { name } }")
    sleep.assert_awaited_once()
    assert sleep.await_args.args[0] > 0


@pytest.mark.asyncio
async def test_top_level_errors_raise(client, mock_http):
    mock_http.return_value = _graphql(errors=[{"message": "Field 'nope' doesn't exist"}])

    with pytest.raises(ShopifyGraphQLError) as exc_info:
        await client.execute("{ nope }")

    assert exc_info.value.errors[0]["message"] == "Field 'nope' doesn't exist"


@pytest.mark.asyncio
async def test_rate_limit_raises_and_drains_budget(client, mock_http):
    mock_http.return_value = mock_httpx_response(429, {"errors": "Throttled"})

    with pytest.raises(ShopifyAPIError, match="429"):
        await client.execute("{ shop { name } }")

    assert client.currently_available_points == 0


@pytest.mark.asyncio
async def test_http_error_raises(client, mock_http):
    mock_http.return_value = mock_httpx_response(500, {"errors": "boom"})

    with pytest.raises(ShopifyAPIError):
        await client.execute("{ shop { name } }")


"""
2. Order annotations
"""

@pytest.mark.asyncio
async def test_update_order_adds_tags_then_sets_metafields(client, mock_http):
    mock_http.side_effect = [
        _graphql({"tagsAdd": {"node": {"id": ORDER_GID}, "userErrors": []}}),
        _graphql({"metafieldsSet": {"metafields": [], "userErrors": []}}),
    ]

    await client.update_order(
        ORDER_GID,
        tags=["BunjangOrderPlaced"],
        metafields=[Metafield(key="order_id", value="555")],
    )

    tags_call, metafields_call = mock_http.call_args_list
    assert tags_call.kwargs["json"]["variables"] == {"id": ORDER_GID, "tags": ["BunjangOrderPlaced"]}
    assert metafields_call.kwargs["json"]["variables"]["metafields"] == [{
        "ownerId": ORDER_GID,
        "namespace": "bunjang",
        "key": "order_id",
        "value": "555",
        "type": "single_line_text_field",
    }]


@pytest.mark.asyncio
async def test_update_order_with_tags_only_makes_one_call(client, mock_http):
    mock_http.return_value = _graphql({"tagsAdd": {"node": {"id": ORDER_GID}, "userErrors": []}})

    await client.update_order(ORDER_GID, tags=["LowPointBalance-400000"])

    assert mock_http.await_count == 1


@pytest.mark.asyncio
async def test_user_errors_raise(client, mock_http):
    mock_http.return_value = _graphql(
        {"tagsAdd": {"node": None, "userErrors": [{"field": ["id"], "message": "Order does not exist"}]}}
    )

    with pytest.raises(ShopifyGraphQLError):
        await client.add_order_tags(ORDER_GID, ["x"])


@pytest.mark.asyncio
async def test_find_order_by_tag(client, mock_http):
    mock_http.return_value = _graphql({
        "orders": {"edges": [{"node": {"id": ORDER_GID, "name": "#987", "tags": ["BunjangOrderID-555"]}}]}
    })

    order = await client.find_order_by_tag("BunjangOrderID-555")

    assert order.id == ORDER_GID
    assert mock_http.call_args.kwargs["json"]["variables"] == {"query": 'tag:"BunjangOrderID-555"'}


@pytest.mark.asyncio
async def test_find_order_by_tag_no_match(client, mock_http):
    mock_http.return_value = _graphql({"orders": {"edges": []}})

    assert await client.find_order_by_tag("BunjangOrderID-404") is None


"""
3. Inventory
"""

@pytest.mark.asyncio
async def test_get_product_inventory_reads_first_variant(client, mock_http):
    mock_http.return_value = _graphql({
        "product": {
            "id": "gid://shopify/Product/8001",
            "variants": {"edges": [{"node": {
                "id": "gid://shopify/ProductVariant/9001",
                "inventoryQuantity": 4,
                "inventoryItem": {"id": "gid://shopify/InventoryItem/5001"},
            }}]},
        }
    })

    inventory = await client.get_product_inventory("gid://shopify/Product/8001")

    assert inventory.variant_gid == "gid://shopify/ProductVariant/9001"
    assert inventory.inventory_item_id == "gid://shopify/InventoryItem/5001"
    assert inventory.quantity == 4


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [{"product": None}, {"product": {"id": "p", "variants": {"edges": []}}}])
async def test_get_product_inventory_without_variant(client, mock_http, data):
    mock_http.return_value = _graphql(data)

    assert await client.get_product_inventory("gid://shopify/Product/8001") is None


@pytest.mark.asyncio
async def test_set_inventory_quantity_uses_location_gid(client, mock_http):
    mock_http.return_value = _graphql({"inventorySetQuantities": {"userErrors": []}})

    await client.set_inventory_quantity("gid://shopify/InventoryItem/5001", "70000000001", 2)

    variables = mock_http.call_args.kwargs["json"]["variables"]["input"]
    assert variables["name"] == "available"
    assert variables["ignoreCompareQuantity"] is True
    assert variables["quantities"] == [{
        "inventoryItemId": "gid://shopify/InventoryItem/5001",
        "locationId": "gid://shopify/Location/70000000001",
        "quantity": 2,
    }]


"""
4. Webhook registration
"""

@pytest.mark.asyncio
async def test_create_webhook(client, mock_http):
    mock_http.return_value = mock_httpx_response(201, {"webhook": {"id": 1, "topic": "orders/create"}})

    webhook = await client.create_webhook("orders/create", "https://bridge.test/webhooks/orders/create")

    assert webhook["id"] == 1
    kwargs = mock_http.call_args.kwargs
    assert kwargs["url"] == "https://test-shop.myshopify.com/admin/api/2025-04/webhooks.json"
    assert kwargs["json"]["webhook"]["address"] == "https://bridge.test/webhooks/orders/create"
