import pytest

from bunjang_bridge.schemas.shopify import ShopifyLineItem
from bunjang_bridge.services.order_mapper import map_to_bunjang_order_payload
from tests.factories import make_product

LINE_ITEM = ShopifyLineItem(id=11, sku="BJ-12345", quantity=1)


def test_uses_bunjang_price_and_zero_delivery():
    payload = map_to_bunjang_order_payload(LINE_ITEM, "12345", make_product("12345", price=48000, shipping_fee=4000))

    assert payload.model_dump(by_alias=True) == {"product": {"id": 12345, "price": 48000}, "deliveryPrice": 0}


@pytest.mark.parametrize("pid,price", [("12a45", 50000), ("12345", None), ("12345", 0)])
def test_unorderable_products_map_to_none(pid, price):
    assert map_to_bunjang_order_payload(LINE_ITEM, pid, make_product("12345", price=price)) is None
