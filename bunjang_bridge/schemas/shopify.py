"""
Schemas for Shopify webhook payloads and order annotations.
"""

from typing import List, Optional

from pydantic import Field, field_validator

from bunjang_bridge.schemas.base import BaseSchema


class ShopifyLineItem(BaseSchema):
    id: int
    sku: Optional[str] = None
    quantity: int = 1
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    title: Optional[str] = None
    price: Optional[str] = None


class ShopifyOrder(BaseSchema):
    """The subset of the orders/create and orders/updated payload we rely on."""
    id: Optional[int] = None
    admin_graphql_api_id: Optional[str] = None
    name: Optional[str] = None
    order_number: Optional[int] = None
    financial_status: Optional[str] = None
    cancelled_at: Optional[str] = None
    line_items: List[ShopifyLineItem] = Field(default_factory=list)

    @field_validator('line_items', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return v or []


class Metafield(BaseSchema):
    namespace: str = "bunjang"
    key: str
    value: str
    type: str = "single_line_text_field"


class ProductInventory(BaseSchema):
    """First variant of a Shopify product and its stock."""
    variant_gid: str
    inventory_item_id: str
    quantity: int = 0


class ShopifyOrderRef(BaseSchema):
    id: str
    name: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
