"""
Schemas for Bunjang Open API requests and responses.

Bunjang speaks camelCase; fields are aliased so payloads can be dumped with
``by_alias=True``.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from bunjang_bridge.schemas.base import BaseSchema


class BunjangProductDetail(BaseSchema):
    pid: str = Field(alias="id")
    name: Optional[str] = None
    price: Optional[int] = None
    shipping_fee: int = Field(default=0, alias="shippingFee")
    quantity: Optional[int] = None
    status: Optional[str] = None
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator('pid', mode='before')
    @classmethod
    def coerce_pid(cls, v):
        return str(v)

    @field_validator('shipping_fee', mode='before')
    @classmethod
    def none_fee_to_zero(cls, v):
        return v or 0


class BunjangOrderProduct(BaseSchema):
    id: int
    price: int


class BunjangOrderPayload(BaseSchema):
    product: BunjangOrderProduct
    delivery_price: int = Field(default=0, alias="deliveryPrice")


class BunjangPointBalance(BaseSchema):
    balance: float = 0
    point_expired_in_30_days: Optional[float] = Field(default=None, alias="pointExpiredIn30Days")


class BunjangOrderItemProduct(BaseSchema):
    id: Optional[str] = None

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v):
        return None if v is None else str(v)


class BunjangOrderItem(BaseSchema):
    status: str
    product: Optional[BunjangOrderItemProduct] = None
    purchase_confirmed_at: Optional[str] = Field(default=None, alias="purchaseConfirmedAt")


class BunjangOrder(BaseSchema):
    id: str
    order_items: List[BunjangOrderItem] = Field(default_factory=list, alias="orderItems")

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v):
        return str(v)


class BunjangOrderPage(BaseSchema):
    data: List[BunjangOrder] = Field(default_factory=list)
    page: int = 0
    total_pages: int = Field(default=0, alias="totalPages")

    @field_validator('data', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return v or []
