"""
Result schemas returned by the sync services and the operator routes.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from bunjang_bridge.schemas.base import BaseSchema


class OrderProcessResult(BaseSchema):
    success: bool
    bunjang_order_ids: List[str] = Field(default_factory=list)
    message: str = ""
    already_processed: List[str] = Field(default_factory=list)


class StatusSyncResult(BaseSchema):
    synced_count: int = 0
    error_count: int = 0
    not_found_count: int = 0


class BatchSyncItem(BaseSchema):
    pid: str
    success: bool
    quantity: Optional[int] = None
    error: Optional[str] = None


class BatchSyncResult(BaseSchema):
    success: int = 0
    failed: int = 0
    details: List[BatchSyncItem] = Field(default_factory=list)


class LowStockProduct(BaseSchema):
    bunjang_pid: str
    shopify_product_gid: str
    product_name: Optional[str] = None
    current_stock: int
    last_updated: Optional[datetime] = None


class FullSyncResult(BaseSchema):
    total: int = 0
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    low_stock: List[LowStockProduct] = Field(default_factory=list)


class InventoryAdjustment(BaseSchema):
    bunjang_pid: str
    previous_quantity: Optional[int] = None
    new_quantity: int


class InventoryTarget(BaseSchema):
    pid: str
    quantity: int


class StatusSyncRequest(BaseSchema):
    start_date: datetime
    end_date: datetime


class JobStatusResponse(BaseSchema):
    id: int
    job_type: str
    status: str
    attempts: int
    result: Optional[dict] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
