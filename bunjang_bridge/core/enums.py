"""
Shared enums and constants used across the application.
"""

from enum import Enum
from typing import Dict, Optional


class SyncStatus(str, Enum):
    """Inventory sync state of a ProductLink"""
    PENDING = "PENDING"
    SYNCED = "SYNCED"
    ERROR = "ERROR"


class OrderLinkStatus(str, Enum):
    """Lifecycle of a (Shopify order, line item) claim"""
    CLAIMED = "claimed"
    PLACED = "placed"
    FAILED = "failed"


class JobStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class JobType(str, Enum):
    PROCESS_ORDER = "process_order"
    ADJUST_INVENTORY = "adjust_inventory"
    SYNC_ORDER_STATUSES = "sync_order_statuses"
    FULL_INVENTORY_SYNC = "full_inventory_sync"


class InventoryDirection(str, Enum):
    DECREMENT = "decrement"
    RESTORE = "restore"


class WebhookTopic(str, Enum):
    ORDERS_CREATE = "orders/create"
    ORDERS_UPDATED = "orders/updated"
    INVENTORY_LEVELS_UPDATE = "inventory_levels/update"


class BunjangOrderStatus(str, Enum):
    """Order item statuses reported by the Bunjang orders endpoint"""
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    SHIP_READY = "SHIP_READY"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERY_COMPLETED = "DELIVERY_COMPLETED"
    PURCHASE_CONFIRM = "PURCHASE_CONFIRM"
    CANCEL_REQUESTED_BEFORE_SHIPPING = "CANCEL_REQUESTED_BEFORE_SHIPPING"
    REFUNDED = "REFUNDED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    RETURNED = "RETURNED"


FULFILLMENT_STATUSES = frozenset({
    BunjangOrderStatus.SHIP_READY,
    BunjangOrderStatus.IN_TRANSIT,
    BunjangOrderStatus.DELIVERY_COMPLETED,
})

CANCELLATION_STATUSES = frozenset({
    BunjangOrderStatus.CANCEL_REQUESTED_BEFORE_SHIPPING,
    BunjangOrderStatus.REFUNDED,
    BunjangOrderStatus.RETURN_REQUESTED,
    BunjangOrderStatus.RETURNED,
})


class BunjangErrorCode(str, Enum):
    """Domain error codes returned by Bunjang order creation"""
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    PRODUCT_SOLD_OUT = "PRODUCT_SOLD_OUT"
    PRODUCT_ON_HOLD = "PRODUCT_ON_HOLD"
    INVALID_PRODUCT_PRICE = "INVALID_PRODUCT_PRICE"
    INVALID_PRODUCT_QTY = "INVALID_PRODUCT_QTY"
    POINT_SHORTAGE = "POINT_SHORTAGE"
    INVALID_SELF_PURCHASE = "INVALID_SELF_PURCHASE"
    BLOCKED_BY_OPPONENT = "BLOCKED_BY_OPPONENT"
    BLOCKED_BY_SELF = "BLOCKED_BY_SELF"


class OrderFailureReason(str, Enum):
    """Suffix written into the PID-<pid>-<reason> failure tag"""
    NOT_FOUND = "NotFound"
    MAP_FAIL = "MapFail"
    NO_ORDER_ID = "NoOrderId"
    CREATE_FAIL = "CreateFail"
    NOT_AVAILABLE = "NotAvailable"
    PRICE_CHANGED = "PriceChanged"
    OUT_OF_STOCK = "OutOfStock"
    INSUFFICIENT_POINTS = "InsufficientPoints"
    SELF_PURCHASE = "SelfPurchase"
    BLOCKED = "Blocked"
    EXCEPTION = "Exception"


ERROR_CODE_FAILURE_REASONS: Dict[BunjangErrorCode, OrderFailureReason] = {
    BunjangErrorCode.PRODUCT_NOT_FOUND: OrderFailureReason.NOT_AVAILABLE,
    BunjangErrorCode.PRODUCT_SOLD_OUT: OrderFailureReason.NOT_AVAILABLE,
    BunjangErrorCode.PRODUCT_ON_HOLD: OrderFailureReason.NOT_AVAILABLE,
    BunjangErrorCode.INVALID_PRODUCT_PRICE: OrderFailureReason.PRICE_CHANGED,
    BunjangErrorCode.INVALID_PRODUCT_QTY: OrderFailureReason.OUT_OF_STOCK,
    BunjangErrorCode.POINT_SHORTAGE: OrderFailureReason.INSUFFICIENT_POINTS,
    BunjangErrorCode.INVALID_SELF_PURCHASE: OrderFailureReason.SELF_PURCHASE,
    BunjangErrorCode.BLOCKED_BY_OPPONENT: OrderFailureReason.BLOCKED,
    BunjangErrorCode.BLOCKED_BY_SELF: OrderFailureReason.BLOCKED,
}

# Every known error code must map to a failure reason
_unmapped = set(BunjangErrorCode) - set(ERROR_CODE_FAILURE_REASONS)
if _unmapped:
    raise RuntimeError(f"Bunjang error codes without a failure reason: {sorted(c.value for c in _unmapped)}")


def failure_tag_suffix(error_code: Optional[str]) -> str:
    """Tag suffix for a Bunjang order-creation error code (raw code when unrecognized)."""
    if not error_code:
        return OrderFailureReason.CREATE_FAIL.value
    try:
        return ERROR_CODE_FAILURE_REASONS[BunjangErrorCode(error_code)].value
    except ValueError:
        return error_code
