"""Operator alerts for balance and stock conditions.

Delivery (email, chat) is handled outside this service; alerts are emitted as
structured log records on the ``bunjang_bridge.alerts`` logger so any log
shipper can route them.
"""

import logging
from typing import Optional, Sequence

from bunjang_bridge.core.config import Settings
from bunjang_bridge.schemas.sync import LowStockProduct

logger = logging.getLogger(__name__)
alert_logger = logging.getLogger("bunjang_bridge.alerts")


class AlertNotifier:
    """Raises operator alerts."""

    def __init__(self, settings: Settings):
        self._settings = settings

    async def send_low_balance_alert(
        self,
        balance: float,
        *,
        critical: bool,
        order_reference: Optional[str] = None,
    ) -> None:
        threshold = (
            self._settings.BUNJANG_CRITICAL_BALANCE_THRESHOLD
            if critical
            else self._settings.BUNJANG_LOW_BALANCE_THRESHOLD
        )
        level = logging.CRITICAL if critical else logging.WARNING
        alert_logger.log(
            level,
            f"Bunjang point balance {int(balance)} KRW is below "
            f"{'critical' if critical else 'low'} threshold {threshold} KRW"
            + (f" (after order {order_reference})" if order_reference else ""),
        )

    async def send_point_shortage_alert(self, pid: str, order_reference: str) -> None:
        alert_logger.critical(
            f"Bunjang order for PID {pid} (Shopify order {order_reference}) failed: "
            f"insufficient points. Top up the Bunjang point balance."
        )

    async def send_low_stock_alert(self, products: Sequence[LowStockProduct]) -> None:
        if not products:
            return
        lines = ", ".join(f"{p.bunjang_pid}={p.current_stock}" for p in products)
        alert_logger.warning(f"{len(products)} linked products are low on stock: {lines}")
