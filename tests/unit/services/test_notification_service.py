import logging

import pytest

from bunjang_bridge.schemas.sync import LowStockProduct
from bunjang_bridge.services.notification_service import AlertNotifier


@pytest.mark.asyncio
async def test_critical_balance_logs_at_critical(settings, caplog):
    caplog.set_level(logging.WARNING, logger="bunjang_bridge.alerts")

    await AlertNotifier(settings).send_low_balance_alert(400000, critical=True, order_reference="987")

    record = caplog.records[-1]
    assert record.levelno == logging.CRITICAL
    assert "400000" in record.getMessage()


@pytest.mark.asyncio
async def test_low_stock_alert_names_products(settings, caplog):
    caplog.set_level(logging.WARNING, logger="bunjang_bridge.alerts")
    products = [LowStockProduct(bunjang_pid="12345", shopify_product_gid="gid://shopify/Product/8001", current_stock=1)]

    await AlertNotifier(settings).send_low_stock_alert(products)

    assert any("12345" in r.getMessage() for r in caplog.records)
