from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from bunjang_bridge.cli.run_sync import cli
from bunjang_bridge.schemas.sync import FullSyncResult, LowStockProduct


@pytest.fixture
def services(mocker, settings):
    services = MagicMock()
    services.inventory.full_sync = AsyncMock(return_value=FullSyncResult(total=2, synced=2))
    services.inventory.low_stock_scan = AsyncMock(return_value=[
        LowStockProduct(bunjang_pid="12345", shopify_product_gid="gid://shopify/Product/8001",
                        product_name="Vintage bag", current_stock=1),
    ])
    mocker.patch("bunjang_bridge.cli.run_sync.get_settings", return_value=settings)
    mocker.patch("bunjang_bridge.cli.run_sync.configure_logging")
    mocker.patch("bunjang_bridge.cli.run_sync.async_session", MagicMock())
    mocker.patch("bunjang_bridge.cli.run_sync.build_services", return_value=services)
    return services


def test_inventory_sync_prints_result(services):
    result = CliRunner().invoke(cli, ["inventory-sync", "--cap", "2"])

    assert result.exit_code == 0, result.output
    assert '"synced": 2' in result.output
    services.inventory.full_sync.assert_awaited_once_with(cap=2, job_id="cli")


def test_low_stock_lists_products(services):
    result = CliRunner().invoke(cli, ["low-stock", "--threshold", "3"])

    assert result.exit_code == 0, result.output
    assert "12345\t1\tVintage bag" in result.output
    services.inventory.low_stock_scan.assert_awaited_once_with(3)
