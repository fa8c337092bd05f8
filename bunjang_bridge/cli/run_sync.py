# bunjang_bridge/cli/run_sync.py
import asyncio
import json
from datetime import datetime, timedelta, timezone

import click

from bunjang_bridge.core.config import get_settings
from bunjang_bridge.core.logging_config import configure_logging
from bunjang_bridge.database import async_session
from bunjang_bridge.services.factory import build_services


@click.group()
def cli():
    """Run reconciliation tasks in-process, bypassing the job queue"""
    configure_logging()


@cli.command("status-sync")
@click.option('--start', type=click.DateTime(), default=None, help='Window start (UTC), defaults to 24h ago')
@click.option('--end', type=click.DateTime(), default=None, help='Window end (UTC), defaults to now')
def status_sync(start, end):
    """Mirror Bunjang order statuses onto Shopify orders"""
    end = end.replace(tzinfo=timezone.utc) if end else datetime.now(timezone.utc)
    start = start.replace(tzinfo=timezone.utc) if start else end - timedelta(days=1)

    async def _run():
        settings = get_settings()
        async with async_session() as session:
            services = build_services(settings, session)
            return await services.status_sync.sync_statuses(start, end, job_id="cli")

    result = asyncio.run(_run())
    click.echo(json.dumps(result.model_dump(mode="json"), indent=2))


@cli.command("inventory-sync")
@click.option('--cap', type=int, default=None, help='Maximum number of products to sync')
def inventory_sync(cap):
    """Push Bunjang quantities for all synced products to Shopify"""
    async def _run():
        settings = get_settings()
        async with async_session() as session:
            services = build_services(settings, session)
            return await services.inventory.full_sync(cap=cap, job_id="cli")

    result = asyncio.run(_run())
    click.echo(json.dumps(result.model_dump(mode="json"), indent=2))


@cli.command("low-stock")
@click.option('--threshold', type=int, default=None)
def low_stock(threshold):
    """List linked products at or below the low-stock threshold"""
    async def _run():
        settings = get_settings()
        async with async_session() as session:
            services = build_services(settings, session)
            return await services.inventory.low_stock_scan(threshold)

    for product in asyncio.run(_run()):
        click.echo(f"{product.bunjang_pid}\t{product.current_stock}\t{product.product_name or ''}")


if __name__ == "__main__":
    cli()
