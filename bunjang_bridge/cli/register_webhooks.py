# bunjang_bridge/cli/register_webhooks.py
import asyncio
from typing import List

import click

from bunjang_bridge.core.config import get_settings
from bunjang_bridge.core.enums import WebhookTopic
from bunjang_bridge.services.shopify.client import ShopifyClient


async def reregister_webhooks(client: ShopifyClient, base_url: str) -> List[dict]:
    """Delete every registered webhook, then register our topics under ``base_url``."""
    existing = await client.list_webhooks()
    for webhook in existing:
        await client.delete_webhook(webhook["id"])
        click.echo(f"Deleted webhook {webhook['id']} ({webhook.get('topic')} -> {webhook.get('address')})")

    created = []
    for topic in WebhookTopic:
        address = f"{base_url.rstrip('/')}/webhooks/{topic.value}"
        webhook = await client.create_webhook(topic.value, address)
        created.append(webhook)
        click.echo(f"Registered {topic.value} -> {address}")
    return created


@click.command()
@click.option('--base-url', default=None, help='Public base URL of this service (defaults to WEBHOOK_BASE_URL)')
def register_webhooks(base_url):
    """Replace all Shopify webhooks with the bridge's order and inventory webhooks"""
    settings = get_settings()
    base_url = base_url or settings.WEBHOOK_BASE_URL
    if not base_url:
        raise click.UsageError("Pass --base-url or set WEBHOOK_BASE_URL")

    client = ShopifyClient.from_settings(settings)
    created = asyncio.run(reregister_webhooks(client, base_url))
    click.echo(f"{len(created)} webhooks registered")


if __name__ == "__main__":
    register_webhooks()
