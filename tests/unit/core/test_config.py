from datetime import datetime, timedelta, timezone

import pytest

from bunjang_bridge.core.config import Settings
from bunjang_bridge.core.utils import shopify_gid, to_utc_iso


def test_async_database_url_uses_asyncpg():
    settings = Settings(DATABASE_URL="postgresql://user:pw@db:5432/bridge")
    assert settings.async_database_url == "postgresql+asyncpg://user:pw@db:5432/bridge"


def test_missing_required_lists_unset_credentials(settings):
    assert settings.missing_required() == []
    bare = settings.model_copy(update={"BUNJANG_API_SECRET_KEY": "", "SHOPIFY_WEBHOOK_SECRET": ""})
    assert bare.missing_required() == ["SHOPIFY_WEBHOOK_SECRET", "BUNJANG_API_SECRET_KEY"]


def test_settings_are_frozen(settings):
    with pytest.raises(Exception):
        settings.PORT = 9000


def test_to_utc_iso_converts_offsets():
    kst = timezone(timedelta(hours=9))
    assert to_utc_iso(datetime(2025, 6, 1, 9, 30, tzinfo=kst)) == "2025-06-01T00:30:00Z"
    assert to_utc_iso(datetime(2025, 6, 1, 0, 30)) == "2025-06-01T00:30:00Z"


def test_shopify_gid_is_idempotent():
    assert shopify_gid("Product", 8001) == "gid://shopify/Product/8001"
    assert shopify_gid("Product", "gid://shopify/Product/8001") == "gid://shopify/Product/8001"
