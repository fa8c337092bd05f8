# tests/conftest.py
import base64
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bunjang_bridge import models  # noqa: F401
from bunjang_bridge.core.config import Settings
from bunjang_bridge.database import Base
from bunjang_bridge.schemas.bunjang import BunjangPointBalance
from bunjang_bridge.services.bunjang.client import BunjangClient
from bunjang_bridge.services.notification_service import AlertNotifier
from bunjang_bridge.services.shopify.client import ShopifyClient
from tests.factories import make_order_payload

# Shared in-memory SQLite database for each test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_BUNJANG_SECRET = base64.b64encode(b"bunjang-test-secret-key-0123456789").decode()

@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        SHOPIFY_SHOP_DOMAIN="test-shop.myshopify.com",
        SHOPIFY_ADMIN_ACCESS_TOKEN="shpat_test_token",
        SHOPIFY_WEBHOOK_SECRET="test_webhook_secret",
        SHOPIFY_DEFAULT_LOCATION_ID="70000000001",
        BUNJANG_API_GENERAL_URL="https://openapi.bunjang.test",
        BUNJANG_API_ACCESS_KEY="test-access-key",
        BUNJANG_API_SECRET_KEY=TEST_BUNJANG_SECRET,
        FULL_SYNC_THROTTLE_SECONDS=0,
        SCHEDULER_ENABLED=False,
        JOB_WORKER_ENABLED=False,
    )

@pytest.fixture
async def test_engine():
    """Create the test database engine and tables (function-scoped)."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()

@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

@pytest.fixture
async def db_session(session_factory):
    """Provide a database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()

# Mock fixtures for external services
@pytest.fixture
def shopify_client():
    """Provide a mocked ShopifyClient"""
    client = AsyncMock(spec=ShopifyClient)
    client.find_order_by_tag.return_value = None
    client.get_product_inventory.return_value = None
    client.update_order.return_value = None
    return client

@pytest.fixture
def bunjang_client():
    """Provide a mocked BunjangClient"""
    client = AsyncMock(spec=BunjangClient)
    client.get_product_details.return_value = None
    client.get_point_balance.return_value = BunjangPointBalance(balance=5_000_000)
    return client

@pytest.fixture
def notifier():
    return AsyncMock(spec=AlertNotifier)

@pytest.fixture
def sample_order_payload():
    return make_order_payload()

@pytest.fixture
def mock_http(mocker):
    """Patch httpx.AsyncClient; returns the awaited ``request`` mock."""
    mock_client = mocker.patch("httpx.AsyncClient")
    request = AsyncMock()
    mock_client.return_value.__aenter__.return_value.request = request
    return request

@pytest.fixture
def test_app(settings, session_factory):
    """Application with the database and settings dependencies pointed at the test fixtures"""
    from bunjang_bridge.dependencies import get_app_settings, get_db
    from bunjang_bridge.main import create_app

    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_app_settings] = lambda: settings
    yield app
    app.dependency_overrides.clear()

@pytest.fixture
async def test_client(test_app):
    """Provide an async HTTP client bound to the test application"""
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
