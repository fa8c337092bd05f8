from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bunjang_bridge.core.config import Settings, get_settings
from bunjang_bridge.database import async_session
from bunjang_bridge.services.factory import SyncServices, build_services


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_app_settings() -> Settings:
    return get_settings()


def get_sync_services(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> SyncServices:
    """Services bound to the request's session, sharing the app's per-PID locks."""
    return build_services(settings, db, locks=getattr(request.app.state, "product_locks", None))
