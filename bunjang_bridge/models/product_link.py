from sqlalchemy import Column, DateTime, Integer, String, Text

from bunjang_bridge.core.enums import SyncStatus
from bunjang_bridge.database import Base
from bunjang_bridge.core.utils import utcnow


class ProductLink(Base):
    """
    Association between a Bunjang product (PID) and the Shopify product that
    republishes it, plus the last quantity we believe Bunjang holds.
    """

    __tablename__ = "product_links"

    id = Column(Integer, primary_key=True)
    bunjang_pid = Column(String(64), nullable=False, unique=True, index=True)
    bunjang_product_name = Column(String(512), nullable=True)
    shopify_product_gid = Column(String(128), nullable=False, index=True)
    bunjang_quantity = Column(Integer, nullable=True)
    sync_status = Column(String(16), nullable=False, default=SyncStatus.PENDING.value, index=True)
    sync_error = Column(Text, nullable=True)
    last_inventory_sync_at = Column(DateTime(timezone=True), nullable=True)
    bunjang_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<ProductLink(pid={self.bunjang_pid}, product={self.shopify_product_gid}, qty={self.bunjang_quantity})>"
