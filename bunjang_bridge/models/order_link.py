from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from bunjang_bridge.core.enums import OrderLinkStatus
from bunjang_bridge.database import Base
from bunjang_bridge.core.utils import utcnow


class OrderLink(Base):
    """
    One row per (Shopify order, line item) that was sent to Bunjang.

    The unique constraint is what makes order creation idempotent: a line item
    is claimed before Bunjang is called, and a second claim loses.
    """

    __tablename__ = "marketplace_order_links"
    __table_args__ = (
        UniqueConstraint("shopify_order_id", "line_item_id", name="uq_order_link_order_line_item"),
    )

    id = Column(Integer, primary_key=True)
    shopify_order_id = Column(String(64), nullable=False, index=True)
    shopify_order_gid = Column(String(128), nullable=False)
    line_item_id = Column(String(64), nullable=False)
    bunjang_pid = Column(String(64), nullable=False, index=True)
    bunjang_order_id = Column(String(64), nullable=True, index=True)
    status = Column(String(16), nullable=False, default=OrderLinkStatus.CLAIMED.value)
    attempts = Column(Integer, nullable=False, default=1)
    failure_tag = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return (
            f"<OrderLink(order={self.shopify_order_id}, line_item={self.line_item_id}, "
            f"bunjang_order={self.bunjang_order_id}, status={self.status})>"
        )
