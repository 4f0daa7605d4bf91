"""SQLAlchemy models for the order tables.

``orders`` holds the current state of each order; items are rewritten
with the order, while the two history tables only ever receive inserts.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from agrimarket.infrastructure.database import Base


# ============================================================================
# Order Models
# ============================================================================


class OrderModel(Base):
    """Current state of an order.

    ``total_amount`` is denormalized from the items so that reports can
    sort and sum in SQL; it is recomputed from the items on every save.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    order_number = Column(String(32), nullable=False, unique=True, index=True)
    buyer_id = Column(String(100), nullable=False, index=True)
    buyer_name = Column(String(255), nullable=False, default="")
    seller_id = Column(String(100), nullable=False, index=True)
    seller_name = Column(String(255), nullable=False, default="")
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="pending", index=True)
    payment_method = Column(String(30), nullable=False)

    # Totals
    currency = Column(String(3), nullable=False, default="INR")
    total_amount = Column(Integer, nullable=False)

    # Addresses
    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)

    # Shipping info
    tracking_provider = Column(String(100), nullable=True)
    tracking_number = Column(String(100), nullable=True)
    tracking_url = Column(Text, nullable=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)

    # Payment receipt
    payment_transaction_id = Column(String(100), nullable=True)
    payment_paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_receipt_url = Column(Text, nullable=True)

    notes = Column(Text, nullable=False, default="")
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    items = relationship(
        "OrderItemModel",
        order_by="OrderItemModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    status_history = relationship(
        "OrderStatusHistoryModel",
        order_by="OrderStatusHistoryModel.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    payment_history = relationship(
        "OrderPaymentHistoryModel",
        order_by="OrderPaymentHistoryModel.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<OrderModel {self.order_number} {self.status}/{self.payment_status} v{self.version}>"


class OrderItemModel(Base):
    """A produce line of an order."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    product_id = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    unit = Column(String(20), nullable=False, default="kg")
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)


class OrderStatusHistoryModel(Base):
    """Append-only audit trail of status transitions."""

    __tablename__ = "order_status_history"
    __table_args__ = (UniqueConstraint("order_id", "sequence", name="uq_status_history_sequence"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False)
    comment = Column(Text, nullable=False, default="")
    actor_id = Column(String(100), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False)


class OrderPaymentHistoryModel(Base):
    """Append-only audit trail of payment status changes."""

    __tablename__ = "order_payment_history"
    __table_args__ = (UniqueConstraint("order_id", "sequence", name="uq_payment_history_sequence"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence = Column(Integer, nullable=False)
    payment_status = Column(String(20), nullable=False)
    comment = Column(Text, nullable=False, default="")
    actor_id = Column(String(100), nullable=False, default="")
    transaction_id = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
