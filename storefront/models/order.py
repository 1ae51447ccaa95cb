"""
SQLAlchemy Order and Counter models
"""
import enum

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, JSON, CheckConstraint
from sqlalchemy.sql import func

from storefront.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class Order(Base):
    """
    Order database model

    Line items, shipping address and payment method are embedded JSON
    snapshots taken at checkout, so later product edits never alter a
    historical order.
    """

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_number = Column(String(20), nullable=False, unique=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    payment_status = Column(String(50), nullable=False, default="PENDING")

    items = Column(JSON, nullable=False, default=list)
    shipping_address = Column(JSON, nullable=False, default=dict)
    payment_method = Column(JSON, nullable=False, default=dict)

    subtotal = Column(Float, nullable=False, default=0)
    shipping_cost = Column(Float, nullable=False, default=0)
    tax_amount = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False, default=0)
    savings = Column(Float, nullable=False, default=0)

    shipping_method = Column(String(100), nullable=False, default="Standard")
    order_notes = Column(Text, nullable=False, default="")
    tracking_number = Column(String(100), nullable=True)

    gateway_order_id = Column(String(100), nullable=True, index=True)
    gateway_payment_id = Column(String(100), nullable=True)
    refund_id = Column(String(100), nullable=True)
    refund_amount = Column(Float, nullable=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='check_total_non_negative'),
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'SHIPPED', 'DELIVERED', 'CANCELLED', 'REFUNDED')",
            name='check_order_status_valid'
        ),
    )

    @property
    def customer_email(self):
        return (self.shipping_address or {}).get("email")

    @property
    def customer_name(self):
        address = self.shipping_address or {}
        return " ".join(p for p in (address.get("first_name"), address.get("last_name")) if p)

    def __repr__(self):
        return f"<Order(id={self.id}, order_number='{self.order_number}', status='{self.status}')>"


class Counter(Base):
    """Named monotonic counters (order numbering)"""

    __tablename__ = "counters"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Counter(name='{self.name}', value={self.value})>"
