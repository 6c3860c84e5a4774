"""
Order Module - Models
======================
One order row per purchased line, with price and shipping snapshot taken at
purchase time.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Text,
    ForeignKey, DateTime, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base
from modules.user.models import NAME_MAX_LENGTH, PHONE_MAX_LENGTH


class ShippingStatus(str, enum.Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    RECEIVED = "received"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)

    # Price snapshot at time of purchase
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)

    # Shipping snapshot at time of purchase
    shipping_name = Column(String(NAME_MAX_LENGTH), nullable=False)
    shipping_address = Column(Text, nullable=False)
    shipping_phone = Column(String(PHONE_MAX_LENGTH), nullable=False)

    # Lifecycle
    shipping_status = Column(String(20), default=ShippingStatus.PENDING.value, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    buyer = relationship("User", foreign_keys=[buyer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_qty"),
    )

    def __repr__(self):
        return f"<Order {self.id} {self.shipping_status}>"
