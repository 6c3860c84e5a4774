"""
Catalog Module - Models
========================
Second-hand listings with stock counters.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Text,
    ForeignKey, DateTime, CheckConstraint, false,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class ProductStatus(str, enum.Enum):
    AVAILABLE = "available"
    SOLD = "sold"


# Display order for condition sorting (best first)
CONDITION_RANK = {
    "New": 1,
    "Like New": 2,
    "Used - Good": 3,
    "Used - Fair": 4,
    "Used - Poor": 5,
}


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(255), nullable=True)

    # Stock
    quantity = Column(Integer, default=1, nullable=False)
    sold_quantity = Column(Integer, default=0, server_default="0", nullable=False)
    is_unlimited = Column(Boolean, default=False, server_default=false(), nullable=False)
    status = Column(String(20), default=ProductStatus.AVAILABLE.value, nullable=False, index=True)

    # Display-only metadata
    item_condition = Column(String(50), nullable=True)
    usage_duration = Column(String(100), nullable=True)
    usage_days = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    seller = relationship("User", back_populates="products")

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_product_price"),
        CheckConstraint("quantity >= 1", name="ck_product_qty"),
        CheckConstraint("sold_quantity >= 0", name="ck_product_sold_qty"),
    )

    @property
    def available_quantity(self):
        """Units left for finite stock; None means no ceiling."""
        if self.is_unlimited:
            return None
        return max(0, self.quantity - (self.sold_quantity or 0))

    @property
    def is_sold(self) -> bool:
        return not self.is_unlimited and self.status == ProductStatus.SOLD.value

    def record_sale(self, quantity: int):
        """Advance the sold counter and derive status. No-op for unlimited listings."""
        if self.is_unlimited:
            return
        self.sold_quantity = (self.sold_quantity or 0) + quantity
        if self.sold_quantity >= self.quantity:
            self.status = ProductStatus.SOLD.value
        else:
            self.status = ProductStatus.AVAILABLE.value

    def __repr__(self):
        return f"<Product {self.id} {self.title}>"
