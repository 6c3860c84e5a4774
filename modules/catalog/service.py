"""
Catalog Module - Service Layer
================================
Listing creation, browse/search with sorting, and product lookup.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy import case, or_, desc, asc
from sqlalchemy.orm import Session, joinedload

from common.exceptions import ValidationError, NotFoundError
from common.helpers import safe_int, safe_decimal, clean_str, format_price, iso
from common.upload import save_upload_file, delete_file
from modules.catalog.models import Product, ProductStatus, CONDITION_RANK

logger = logging.getLogger("remarket.catalog")

_TRUTHY = {"1", "true", "on", "yes"}

# Bounds of the products columns
MAX_PRICE = Decimal("99999999.99")
MAX_STOCK = 1000000
MAX_USAGE_DAYS = 100000
TEXT_LIMITS = {"Title": 200, "Condition": 50, "Usage duration": 100}

_condition_order = case(CONDITION_RANK, value=Product.item_condition, else_=len(CONDITION_RANK) + 1)

SORT_OPTIONS = {
    "newest": [desc(Product.created_at), desc(Product.id)],
    "price_asc": [asc(Product.price), asc(Product.id)],
    "price_desc": [desc(Product.price), asc(Product.id)],
    "sales_desc": [desc(Product.sold_quantity), asc(Product.id)],
    "condition_best": [asc(_condition_order), asc(Product.id)],
    "condition_worst": [desc(_condition_order), asc(Product.id)],
    "usage_low": [asc(Product.usage_days), asc(Product.id)],
    "usage_high": [desc(Product.usage_days), asc(Product.id)],
}


def product_to_dict(product: Product) -> dict:
    """JSON-ready listing, including seller name and remaining stock."""
    return {
        "id": product.id,
        "seller_id": product.seller_id,
        "seller_name": product.seller.username if product.seller else None,
        "title": product.title,
        "description": product.description,
        "price": format_price(product.price),
        "image_url": product.image_url,
        "quantity": product.quantity,
        "sold_quantity": product.sold_quantity,
        "available_quantity": product.available_quantity,
        "is_unlimited": bool(product.is_unlimited),
        "status": product.status,
        "item_condition": product.item_condition,
        "usage_duration": product.usage_duration,
        "usage_days": product.usage_days,
        "created_at": iso(product.created_at),
    }


class CatalogService:

    # ==========================================
    # Create
    # ==========================================

    def create_product(
        self,
        db: Session,
        seller_id: int,
        title: str,
        price,
        description: str = "",
        quantity=1,
        is_unlimited=False,
        item_condition: str = "",
        usage_duration: str = "",
        usage_days=0,
        image: Optional[UploadFile] = None,
    ) -> Product:
        """
        Validate and insert a new listing owned by `seller_id`.

        Raises ValidationError for missing title/price or out-of-range numbers.
        """
        title = clean_str(title)
        price_value = safe_decimal(price)
        if not title or price_value is None:
            raise ValidationError("Title and Price are required")
        if price_value > MAX_PRICE:
            raise ValidationError(f"Price cannot exceed {MAX_PRICE}")
        if price_value > 0:
            price_value = price_value.quantize(Decimal("0.01"))
        if price_value <= 0:
            raise ValidationError("Price must be greater than zero")

        qty = safe_int(quantity) if quantity not in (None, "") else 1
        if qty is None or qty < 1:
            raise ValidationError("Quantity must be at least 1")
        if qty > MAX_STOCK:
            raise ValidationError(f"Quantity cannot exceed {MAX_STOCK}")

        days = safe_int(usage_days) if usage_days not in (None, "") else 0
        if days is None or days < 0:
            raise ValidationError("Usage days must be zero or more")
        if days > MAX_USAGE_DAYS:
            raise ValidationError(f"Usage days cannot exceed {MAX_USAGE_DAYS}")

        item_condition, usage_duration = clean_str(item_condition), clean_str(usage_duration)
        for label, value in (("Title", title), ("Condition", item_condition), ("Usage duration", usage_duration)):
            if len(value) > TEXT_LIMITS[label]:
                raise ValidationError(f"{label} is too long (max {TEXT_LIMITS[label]} characters)")

        unlimited = is_unlimited if isinstance(is_unlimited, bool) else clean_str(is_unlimited).lower() in _TRUTHY

        image_path = save_upload_file(image, subfolder="products")

        product = Product(
            seller_id=seller_id,
            title=title,
            description=clean_str(description) or None,
            price=price_value,
            image_url=image_path,
            quantity=qty,
            sold_quantity=0,
            is_unlimited=unlimited,
            status=ProductStatus.AVAILABLE.value,
            item_condition=item_condition or None,
            usage_duration=usage_duration or None,
            usage_days=days,
        )
        try:
            db.add(product)
            db.flush()
        except Exception:
            delete_file(image_path)
            raise
        logger.info(f"User #{seller_id} listed product #{product.id}")
        return product

    # ==========================================
    # Query
    # ==========================================

    def get_product(self, db: Session, product_id: int) -> Product:
        product = (
            db.query(Product)
            .options(joinedload(Product.seller))
            .filter(Product.id == product_id)
            .first()
        )
        if not product:
            raise NotFoundError("Product not found")
        return product

    def search_products(self, db: Session, search: str = "", sort: str = "newest") -> List[Product]:
        """Available listings, optionally filtered by substring of title/description."""
        q = db.query(Product).options(joinedload(Product.seller)).filter(
            Product.status == ProductStatus.AVAILABLE.value,
        )
        term = clean_str(search)
        if term:
            pattern = f"%{term}%"
            q = q.filter(or_(Product.title.ilike(pattern), Product.description.ilike(pattern)))

        return q.order_by(*SORT_OPTIONS.get(sort, SORT_OPTIONS["newest"])).all()

    def get_seller_listings(self, db: Session, seller_id: int) -> List[Product]:
        return (
            db.query(Product)
            .options(joinedload(Product.seller))
            .filter(Product.seller_id == seller_id)
            .order_by(desc(Product.created_at), desc(Product.id))
            .all()
        )


# Singleton
catalog_service = CatalogService()
