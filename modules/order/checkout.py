"""
Order Module - Checkout Engine
================================
Turns a buyer's line items into orders as one all-or-nothing transaction:

1. Resolve shipping (request fields, else saved profile) - fails before any
   product row is touched
2. Lock every product row involved (SELECT FOR UPDATE, ascending id)
3. Validate all line items: existence, self-purchase, stock, sold status
4. Insert one Order per line with price + shipping snapshot, advance stock
5. Delete the consumed cart rows (cart checkout only)
6. Best-effort save of the shipping info onto the buyer profile (SAVEPOINT)
7. Commit, or roll back everything and report the single triggering error
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from common.exceptions import (
    MarketError, ValidationError, NotFoundError, MissingAddressError,
    SelfPurchaseError, InsufficientStockError, AlreadySoldError, StorageFailureError,
)
from common.helpers import clean_str
from modules.cart.models import CartItem
from modules.catalog.locks import with_exclusive_product_lock
from modules.catalog.models import Product, ProductStatus
from modules.order.models import Order, ShippingStatus
from modules.user.models import User, NAME_MAX_LENGTH, PHONE_MAX_LENGTH

logger = logging.getLogger("remarket.checkout")

# Per line item; keeps quantity and total inside the order columns
MAX_LINE_QUANTITY = 10000
MAX_LINE_TOTAL = Decimal("9999999999.99")


@dataclass(frozen=True)
class LineItem:
    """One (product, quantity) request; cart_item_id is set for cart checkout."""
    product_id: int
    quantity: int
    cart_item_id: Optional[int] = None


@dataclass
class ShippingInfo:
    name: str = ""
    address: str = ""
    phone: str = ""

    @classmethod
    def from_payload(cls, data: dict) -> "ShippingInfo":
        """Build from request JSON keys shipping_name/address/phone."""
        data = data or {}
        return cls(
            name=clean_str(data.get("shipping_name")),
            address=clean_str(data.get("shipping_address")),
            phone=clean_str(data.get("shipping_phone")),
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.name and self.address and self.phone)

    def check_lengths(self):
        """Raise ValidationError if a field is wider than its column."""
        if len(self.name) > NAME_MAX_LENGTH:
            raise ValidationError(f"Name is too long (max {NAME_MAX_LENGTH} characters)")
        if len(self.phone) > PHONE_MAX_LENGTH:
            raise ValidationError(f"Phone is too long (max {PHONE_MAX_LENGTH} characters)")


@dataclass
class CheckoutResult:
    """Outcome of checkout(): committed orders, or the error that rolled it back."""
    success: bool
    order_ids: List[int] = field(default_factory=list)
    error: Optional[MarketError] = None


class CheckoutEngine:

    def checkout(
        self,
        db: Session,
        buyer_id: int,
        line_items: List[LineItem],
        shipping: Optional[ShippingInfo] = None,
    ) -> CheckoutResult:
        """
        Place orders for `line_items` on behalf of `buyer_id`.

        Owns the transaction boundary: on success everything is committed;
        on any failure nothing is left behind (no orders, no stock change,
        cart untouched).
        """
        try:
            buyer = db.query(User).filter(User.id == buyer_id).first()
            if not buyer:
                raise NotFoundError("User not found")

            resolved = self.resolve_shipping(buyer, shipping or ShippingInfo())
            self._check_request(line_items)

            order_ids = with_exclusive_product_lock(
                db,
                [li.product_id for li in line_items],
                lambda locked: self._place_orders(db, buyer, line_items, locked, resolved),
            )
            db.commit()
        except MarketError as e:
            db.rollback()
            logger.info(f"Checkout rejected for user #{buyer_id}: {e.kind.value} {e.message}")
            return CheckoutResult(success=False, error=e)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Checkout storage failure for user #{buyer_id}")
            return CheckoutResult(
                success=False,
                error=StorageFailureError("Checkout failed, please try again"),
            )

        logger.info(f"User #{buyer_id} checked out {len(order_ids)} line(s): orders {order_ids}")
        return CheckoutResult(success=True, order_ids=order_ids)

    # ==========================================
    # Shipping
    # ==========================================

    def resolve_shipping(self, buyer: User, requested: ShippingInfo) -> ShippingInfo:
        """
        Use the request's shipping triple if complete. Otherwise fall back to
        the saved profile (request fields still win where given); if the
        profile is incomplete too, raise MissingAddressError naming the blank
        profile fields.
        """
        if requested.is_complete:
            requested.check_lengths()
            return requested

        missing = buyer.missing_shipping_fields
        if missing:
            raise MissingAddressError(missing)

        resolved = ShippingInfo(
            name=requested.name or buyer.real_name.strip(),
            address=requested.address or buyer.address.strip(),
            phone=requested.phone or buyer.phone.strip(),
        )
        resolved.check_lengths()
        return resolved

    # ==========================================
    # Private helpers
    # ==========================================

    def _check_request(self, line_items: List[LineItem]):
        if not line_items:
            raise ValidationError("No items to check out")
        for li in line_items:
            if not isinstance(li.quantity, int) or li.quantity < 1:
                raise ValidationError("Quantity must be at least 1")
            if li.quantity > MAX_LINE_QUANTITY:
                raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")

    def _place_orders(
        self,
        db: Session,
        buyer: User,
        line_items: List[LineItem],
        locked: Dict[int, Product],
        shipping: ShippingInfo,
    ) -> List[int]:
        # Validate every line before writing anything
        claimed = defaultdict(int)
        for li in line_items:
            product = locked.get(li.product_id)
            if product is None:
                raise NotFoundError(f"Product {li.product_id} is no longer available")
            if product.seller_id == buyer.id:
                raise SelfPurchaseError()
            if product.price * li.quantity > MAX_LINE_TOTAL:
                raise ValidationError(f"Order total for {product.title} is too large")
            if not product.is_unlimited:
                available = product.available_quantity - claimed[product.id]
                if available < li.quantity:
                    raise InsufficientStockError(product.title, available, li.quantity)
                if product.status == ProductStatus.SOLD.value:
                    raise AlreadySoldError()
                claimed[product.id] += li.quantity

        orders = []
        for li in line_items:
            product = locked[li.product_id]
            order = Order(
                buyer_id=buyer.id,
                seller_id=product.seller_id,
                product_id=product.id,
                quantity=li.quantity,
                unit_price=product.price,
                total_price=product.price * li.quantity,
                shipping_name=shipping.name,
                shipping_address=shipping.address,
                shipping_phone=shipping.phone,
                shipping_status=ShippingStatus.PENDING.value,
            )
            db.add(order)
            orders.append(order)
            product.record_sale(li.quantity)

        cart_item_ids = [li.cart_item_id for li in line_items if li.cart_item_id]
        if cart_item_ids:
            db.query(CartItem).filter(
                CartItem.id.in_(cart_item_ids),
                CartItem.user_id == buyer.id,
            ).delete(synchronize_session=False)

        db.flush()
        self._save_profile(db, buyer, shipping)
        return [o.id for o in orders]

    def _save_profile(self, db: Session, buyer: User, shipping: ShippingInfo):
        """Remember the last successful shipping info. Never fails the checkout."""
        try:
            with db.begin_nested():
                self._write_profile(db, buyer, shipping)
        except SQLAlchemyError as e:
            logger.warning(f"Could not save shipping profile for user #{buyer.id}: {e}")

    def _write_profile(self, db: Session, buyer: User, shipping: ShippingInfo):
        buyer.real_name = shipping.name
        buyer.address = shipping.address
        buyer.phone = shipping.phone
        db.flush()


# Singleton
checkout_engine = CheckoutEngine()
