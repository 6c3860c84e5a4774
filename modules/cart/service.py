"""
Cart Module - Service Layer
==============================
Cart management: add (merge), remove, list for display, and the line items
handed to checkout.
"""

import logging
from typing import List

from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError

from common.exceptions import (
    ValidationError, NotFoundError, SelfPurchaseError, AlreadySoldError, InsufficientStockError,
)
from common.helpers import format_price
from modules.cart.models import CartItem
from modules.catalog.models import Product
from modules.order.checkout import LineItem, MAX_LINE_QUANTITY

logger = logging.getLogger("remarket.cart")


class CartService:

    def add_item(self, db: Session, user_id: int, product_id: int, quantity: int = 1) -> CartItem:
        """
        Add `quantity` of a product to the user's cart, merging with an
        existing row. Stock is checked optimistically here; checkout
        re-validates under lock.
        """
        quantity = max(1, quantity or 1)

        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product not found")
        if product.seller_id == user_id:
            raise SelfPurchaseError()
        if product.is_sold:
            raise AlreadySoldError("Product is sold")

        item = self._get_item(db, user_id, product_id)
        in_cart = item.quantity if item else 0

        self._check_room(product, in_cart, quantity)

        if item:
            item.quantity = in_cart + quantity
            db.flush()
            return item

        try:
            with db.begin_nested():
                item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
                db.add(item)
        except IntegrityError:
            # A concurrent add created the row first: merge into it
            item = self._get_item(db, user_id, product_id)
            self._check_room(product, item.quantity, quantity)
            item.quantity += quantity
            db.flush()
        return item

    def remove_item(self, db: Session, user_id: int, cart_item_id: int) -> bool:
        """Delete a cart row if the user owns it. Returns True if a row was removed."""
        deleted = db.query(CartItem).filter(
            CartItem.id == cart_item_id,
            CartItem.user_id == user_id,
        ).delete(synchronize_session=False)
        db.flush()
        return bool(deleted)

    def list_items(self, db: Session, user_id: int) -> List[dict]:
        """
        Cart rows joined with product and seller for display. Rows whose
        product has since sold out are kept and flagged so the client can
        prompt removal.
        """
        items = (
            db.query(CartItem)
            .options(joinedload(CartItem.product).joinedload(Product.seller))
            .filter(CartItem.user_id == user_id)
            .order_by(CartItem.id)
            .all()
        )
        result = []
        for item in items:
            p = item.product
            result.append({
                "cart_id": item.id,
                "cart_quantity": item.quantity,
                "product_id": p.id,
                "title": p.title,
                "price": format_price(p.price),
                "line_total": format_price(p.price * item.quantity),
                "image_url": p.image_url,
                "seller_id": p.seller_id,
                "seller_name": p.seller.username if p.seller else None,
                "status": p.status,
                "is_unlimited": bool(p.is_unlimited),
                "available_quantity": p.available_quantity,
                "is_sold": p.is_sold,
            })
        return result

    def get_line_items(self, db: Session, user_id: int) -> List[LineItem]:
        """The user's cart as checkout line items (with their cart row ids)."""
        rows = (
            db.query(CartItem.id, CartItem.product_id, CartItem.quantity)
            .filter(CartItem.user_id == user_id)
            .order_by(CartItem.id)
            .all()
        )
        return [LineItem(product_id=pid, quantity=qty, cart_item_id=cid) for cid, pid, qty in rows]

    # ==========================================
    # Private helpers
    # ==========================================

    def _check_room(self, product: Product, in_cart: int, quantity: int):
        """Finite stock must cover what is already in the cart plus the new units."""
        if in_cart + quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")
        if product.is_unlimited:
            return
        available = product.available_quantity
        if in_cart + quantity > available:
            raise InsufficientStockError(product.title, available - in_cart, quantity)

    def _get_item(self, db: Session, user_id: int, product_id: int):
        return db.query(CartItem).filter(
            CartItem.user_id == user_id,
            CartItem.product_id == product_id,
        ).first()


# Singleton
cart_service = CartService()
