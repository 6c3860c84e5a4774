"""
Cart Routes
=============
Cart view plus add/remove, cart checkout and buy-now on `/cart?action=...`.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request, Depends, Body, Query
from sqlalchemy.orm import Session

from config.database import get_db
from common.security import csrf_check
from common.helpers import safe_int, safe_id
from common.exceptions import ValidationError
from modules.auth.deps import require_login
from modules.cart.service import cart_service
from modules.order.checkout import checkout_engine, LineItem, ShippingInfo, MAX_LINE_QUANTITY

router = APIRouter(tags=["cart"])


def _quantity(data: dict) -> int:
    """Requested quantity; missing or below 1 becomes 1."""
    qty = safe_int(data.get("quantity"))
    if qty and qty > MAX_LINE_QUANTITY:
        raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")
    return qty if qty and qty > 0 else 1


# ==========================================
# 🛒 View Cart
# ==========================================

@router.get("/cart")
async def view_cart(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    return cart_service.list_items(db, me.id)


# ==========================================
# ➕➖ Cart actions
# ==========================================

@router.post("/cart")
async def cart_action(
    request: Request,
    action: str = Query(""),
    data: Dict[str, Any] = Body(default={}),
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)

    if action == "add":
        product_id = safe_id(data.get("product_id"))
        if not product_id:
            raise ValidationError("Product ID required")
        cart_service.add_item(db, me.id, product_id, _quantity(data))
        db.commit()
        return {"success": True, "message": "Added to cart"}

    if action == "remove":
        cart_id = safe_id(data.get("cart_id"))
        if not cart_id:
            raise ValidationError("Cart ID required")
        cart_service.remove_item(db, me.id, cart_id)
        db.commit()
        return {"success": True, "message": "Removed from cart"}

    if action == "checkout":
        line_items = cart_service.get_line_items(db, me.id)
        if not line_items:
            raise ValidationError("Cart is empty")
        result = checkout_engine.checkout(db, me.id, line_items, ShippingInfo.from_payload(data))
        if not result.success:
            raise result.error
        return {"success": True, "message": "Checkout successful", "order_ids": result.order_ids}

    if action == "buy_now":
        product_id = safe_id(data.get("product_id"))
        if not product_id:
            raise ValidationError("Product ID required")
        line_items = [LineItem(product_id=product_id, quantity=_quantity(data))]
        result = checkout_engine.checkout(db, me.id, line_items, ShippingInfo.from_payload(data))
        if not result.success:
            raise result.error
        return {"success": True, "message": "Purchase successful", "order_ids": result.order_ids}

    raise ValidationError("Unknown action")
