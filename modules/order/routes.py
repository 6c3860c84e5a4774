"""
Order Routes
==============
Buyer side: purchase history and receipt confirmation (`/orders`),
seller side: listings, sales and shipping updates (`/dashboard`).
"""

from typing import Any, Dict

from fastapi import APIRouter, Request, Depends, Body, Query
from sqlalchemy.orm import Session

from config.database import get_db
from common.security import csrf_check
from common.helpers import safe_id
from common.exceptions import ValidationError
from modules.auth.deps import require_login
from modules.catalog.service import catalog_service, product_to_dict
from modules.order.lifecycle import order_lifecycle
from modules.order.service import order_service, purchase_to_dict, sale_to_dict

router = APIRouter(tags=["orders"])


# ==========================================
# 📋 My Purchases
# ==========================================

@router.get("/orders")
async def my_orders(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    return [purchase_to_dict(o) for o in order_service.get_buyer_orders(db, me.id)]


@router.post("/orders")
async def order_action(
    request: Request,
    action: str = Query(""),
    data: Dict[str, Any] = Body(default={}),
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)

    if action == "confirm_receipt":
        order_id = safe_id(data.get("order_id"))
        if not order_id:
            raise ValidationError("Order ID required")
        order_lifecycle.confirm_receipt(db, me.id, order_id)
        db.commit()
        return {"success": True}

    raise ValidationError("Unknown action")


# ==========================================
# 🏪 Seller Dashboard
# ==========================================

@router.get("/dashboard")
async def seller_dashboard(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    return {
        "listings": [product_to_dict(p) for p in catalog_service.get_seller_listings(db, me.id)],
        "sales": [sale_to_dict(o) for o in order_service.get_seller_sales(db, me.id)],
    }


@router.post("/dashboard")
async def dashboard_action(
    request: Request,
    action: str = Query(""),
    data: Dict[str, Any] = Body(default={}),
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    csrf_check(request)

    if action == "update_status":
        order_id = safe_id(data.get("order_id"))
        status = data.get("status")
        if not order_id or not isinstance(status, str):
            raise ValidationError("Invalid parameters")
        order_lifecycle.update_status(db, me.id, order_id, status)
        db.commit()
        return {"success": True}

    raise ValidationError("Unknown action")
