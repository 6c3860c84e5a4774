"""
Order Module - Service Layer
===============================
Read side: a buyer's purchases and a seller's sales history.
"""

from typing import List

from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload

from common.helpers import format_price, iso
from modules.order.models import Order


def purchase_to_dict(order: Order) -> dict:
    """Buyer's view of one order."""
    product = order.product
    return {
        "order_id": order.id,
        "purchase_date": iso(order.created_at),
        "quantity": order.quantity,
        "unit_price": format_price(order.unit_price),
        "total_price": format_price(order.total_price),
        "shipping_status": order.shipping_status,
        "shipped_at": iso(order.shipped_at),
        "received_at": iso(order.received_at),
        "product_id": order.product_id,
        "title": product.title if product else None,
        "image_url": product.image_url if product else None,
        "seller_id": order.seller_id,
        "seller_name": order.seller.username if order.seller else None,
        "seller_email": order.seller.email if order.seller else None,
    }


def sale_to_dict(order: Order) -> dict:
    """Seller's view of one order, including where to ship it."""
    product = order.product
    return {
        "order_id": order.id,
        "sale_date": iso(order.created_at),
        "quantity": order.quantity,
        "unit_price": format_price(order.unit_price),
        "total_price": format_price(order.total_price),
        "shipping_status": order.shipping_status,
        "shipped_at": iso(order.shipped_at),
        "received_at": iso(order.received_at),
        "shipping_name": order.shipping_name,
        "shipping_address": order.shipping_address,
        "shipping_phone": order.shipping_phone,
        "title": product.title if product else None,
        "image_url": product.image_url if product else None,
        "buyer_id": order.buyer_id,
        "buyer_name": order.buyer.username if order.buyer else None,
        "buyer_email": order.buyer.email if order.buyer else None,
    }


class OrderService:

    def get_buyer_orders(self, db: Session, buyer_id: int) -> List[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.product), joinedload(Order.seller))
            .filter(Order.buyer_id == buyer_id)
            .order_by(desc(Order.created_at), desc(Order.id))
            .all()
        )

    def get_seller_sales(self, db: Session, seller_id: int) -> List[Order]:
        return (
            db.query(Order)
            .options(joinedload(Order.product), joinedload(Order.buyer))
            .filter(Order.seller_id == seller_id)
            .order_by(desc(Order.created_at), desc(Order.id))
            .all()
        )


# Singleton
order_service = OrderService()
