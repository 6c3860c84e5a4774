"""
Order Module - Shipping Lifecycle
===================================
pending -> shipped -> received, plus the seller's shipped -> pending revert.

Sellers drive ship/revert, buyers confirm receipt. An actor who isn't the
right party gets NotFoundError, same as for a missing order, so order
existence never leaks to outsiders.
"""

import logging
from typing import Dict, Set

from sqlalchemy.orm import Session

from common.exceptions import ValidationError, NotFoundError, InvalidTransitionError
from common.helpers import now_utc
from modules.order.models import Order, ShippingStatus

logger = logging.getLogger("remarket.order")


# Transitions each party may request, keyed by current status
SELLER_TRANSITIONS: Dict[ShippingStatus, Set[ShippingStatus]] = {
    ShippingStatus.PENDING: {ShippingStatus.SHIPPED},
    ShippingStatus.SHIPPED: {ShippingStatus.PENDING},
    ShippingStatus.RECEIVED: set(),
}

BUYER_TRANSITIONS: Dict[ShippingStatus, Set[ShippingStatus]] = {
    ShippingStatus.PENDING: set(),
    ShippingStatus.SHIPPED: {ShippingStatus.RECEIVED},
    ShippingStatus.RECEIVED: set(),
}


class OrderLifecycle:

    def can_transition(self, transitions: dict, current: str, target: ShippingStatus) -> bool:
        return target in transitions.get(ShippingStatus(current), set())

    def update_status(self, db: Session, seller_id: int, order_id: int, status: str) -> Order:
        """Seller marks an order shipped, or reverts a shipped order to pending."""
        if status not in (ShippingStatus.PENDING.value, ShippingStatus.SHIPPED.value):
            raise ValidationError("Invalid parameters")
        target = ShippingStatus(status)

        order = self._lock_order(db, order_id)
        if not order or order.seller_id != seller_id:
            raise NotFoundError("Order not found")

        if not self.can_transition(SELLER_TRANSITIONS, order.shipping_status, target):
            raise InvalidTransitionError(
                f"Cannot change order from {order.shipping_status} to {target.value}"
            )

        if target == ShippingStatus.SHIPPED:
            order.shipped_at = now_utc()
            order.received_at = None
        else:
            order.shipped_at = None
        order.shipping_status = target.value
        db.flush()
        logger.info(f"Order #{order.id} -> {target.value} by seller #{seller_id}")
        return order

    def confirm_receipt(self, db: Session, buyer_id: int, order_id: int) -> Order:
        """Buyer confirms a shipped order arrived. Terminal."""
        order = self._lock_order(db, order_id)
        if not order or order.buyer_id != buyer_id:
            raise NotFoundError("Order not found")

        if not self.can_transition(BUYER_TRANSITIONS, order.shipping_status, ShippingStatus.RECEIVED):
            raise InvalidTransitionError(
                f"Cannot confirm receipt of a {order.shipping_status} order"
            )

        order.shipping_status = ShippingStatus.RECEIVED.value
        order.received_at = now_utc()
        db.flush()
        logger.info(f"Order #{order.id} received by buyer #{buyer_id}")
        return order

    # ==========================================
    # Private helpers
    # ==========================================

    def _lock_order(self, db: Session, order_id: int):
        return db.query(Order).filter(Order.id == order_id).with_for_update().first()


# Singleton
order_lifecycle = OrderLifecycle()
