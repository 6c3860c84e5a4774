"""
Catalog Module - Product Row Locks
====================================
Storage-layer contract used by checkout: lock exactly the product rows a call
touches, exclusively, until the surrounding transaction commits or rolls back.
"""

from typing import Callable, Dict, Iterable, List, TypeVar

from sqlalchemy import Select, select, text
from sqlalchemy.orm import Session

from config.settings import LOCK_TIMEOUT_MS
from modules.catalog.models import Product

T = TypeVar("T")


def _apply_lock_timeout(db: Session):
    """Bound the lock wait so a stuck holder aborts us instead of hanging."""
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text(f"SET LOCAL lock_timeout = '{int(LOCK_TIMEOUT_MS)}ms'"))


def product_lock_statement(ids: List[int]) -> Select:
    """SELECT ... FOR UPDATE over the given ids, ascending, refreshing any cached rows."""
    return (
        select(Product)
        .where(Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def lock_products(db: Session, product_ids: Iterable[int]) -> Dict[int, Product]:
    """
    Lock the given products in ascending id order so two overlapping
    checkouts can't deadlock. Missing ids are simply absent from the
    returned map.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}

    _apply_lock_timeout(db)
    rows = db.scalars(product_lock_statement(ids)).all()
    return {p.id: p for p in rows}


def with_exclusive_product_lock(
    db: Session,
    product_ids: Iterable[int],
    fn: Callable[[Dict[int, Product]], T],
) -> T:
    """Run `fn(locked_products)` while holding the row locks."""
    return fn(lock_products(db, product_ids))
