"""Product stock adjustments tied to order lifecycle events.

Only order creation (decrement) and payment reconciliation (restore) call
into this module. Both helpers expect to run inside the caller's unit of work
and never commit.
"""

from typing import Iterable

from sqlalchemy import update
from sqlalchemy.orm import Session

from marketplace.errors import Conflict
from marketplace.models_sqlalchemy.models import OrderItem, Product
from marketplace.utils.logger import logger


def decrement_stock(db: Session, product: Product, quantity: int) -> None:
    """Atomically take ``quantity`` units of ``product`` out of stock.

    The UPDATE only matches while enough stock remains, so two checkouts that
    both passed the availability check cannot drive stock below zero: the
    loser gets a Conflict and its transaction is rolled back.
    """
    result = db.execute(
        update(Product)
        .where(Product.id == product.id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("Stock decrement refused product=%s quantity=%s", product.id, quantity)
        raise Conflict(
            f"Insufficient stock for product: {product.name}",
            code="insufficient_stock",
            product_id=product.id,
        )
    db.expire(product, ["stock"])


def restore_stock(db: Session, items: Iterable[OrderItem]) -> None:
    """Give every item's quantity back to its product. No upper bound check."""
    for item in items:
        db.execute(
            update(Product)
            .where(Product.id == item.product_id)
            .values(stock=Product.stock + item.quantity)
            .execution_options(synchronize_session=False)
        )
        logger.info("Stock restored product=%s quantity=+%s", item.product_id, item.quantity)
