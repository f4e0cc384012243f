"""Order lifecycle: checkout splitting, status changes and payment updates."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Union

from sqlalchemy.orm import Session

from marketplace.errors import NotFound, PermissionDenied, ValidationFailed, Conflict
from marketplace.models.order import CartItem, CreateOrderRequest
from marketplace.models_sqlalchemy import transaction
from marketplace.models_sqlalchemy.models import (
    Address,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    ShippingType,
    User,
    UserRole,
)
from marketplace.services.order_status import ensure_transition_allowed
from marketplace.services.payment_status import TERMINAL_FAILURE_STATUSES
from marketplace.services.stock_ledger import decrement_stock, restore_stock
from marketplace.utils.logger import logger


CENT = Decimal("0.01")


def split_shipping_cost(total: Decimal, groups: int) -> List[Decimal]:
    """Split ``total`` evenly across ``groups`` to the cent.

    Leftover cents go one each to the first groups, so the shares always add
    up to ``total``: 10.00 over 3 groups -> [3.34, 3.33, 3.33].
    """
    if groups <= 0:
        return []
    cents = int((Decimal(total) * 100).to_integral_value(rounding=ROUND_HALF_UP))
    base, remainder = divmod(cents, groups)
    return [
        (Decimal(base + (1 if index < remainder else 0)) / 100).quantize(CENT)
        for index in range(groups)
    ]


def group_items_by_seller(
    items: List[CartItem], products: Dict[str, Product]
) -> "OrderedDict[Optional[str], List[CartItem]]":
    """Group cart lines by the seller owning each product.

    Platform-owned products (no seller) share the ``None`` group. Groups keep
    the order in which their first item appears in the cart.
    """
    groups: "OrderedDict[Optional[str], List[CartItem]]" = OrderedDict()
    for item in items:
        seller_id = products[item.product_id].seller_id
        groups.setdefault(seller_id, []).append(item)
    return groups


class OrderService:

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def find_order(self, order_id: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def find_order_for_user(self, order_id: str, user_id: str) -> Optional[Order]:
        return (
            self.db.query(Order)
            .filter(Order.id == order_id, Order.user_id == user_id)
            .first()
        )

    def find_by_payment_id(self, payment_id: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.payment_id == payment_id).first()

    def list_orders(self, user_id: str) -> List[Order]:
        return (
            self.db.query(Order)
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .all()
        )

    def list_seller_orders(self, seller_id: str) -> List[Order]:
        return (
            self.db.query(Order)
            .filter(Order.seller_id == seller_id)
            .order_by(Order.created_at.desc())
            .all()
        )

    def get_order(self, order_id: str, user_id: str) -> Order:
        order = self.find_order_for_user(order_id, user_id)
        if order is None:
            raise NotFound("Order not found", code="order_not_found")
        return order

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------
    def create_order(self, buyer_id: str, data: CreateOrderRequest) -> Union[Order, List[Order]]:
        """Create one order per seller group in a single transaction.

        Returns the order itself when the cart holds a single seller group and
        the list of orders (in group order) otherwise. Nothing is written when
        any validation or stock decrement fails.
        """
        if not data.items:
            raise ValidationFailed("Cart is empty", code="empty_cart")

        address = self.db.query(Address).filter(Address.id == data.address_id).first()
        if address is None:
            raise NotFound("Address not found", code="address_not_found")
        if address.user_id != buyer_id:
            raise PermissionDenied("Address does not belong to this user", code="address_not_owned")

        product_ids = list(dict.fromkeys(item.product_id for item in data.items))
        products = {
            p.id: p
            for p in self.db.query(Product).filter(Product.id.in_(product_ids)).all()
        }
        missing = [pid for pid in product_ids if pid not in products]
        if missing:
            raise NotFound("One or more products not found", code="product_not_found", product_ids=missing)

        requested: Dict[str, int] = {}
        for item in data.items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.stock < quantity:
                raise Conflict(
                    f"Insufficient stock for product: {product.name}",
                    code="insufficient_stock",
                    product_id=product_id,
                )

        groups = group_items_by_seller(data.items, products)
        shipping_total = Decimal("0") if data.shipping_type == ShippingType.SELLER else data.shipping_cost
        shares = split_shipping_cost(shipping_total, len(groups))

        orders: List[Order] = []
        with transaction(self.db):
            for (seller_id, group_items), shipping_share in zip(groups.items(), shares):
                order_items = [
                    OrderItem(
                        product_id=item.product_id,
                        quantity=item.quantity,
                        price=products[item.product_id].price,
                    )
                    for item in group_items
                ]
                items_total = sum(
                    (Decimal(oi.price) * oi.quantity for oi in order_items), Decimal("0")
                )
                order = Order(
                    user_id=buyer_id,
                    seller_id=seller_id,
                    address_id=address.id,
                    payment_method=data.payment_method,
                    shipping_type=data.shipping_type,
                    shipping_method=data.shipping_method,
                    shipping_cost=shipping_share,
                    total=(items_total + shipping_share).quantize(CENT),
                    status=OrderStatus.PENDING,
                    payment_status=PaymentStatus.PENDING,
                    items=order_items,
                )
                self.db.add(order)
                orders.append(order)

            for item in data.items:
                decrement_stock(self.db, products[item.product_id], item.quantity)

            self.db.flush()

        logger.info(
            "Created %s order(s) for buyer=%s: %s",
            len(orders),
            buyer_id,
            ", ".join(o.id for o in orders),
        )
        return orders[0] if len(orders) == 1 else orders

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------
    def transition_status(self, order_id: str, requested: OrderStatus, actor: User) -> Order:
        """Seller/admin status change validated against the transition table."""
        order = self.find_order(order_id)
        if order is None:
            raise NotFound("Order not found", code="order_not_found")
        if actor.role != UserRole.ADMIN and order.seller_id != actor.id:
            raise PermissionDenied("Order does not belong to this seller", code="order_not_owned")

        previous = order.status
        ensure_transition_allowed(previous, requested)

        with transaction(self.db):
            order.status = requested

        logger.info(
            "Order %s status %s -> %s by %s (%s)",
            order.id,
            OrderStatus(previous).value,
            OrderStatus(requested).value,
            actor.id,
            UserRole(actor.role).value,
        )
        return order

    def apply_payment_status(self, order_id: str, payment_id: str, payment_status: PaymentStatus) -> Order:
        """Record a gateway payment outcome on an order.

        APPROVED moves the order to PAID. REJECTED/CANCELLED cancel it and give
        the stock back, once per order. Other statuses only touch the payment
        fields.
        """
        order = self.find_order(order_id)
        if order is None:
            raise NotFound("Order not found", code="order_not_found")

        with transaction(self.db):
            order.payment_id = payment_id
            order.payment_status = payment_status

            if payment_status == PaymentStatus.APPROVED:
                order.status = OrderStatus.PAID
            elif payment_status in TERMINAL_FAILURE_STATUSES:
                order.status = OrderStatus.CANCELLED
                if order.stock_restored_at is None:
                    restore_stock(self.db, order.items)
                    order.stock_restored_at = datetime.utcnow()
                else:
                    logger.info("Order %s stock already restored at %s, skipping", order.id, order.stock_restored_at)

        logger.info(
            "Order %s payment=%s payment_status=%s status=%s",
            order.id,
            payment_id,
            PaymentStatus(payment_status).value,
            OrderStatus(order.status).value,
        )
        return order
