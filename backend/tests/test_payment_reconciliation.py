import logging
from decimal import Decimal

import pytest

from marketplace.models.order import CartItem, CreateOrderRequest
from marketplace.models_sqlalchemy.models import OrderStatus, PaymentMethod, PaymentStatus, UserRole
from marketplace.services.order_service import OrderService
from marketplace.services.payment_status import map_payment_status


@pytest.mark.parametrize(
    "external,expected",
    [
        ("pending", PaymentStatus.PENDING),
        ("approved", PaymentStatus.APPROVED),
        ("authorized", PaymentStatus.APPROVED),
        ("in_process", PaymentStatus.IN_PROCESS),
        ("in_mediation", PaymentStatus.IN_PROCESS),
        ("rejected", PaymentStatus.REJECTED),
        ("cancelled", PaymentStatus.CANCELLED),
        ("refunded", PaymentStatus.CANCELLED),
        ("charged_back", PaymentStatus.CANCELLED),
    ],
)
def test_gateway_status_mapping(external, expected):
    assert map_payment_status(external) == expected


def test_unknown_gateway_status_defaults_to_pending_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="marketplace"):
        assert map_payment_status("on_the_moon") == PaymentStatus.PENDING
    assert "on_the_moon" in caplog.text


@pytest.fixture
def order_with_stock(db, make_user, make_address, make_product):
    buyer = make_user()
    seller = make_user(role=UserRole.SELLER)
    lens = make_product(seller=seller, price="40.00", stock=10)
    frame = make_product(seller=seller, price="90.00", stock=5)
    order = OrderService(db).create_order(
        buyer.id,
        CreateOrderRequest(
            address_id=make_address(buyer).id,
            items=[CartItem(product_id=lens.id, quantity=3), CartItem(product_id=frame.id, quantity=1)],
            payment_method=PaymentMethod.CREDIT_CARD,
            shipping_cost=Decimal("15.00"),
        ),
    )
    return order, seller, lens, frame


def _stocks(db, *products):
    for product in products:
        db.refresh(product)
    return tuple(p.stock for p in products)


def test_approved_payment_marks_order_paid(db, order_with_stock):
    order, _, lens, frame = order_with_stock
    updated = OrderService(db).apply_payment_status(order.id, "pay-1", PaymentStatus.APPROVED)

    assert updated.status == OrderStatus.PAID
    assert updated.payment_status == PaymentStatus.APPROVED
    assert updated.payment_id == "pay-1"
    assert _stocks(db, lens, frame) == (7, 4)


@pytest.mark.parametrize("failure", [PaymentStatus.REJECTED, PaymentStatus.CANCELLED])
def test_failed_payment_cancels_and_restores_stock(db, order_with_stock, failure):
    order, _, lens, frame = order_with_stock
    updated = OrderService(db).apply_payment_status(order.id, "pay-2", failure)

    assert updated.status == OrderStatus.CANCELLED
    assert updated.payment_status == failure
    assert updated.stock_restored_at is not None
    assert _stocks(db, lens, frame) == (10, 5)


@pytest.mark.parametrize("interim", [PaymentStatus.PENDING, PaymentStatus.IN_PROCESS])
def test_interim_statuses_only_touch_payment_fields(db, order_with_stock, interim):
    order, _, lens, frame = order_with_stock
    updated = OrderService(db).apply_payment_status(order.id, "pay-3", interim)

    assert updated.status == OrderStatus.PENDING
    assert updated.payment_status == interim
    assert _stocks(db, lens, frame) == (7, 4)


def test_repeated_terminal_deliveries_restore_once(db, order_with_stock):
    order, _, lens, frame = order_with_stock
    service = OrderService(db)

    service.apply_payment_status(order.id, "pay-4", PaymentStatus.REJECTED)
    service.apply_payment_status(order.id, "pay-4", PaymentStatus.REJECTED)
    service.apply_payment_status(order.id, "pay-4", PaymentStatus.CANCELLED)

    assert _stocks(db, lens, frame) == (10, 5)


def test_seller_cancelled_order_is_restored_once_by_reconciliation(db, order_with_stock):
    order, seller, lens, frame = order_with_stock
    service = OrderService(db)

    service.transition_status(order.id, OrderStatus.CANCELLED, seller)
    assert _stocks(db, lens, frame) == (7, 4)

    service.apply_payment_status(order.id, "pay-5", PaymentStatus.CANCELLED)
    service.apply_payment_status(order.id, "pay-5", PaymentStatus.CANCELLED)
    assert _stocks(db, lens, frame) == (10, 5)
