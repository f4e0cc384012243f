from decimal import Decimal

import pytest

from marketplace.errors import NotFound, ValidationFailed
from marketplace.models.admin import BusinessInfoUpdate
from marketplace.models_sqlalchemy.models import (
    Order,
    OrderStatus,
    PaymentMethod,
    ProductStatus,
    UserRole,
    UserStatus,
)
from marketplace.services.admin_service import AdminService


@pytest.fixture
def place_order(db, make_address):
    def _place(buyer, total, status=OrderStatus.PENDING):
        order = Order(
            user_id=buyer.id,
            address_id=make_address(buyer).id,
            payment_method=PaymentMethod.CREDIT_CARD,
            total=Decimal(total),
            status=status,
        )
        db.add(order)
        db.commit()
        return order

    return _place


def test_admin_status_cannot_change(db, make_user):
    admin = make_user(role=UserRole.ADMIN)

    with pytest.raises(ValidationFailed) as exc:
        AdminService(db).update_user_status(admin.id, UserStatus.SUSPENDED)
    assert exc.value.code == "admin_status_immutable"


def test_seller_approval(db, make_user):
    seller = make_user(role=UserRole.SELLER, status=UserStatus.PENDING)

    result = AdminService(db).update_user_status(seller.id, UserStatus.ACTIVE)

    assert result.status == UserStatus.ACTIVE


def test_business_info_only_for_sellers(db, make_user):
    service = AdminService(db)
    seller = make_user(role=UserRole.SELLER)

    result = service.update_business_info(
        seller.id, BusinessInfoUpdate(cnpj="12.345.678/0001-90", legal_company_name="Ótica Central LTDA")
    )
    assert result.cnpj == "12.345.678/0001-90"

    with pytest.raises(ValidationFailed):
        service.update_business_info(make_user().id, BusinessInfoUpdate(cnpj="1"))


def test_unknown_user_is_not_found(db):
    with pytest.raises(NotFound):
        AdminService(db).get_user("nope")


def test_list_users_filters_and_paginates(db, make_user, connect_provider):
    seller = make_user(role=UserRole.SELLER, name="Ótica Visão")
    connect_provider(seller)
    make_user(role=UserRole.SELLER, name="Outra Ótica")
    make_user(name="Maria")

    result = AdminService(db).list_users(page=1, limit=1, role=UserRole.SELLER)
    assert result.pagination.total == 2
    assert result.pagination.total_pages == 2
    assert len(result.users) == 1

    searched = AdminService(db).list_users(search="Visão")
    assert [u.id for u in searched.users] == [seller.id]
    assert searched.users[0].mercado_pago_connected is True


def test_dashboard_revenue_counts_only_paid_orders(db, make_user, make_product, place_order):
    buyer = make_user()
    make_user(role=UserRole.SELLER)
    make_product()
    place_order(buyer, "100.00", OrderStatus.PAID)
    place_order(buyer, "50.00", OrderStatus.SHIPPED)
    place_order(buyer, "25.50", OrderStatus.DELIVERED)
    place_order(buyer, "999.00", OrderStatus.PENDING)
    place_order(buyer, "999.00", OrderStatus.CANCELLED)

    stats = AdminService(db).dashboard_stats()

    assert stats.summary.revenue == Decimal("175.50")
    assert stats.summary.total_orders == 5
    assert stats.summary.total_users == 2
    assert stats.summary.total_products == 1
    assert stats.users_by_role == {"CUSTOMER": 1, "SELLER": 1}
    assert stats.orders_by_status["PENDING"] == 1
    assert len(stats.recent_orders) == 5


def test_dashboard_on_empty_database(db):
    stats = AdminService(db).dashboard_stats()

    assert stats.summary.revenue == Decimal("0")
    assert stats.recent_orders == []


def test_product_approval(db, make_product):
    product = make_product()
    product.is_submitted_for_approval = True
    db.commit()
    service = AdminService(db)

    assert [p.id for p in service.list_submitted_products()] == [product.id]
    assert service.update_product_status(product.id, ProductStatus.APPROVED).status == ProductStatus.APPROVED
    with pytest.raises(NotFound):
        service.update_product_status("missing", ProductStatus.APPROVED)
