from decimal import Decimal

import pytest
from pydantic import ValidationError

from marketplace.config import settings
from marketplace.models.product import ProductUpdate
from marketplace.models_sqlalchemy.models import UserRole
from marketplace.services.order_service import OrderService
from marketplace.utils.logger import provider_logger


ADDRESS = {
    "street": "Rua Oscar Freire",
    "number": "900",
    "neighborhood": "Jardins",
    "city": "São Paulo",
    "state": "SP",
    "zip_code": "01426-001",
    "is_default": True,
}


def test_live_probe(client):
    resp = client.get("/api/health/live")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_register_address_and_order_flow(client, db, make_user, make_product):
    seller = make_user(role=UserRole.SELLER)
    product = make_product(seller=seller, price="150.00", stock=5)

    resp = client.post(
        "/api/auth/register",
        json={"email": "buyer@example.com", "password": "secret123", "name": "Buyer"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["user"]["role"] == "CUSTOMER"
    headers = {"Authorization": f"Bearer {body['token']}"}

    resp = client.post("/api/addresses", json=ADDRESS, headers=headers)
    assert resp.status_code == 201
    address_id = resp.json()["id"]

    resp = client.post(
        "/api/orders",
        json={
            "address_id": address_id,
            "items": [{"product_id": product.id, "quantity": 2}],
            "payment_method": "PIX",
            "shipping_method": "PAC",
            "shipping_cost": "18.00",
        },
        headers=headers,
    )
    assert resp.status_code == 201
    order = resp.json()
    assert order["seller_id"] == seller.id
    assert Decimal(order["total"]) == Decimal("318.00")
    assert order["status"] == "PENDING"
    assert order["payment_status"] == "PENDING"

    listed = client.get("/api/orders", headers=headers).json()
    assert [o["id"] for o in listed] == [order["id"]]

    db.refresh(product)
    assert product.stock == 3

    # Buyers may not drive fulfilment.
    resp = client.patch(f"/api/orders/{order['id']}/status", json={"status": "SHIPPED"}, headers=headers)
    assert resp.status_code == 403


def test_order_with_insufficient_stock_is_rejected(client, make_user, make_address, make_product, auth_headers):
    buyer = make_user()
    address = make_address(buyer)
    product = make_product(stock=1)

    resp = client.post(
        "/api/orders",
        json={
            "address_id": address.id,
            "items": [{"product_id": product.id, "quantity": 3}],
            "payment_method": "CREDIT_CARD",
        },
        headers=auth_headers(buyer),
    )

    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "insufficient_stock"


def test_orders_require_authentication(client):
    assert client.get("/api/orders").status_code == 401


def test_webhook_acknowledges_other_topics(client):
    resp = client.post("/api/payment/webhook", json={"type": "merchant_order", "data": {"id": "1"}})
    assert resp.status_code == 200
    assert resp.json() == {"received": True}


def test_webhook_tolerates_malformed_body(client):
    resp = client.post("/api/payment/webhook", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 200
    assert resp.json() == {"received": True}


def test_shipping_rejects_bad_cep(client):
    resp = client.get("/api/shipping/calculate", params={"cep": "123"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "invalid_cep"

    resp = client.get("/api/shipping/calculate")
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "cep_required"


def test_shipping_fallback_quote(client, monkeypatch):
    monkeypatch.setattr(settings, "CORREIOS_USER", None, raising=False)
    monkeypatch.setattr(settings, "CORREIOS_TOKEN", None, raising=False)

    resp = client.get("/api/shipping/calculate", params={"cep": "01310-100"})

    assert resp.status_code == 200
    assert [o["service"] for o in resp.json()] == ["PAC", "SEDEX"]


def test_product_update_rejects_null_required_fields(client, db, make_user, make_product, auth_headers):
    seller = make_user(role=UserRole.SELLER)
    product = make_product(seller=seller, price="120.00", stock=4)
    name = product.name

    for field in ("name", "price", "stock", "images"):
        resp = client.put(f"/api/products/{product.id}", json={field: None}, headers=auth_headers(seller))
        assert resp.status_code == 422

    db.refresh(product)
    assert product.name == name
    assert product.price == Decimal("120.00")
    assert product.stock == 4


def test_product_update_may_clear_optional_fields(client, db, make_user, make_category, make_product, auth_headers):
    seller = make_user(role=UserRole.SELLER)
    product = make_product(seller=seller, category=make_category(seller))

    resp = client.put(
        f"/api/products/{product.id}",
        json={"description": None, "category_id": None, "stock": 7},
        headers=auth_headers(seller),
    )

    assert resp.status_code == 200
    db.refresh(product)
    assert product.category_id is None
    assert product.stock == 7


def test_product_update_with_unknown_category_is_not_found(client, db, make_user, make_product, auth_headers):
    seller = make_user(role=UserRole.SELLER)
    product = make_product(seller=seller)

    resp = client.put(f"/api/products/{product.id}", json={"category_id": "missing"}, headers=auth_headers(seller))

    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "category_not_found"
    db.refresh(product)
    assert product.category_id is None


def test_product_update_model_keeps_omitted_fields_unset():
    with pytest.raises(ValidationError):
        ProductUpdate(name=None)
    assert ProductUpdate(price="10.00").model_dump(exclude_unset=True) == {"price": Decimal("10.00")}


def test_admin_reads_and_clears_provider_logs(client, make_user, auth_headers):
    provider_logger.clear_logs()
    admin = make_user(role=UserRole.ADMIN)
    provider_logger.log_event(
        "mercado_pago", "get_payment", "GET /v1/payments/1 returned 200",
        request_data={"access_token": "APP_USR-1234567890"},
    )

    resp = client.get("/api/admin/provider-logs", headers=auth_headers(admin))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["logs"][0]["event_type"] == "get_payment"
    assert body["logs"][0]["request_data"]["access_token"] == "APP_...7890"

    resp = client.delete("/api/admin/provider-logs", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert client.get("/api/admin/provider-logs", headers=auth_headers(admin)).json()["total"] == 0


def test_provider_logs_are_admin_only(client, make_user, auth_headers):
    seller = make_user(role=UserRole.SELLER)

    assert client.get("/api/admin/provider-logs", headers=auth_headers(seller)).status_code == 403
    assert client.delete("/api/admin/provider-logs", headers=auth_headers(seller)).status_code == 403


def test_unhandled_error_hides_message_outside_debug(client, make_user, auth_headers, monkeypatch):
    def _boom(self, user_id):
        raise RuntimeError("SELECT * FROM orders WHERE user_id = 'x'")

    monkeypatch.setattr(settings, "DEBUG", False)
    monkeypatch.setattr(OrderService, "list_orders", _boom)

    resp = client.get("/api/orders", headers=auth_headers(make_user()))

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "internal_error"
    assert "message" not in body
    assert "SELECT" not in resp.text
    assert resp.headers["X-Request-ID"] == body["rid"]
