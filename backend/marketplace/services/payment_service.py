"""Checkout creation and payment status reconciliation (webhook + poll)."""

from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.errors import Conflict, ExternalServiceError, NotFound
from marketplace.models.payment import (
    CheckoutResponse,
    DisconnectedSeller,
    PaymentStatusResponse,
    ValidateSellersResponse,
)
from marketplace.models_sqlalchemy import transaction
from marketplace.models_sqlalchemy.models import (
    Order,
    PaymentMethod,
    PaymentStatus,
    Product,
)
from marketplace.services.mercado_pago import MercadoPagoClient, MercadoPagoError
from marketplace.services.order_service import CENT, OrderService
from marketplace.services.payment_status import map_payment_status
from marketplace.services.seller_settings_service import SellerSettingsService
from marketplace.utils.logger import logger


EXCLUDED_PAYMENT_TYPES = ["debit_card", "ticket", "atm", "prepaid_card"]
MAX_INSTALLMENTS = 12


def application_fee_for(order: Order) -> Decimal:
    rate = settings.PIX_FEE_RATE if order.payment_method == PaymentMethod.PIX else settings.CREDIT_CARD_FEE_RATE
    return (Decimal(order.total) * Decimal(str(rate))).quantize(CENT, rounding=ROUND_HALF_UP)


class PaymentService:

    def __init__(
        self,
        db: Session,
        gateway: Optional[MercadoPagoClient] = None,
        seller_settings: Optional[SellerSettingsService] = None,
    ):
        self.db = db
        self.gateway = gateway or MercadoPagoClient()
        self.seller_settings = seller_settings or SellerSettingsService(db, self.gateway)
        self.orders = OrderService(db)

    @property
    def platform_token(self) -> str:
        return settings.MERCADO_PAGO_ACCESS_TOKEN or ""

    # ------------------------------------------------------------------
    # Pre-checkout
    # ------------------------------------------------------------------
    def validate_sellers_connection(self, product_ids: List[str]) -> ValidateSellersResponse:
        """Report sellers in the cart that have no connected payment account."""
        products = self.db.query(Product).filter(Product.id.in_(product_ids)).all()

        sellers: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for product in products:
            if not product.seller_id or product.seller is None:
                continue
            entry = sellers.get(product.seller_id)
            if entry is None:
                credential = self.seller_settings.get_credential(product.seller_id)
                entry = sellers[product.seller_id] = {
                    "name": product.seller.name,
                    "connected": bool(credential and credential.is_connected),
                    "products": [],
                }
            entry["products"].append(product.name)

        disconnected = [
            DisconnectedSeller(seller_name=entry["name"], product_names=entry["products"])
            for entry in sellers.values()
            if not entry["connected"]
        ]
        return ValidateSellersResponse(valid=not disconnected, disconnected_sellers=disconnected)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------
    def build_preference(self, order: Order, payer_email: str, charge_fee: bool) -> Dict[str, Any]:
        currency = settings.MERCADO_PAGO_CURRENCY
        items = [
            {
                "id": item.product_id,
                "title": item.product.name if item.product is not None else item.product_id,
                "quantity": item.quantity,
                "unit_price": float(item.price),
                "currency_id": currency,
            }
            for item in order.items
        ]

        items_total = sum((Decimal(i.price) * i.quantity for i in order.items), Decimal("0"))
        shipping = Decimal(order.total) - items_total
        if shipping > 0:
            items.append({
                "id": "shipping",
                "title": f"Shipping ({order.shipping_method or 'Standard'})",
                "quantity": 1,
                "unit_price": float(shipping),
                "currency_id": currency,
            })

        preference: Dict[str, Any] = {
            "items": items,
            "payer": {"email": payer_email},
            "external_reference": order.id,
            "notification_url": settings.payment_webhook_url,
            "statement_descriptor": settings.MERCADO_PAGO_STATEMENT_DESCRIPTOR,
            "payment_methods": {
                "excluded_payment_types": [{"id": t} for t in EXCLUDED_PAYMENT_TYPES],
                "installments": MAX_INSTALLMENTS,
            },
        }

        if charge_fee:
            fee = application_fee_for(order)
            if fee > 0:
                preference["marketplace_fee"] = float(fee)

        frontend_url = settings.FRONTEND_URL
        if frontend_url and "localhost" not in frontend_url:
            preference["back_urls"] = {
                "success": f"{frontend_url}/buyer/orders?confirmed",
                "failure": f"{frontend_url}/buyer/orders?confirmed&status=failure",
                "pending": f"{frontend_url}/buyer/orders?confirmed&status=pending",
            }
            preference["auto_return"] = "approved"

        return preference

    async def create_checkout(self, user_id: str, order_id: str, payer_email: str) -> CheckoutResponse:
        """Create a hosted-checkout preference for one of the buyer's orders.

        Orders of a seller with a connected account are charged through that
        account and carry the platform fee; all others go through the platform
        account without a fee.
        """
        order = self.orders.find_order_for_user(order_id, user_id)
        if order is None:
            raise NotFound("Order not found", code="order_not_found")
        if order.payment_status == PaymentStatus.APPROVED:
            raise Conflict("Order already paid", code="order_already_paid")

        seller_token = self.seller_settings.get_seller_access_token(order.seller_id)
        preference = self.build_preference(order, payer_email, charge_fee=seller_token is not None)

        try:
            data = await self.gateway.create_preference(preference, seller_token or self.platform_token)
        except MercadoPagoError as exc:
            data = None
            if seller_token and exc.status_code == 401:
                logger.info("Seller token rejected for order %s, refreshing", order.id)
                new_token = await self.seller_settings.refresh_seller_token(order.seller_id)
                if new_token:
                    try:
                        data = await self.gateway.create_preference(preference, new_token)
                    except MercadoPagoError as retry_exc:
                        exc = retry_exc
            if data is None:
                logger.error("Mercado Pago checkout failed for order %s: %s", order.id, exc.message)
                raise ExternalServiceError(
                    exc.message or "Failed to create checkout session", code="checkout_failed"
                ) from exc

        if "marketplace_fee" in preference:
            with transaction(self.db):
                order.application_fee = Decimal(str(preference["marketplace_fee"]))

        logger.info("Created checkout preference %s for order %s", data.get("id"), order.id)
        return CheckoutResponse(
            preference_id=str(data.get("id")),
            init_point=data.get("init_point"),
            sandbox_init_point=data.get("sandbox_init_point"),
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    async def _fetch_payment_for_webhook(self, payment_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.gateway.get_payment(payment_id, self.platform_token)
        except MercadoPagoError as exc:
            logger.info("Platform lookup of payment %s failed (%s), trying seller token", payment_id, exc.message)

        order = self.orders.find_by_payment_id(payment_id)
        seller_token = self.seller_settings.get_seller_access_token(order.seller_id if order else None)
        if not seller_token:
            return None
        return await self.gateway.get_payment(payment_id, seller_token)

    async def handle_webhook(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a gateway push notification. Never raises."""
        if payload.get("type") != "payment":
            return {"received": True}
        payment_id = (payload.get("data") or {}).get("id")
        if not payment_id:
            return {"received": True}
        payment_id = str(payment_id)

        try:
            payment = await self._fetch_payment_for_webhook(payment_id)
            if payment and payment.get("external_reference"):
                self.orders.apply_payment_status(
                    payment["external_reference"],
                    str(payment.get("id", payment_id)),
                    map_payment_status(payment.get("status")),
                )
            else:
                logger.warning("Webhook payment %s could not be resolved to an order", payment_id)
            return {"received": True, "processed": True}
        except Exception as exc:
            logger.error("Webhook processing error for payment %s: %s", payment_id, exc)
            return {"received": True, "error": str(exc)}

    async def get_payment_status(self, order_id: str, user_id: str) -> PaymentStatusResponse:
        """Poll the gateway for a buyer's order and reconcile on change."""
        order = self.orders.find_order_for_user(order_id, user_id)
        if order is None:
            raise NotFound("Order not found", code="order_not_found")

        stored = PaymentStatusResponse(
            order_id=order.id,
            payment_id=order.payment_id,
            payment_status=order.payment_status,
            order_status=order.status,
            payment_method=order.payment_method,
        )
        if not order.payment_id:
            return stored

        token = self.seller_settings.get_seller_access_token(order.seller_id) or self.platform_token
        try:
            payment = await self.gateway.get_payment(order.payment_id, token)
        except MercadoPagoError as exc:
            logger.warning("Payment poll failed for order %s: %s", order.id, exc.message)
            return stored
        if not payment.get("status"):
            logger.warning("Payment poll for order %s returned no status, keeping %s", order.id, order.payment_status)
            return stored

        current = map_payment_status(payment.get("status"))
        if current != order.payment_status:
            order = self.orders.apply_payment_status(order.id, str(payment.get("id", order.payment_id)), current)

        return PaymentStatusResponse(
            order_id=order.id,
            payment_id=order.payment_id,
            payment_status=current,
            order_status=order.status,
            payment_method=order.payment_method,
            status_detail=payment.get("status_detail"),
        )
