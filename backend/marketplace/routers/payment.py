from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from marketplace.models.payment import (
    CheckoutResponse,
    CreateCheckoutRequest,
    PaymentStatusResponse,
    ValidateSellersRequest,
    ValidateSellersResponse,
)
from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import User
from marketplace.services.auth import get_current_user
from marketplace.services.payment_service import PaymentService

router = APIRouter(prefix="/api/payment", tags=["payment"])


@router.post("/create", response_model=CheckoutResponse)
async def create_checkout(
    data: CreateCheckoutRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await PaymentService(db).create_checkout(current_user.id, data.order_id, data.payer_email)


@router.post("/webhook")
async def webhook(request: Request, db: Session = Depends(get_db)):
    """Gateway push notifications. Always acknowledged with 200."""
    try:
        payload: Dict[str, Any] = await request.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    # Some notifications only carry the ids in the query string.
    if "type" not in payload and request.query_params.get("type"):
        payload = {"type": request.query_params["type"], "data": {"id": request.query_params.get("data.id")}}
    return await PaymentService(db).handle_webhook(payload)


@router.post("/validate-sellers", response_model=ValidateSellersResponse)
async def validate_sellers(
    data: ValidateSellersRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PaymentService(db).validate_sellers_connection(data.product_ids)


@router.get("/{order_id}/status", response_model=PaymentStatusResponse)
async def payment_status(order_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return await PaymentService(db).get_payment_status(order_id, current_user.id)
