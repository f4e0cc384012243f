from pydantic import BaseModel, EmailStr
from typing import List, Optional

from marketplace.models_sqlalchemy.models import OrderStatus, PaymentMethod, PaymentStatus


class CreateCheckoutRequest(BaseModel):
    order_id: str
    payer_email: EmailStr


class CheckoutResponse(BaseModel):
    preference_id: str
    init_point: Optional[str] = None
    sandbox_init_point: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    order_id: str
    payment_id: Optional[str] = None
    payment_status: PaymentStatus
    order_status: OrderStatus
    payment_method: Optional[PaymentMethod] = None
    status_detail: Optional[str] = None


class ValidateSellersRequest(BaseModel):
    product_ids: List[str]


class DisconnectedSeller(BaseModel):
    seller_name: str
    product_names: List[str]


class ValidateSellersResponse(BaseModel):
    valid: bool
    disconnected_sellers: List[DisconnectedSeller] = []
