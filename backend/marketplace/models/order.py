from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from marketplace.models.address import AddressResponse
from marketplace.models_sqlalchemy.models import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingType,
)


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class CreateOrderRequest(BaseModel):
    address_id: str
    items: List[CartItem]
    payment_method: PaymentMethod
    shipping_type: ShippingType = ShippingType.PLATFORM
    shipping_method: Optional[str] = None
    # Total shipping for the whole cart; split across seller groups.
    shipping_cost: Decimal = Field(Decimal("0"), ge=0)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemProduct(BaseModel):
    id: str
    name: str
    sku: str
    images: List[str] = []

    class Config:
        from_attributes = True


class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    quantity: int
    price: Decimal
    product: Optional[OrderItemProduct] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    user_id: str
    seller_id: Optional[str] = None
    address_id: str
    payment_method: PaymentMethod
    shipping_type: ShippingType
    shipping_method: Optional[str] = None
    shipping_cost: Decimal
    total: Decimal
    status: OrderStatus
    payment_status: PaymentStatus
    payment_id: Optional[str] = None
    application_fee: Optional[Decimal] = None
    created_at: datetime
    items: List[OrderItemResponse] = []
    address: Optional[AddressResponse] = None

    class Config:
        from_attributes = True
