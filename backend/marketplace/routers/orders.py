from typing import List, Union

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.models.order import CreateOrderRequest, OrderResponse, OrderStatusUpdate
from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import User
from marketplace.services.auth import get_current_user, seller_or_admin_required, seller_required
from marketplace.services.order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=Union[OrderResponse, List[OrderResponse]], status_code=status.HTTP_201_CREATED)
async def create_order(
    data: CreateOrderRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Checkout: one order per seller group.

    A single order object is returned when the cart belongs to one seller,
    a list otherwise.
    """
    return OrderService(db).create_order(current_user.id, data)


@router.get("", response_model=List[OrderResponse])
async def list_orders(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return OrderService(db).list_orders(current_user.id)


@router.get("/seller/me", response_model=List[OrderResponse])
async def list_seller_orders(current_user: User = Depends(seller_required), db: Session = Depends(get_db)):
    return OrderService(db).list_seller_orders(current_user.id)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return OrderService(db).get_order(order_id, current_user.id)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    current_user: User = Depends(seller_or_admin_required),
    db: Session = Depends(get_db),
):
    return OrderService(db).transition_status(order_id, payload.status, current_user)
