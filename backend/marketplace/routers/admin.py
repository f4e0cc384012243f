from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketplace.models.admin import (
    AdminOrderListResponse,
    AdminUserListResponse,
    AdminUserResponse,
    BusinessInfoUpdate,
    DashboardStats,
    ProductStatusUpdate,
    RoleUpdate,
    StatusUpdate,
)
from marketplace.models.order import OrderResponse, OrderStatusUpdate
from marketplace.models.product import ProductResponse
from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import OrderStatus, User, UserRole, UserStatus
from marketplace.services.admin_service import DEFAULT_PAGE_SIZE, AdminService
from marketplace.services.auth import admin_required
from marketplace.utils.logger import provider_logger

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    search: Optional[str] = None,
    current_user: User = Depends(admin_required),
    db: Session = Depends(get_db),
):
    return AdminService(db).list_users(page, limit, role, status, search)


@router.get("/users/{user_id}", response_model=AdminUserResponse)
async def get_user(user_id: str, current_user: User = Depends(admin_required), db: Session = Depends(get_db)):
    return AdminService(db).get_user(user_id)


@router.patch("/users/{user_id}/role", response_model=AdminUserResponse)
async def update_user_role(
    user_id: str,
    payload: RoleUpdate,
    current_user: User = Depends(admin_required),
    db: Session = Depends(get_db),
):
    return AdminService(db).update_user_role(user_id, payload.role)


@router.patch("/users/{user_id}/status", response_model=AdminUserResponse)
async def update_user_status(
    user_id: str,
    payload: StatusUpdate,
    current_user: User = Depends(admin_required),
    db: Session = Depends(get_db),
):
    return AdminService(db).update_user_status(user_id, payload.status)


@router.patch("/users/{user_id}/business-info", response_model=AdminUserResponse)
async def update_business_info(
    user_id: str,
    payload: BusinessInfoUpdate,
    current_user: User = Depends(admin_required),
    db: Session = Depends(get_db),
):
    return AdminService(db).update_business_info(user_id, payload)


@router.get("/orders", response_model=AdminOrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    current_user: User = Depends(admin_required),
    db: Session = Depends(get_db),
):
    return AdminService(db).list_orders(page, limit, status, start_date, end_date)


@router.patch("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    current_user: User = Depends(admin_required),
    db: Session = Depends(get_db),
):
    return AdminService(db).update_order_status(order_id, payload.status, current_user)


@router.get("/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(current_user: User = Depends(admin_required), db: Session = Depends(get_db)):
    return AdminService(db).dashboard_stats()


@router.get("/products", response_model=List[ProductResponse])
async def list_products(current_user: User = Depends(admin_required), db: Session = Depends(get_db)):
    return AdminService(db).list_submitted_products()


@router.patch("/products/{product_id}/status", response_model=ProductResponse)
async def update_product_status(
    product_id: str,
    payload: ProductStatusUpdate,
    current_user: User = Depends(admin_required),
    db: Session = Depends(get_db),
):
    return AdminService(db).update_product_status(product_id, payload.status)


@router.get("/provider-logs")
async def get_provider_logs(
    limit: Optional[int] = Query(100, ge=1, le=1000, description="Number of logs to retrieve"),
    current_user: User = Depends(admin_required),
):
    logs = provider_logger.get_logs(limit=limit)
    return {
        "logs": logs,
        "total": len(logs)
    }


@router.delete("/provider-logs")
async def clear_provider_logs(current_user: User = Depends(admin_required)):
    provider_logger.clear_logs()
    return {"message": "Logs cleared successfully"}
