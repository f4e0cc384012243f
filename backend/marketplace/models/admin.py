from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from marketplace.models.order import OrderResponse
from marketplace.models_sqlalchemy.models import ProductStatus, UserRole, UserStatus


class RoleUpdate(BaseModel):
    role: UserRole


class StatusUpdate(BaseModel):
    status: UserStatus


class BusinessInfoUpdate(BaseModel):
    cnpj: Optional[str] = None
    legal_company_name: Optional[str] = None


class ProductStatusUpdate(BaseModel):
    status: ProductStatus


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AdminUserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole
    status: UserStatus
    cnpj: Optional[str] = None
    legal_company_name: Optional[str] = None
    mercado_pago_connected: bool = False
    order_count: int = 0
    product_count: int = 0
    created_at: datetime
    updated_at: datetime


class AdminUserListResponse(BaseModel):
    users: List[AdminUserResponse]
    pagination: Pagination


class AdminOrderListResponse(BaseModel):
    orders: List[OrderResponse]
    pagination: Pagination


class DashboardSummary(BaseModel):
    total_users: int
    total_products: int
    total_orders: int
    revenue: Decimal


class DashboardStats(BaseModel):
    summary: DashboardSummary
    users_by_role: Dict[str, int]
    orders_by_status: Dict[str, int]
    recent_orders: List[OrderResponse]
