"""Admin oversight: users, orders, dashboard statistics and product approval."""

import math
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from marketplace.errors import NotFound, ValidationFailed
from marketplace.models.admin import (
    AdminOrderListResponse,
    AdminUserListResponse,
    AdminUserResponse,
    BusinessInfoUpdate,
    DashboardStats,
    DashboardSummary,
    Pagination,
)
from marketplace.models.order import OrderResponse
from marketplace.models_sqlalchemy import transaction
from marketplace.models_sqlalchemy.models import (
    CredentialProvider,
    Order,
    OrderStatus,
    Product,
    ProductStatus,
    ProviderCredential,
    User,
    UserRole,
    UserStatus,
)
from marketplace.services.order_service import OrderService
from marketplace.utils.logger import logger


DEFAULT_PAGE_SIZE = 10
RECENT_ORDERS_LIMIT = 5
REVENUE_STATUSES = (OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED)


def _pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


class AdminService:

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def _to_admin_user(self, user: User) -> AdminUserResponse:
        connected = (
            self.db.query(ProviderCredential.id)
            .filter(
                ProviderCredential.user_id == user.id,
                ProviderCredential.provider == CredentialProvider.MERCADO_PAGO,
                ProviderCredential._access_token.isnot(None),
            )
            .first()
            is not None
        )
        return AdminUserResponse(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            status=user.status,
            cnpj=user.cnpj,
            legal_company_name=user.legal_company_name,
            mercado_pago_connected=connected,
            order_count=self.db.query(func.count(Order.id)).filter(Order.user_id == user.id).scalar() or 0,
            product_count=self.db.query(func.count(Product.id)).filter(Product.seller_id == user.id).scalar() or 0,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def _get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFound("User not found", code="user_not_found")
        return user

    def list_users(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        role: Optional[UserRole] = None,
        status: Optional[UserStatus] = None,
        search: Optional[str] = None,
    ) -> AdminUserListResponse:
        page, limit = max(page, 1), max(limit, 1)
        query = self.db.query(User)
        if role:
            query = query.filter(User.role == role)
        if status:
            query = query.filter(User.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

        total = query.count()
        users = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
        return AdminUserListResponse(
            users=[self._to_admin_user(u) for u in users],
            pagination=_pagination(page, limit, total),
        )

    def get_user(self, user_id: str) -> AdminUserResponse:
        return self._to_admin_user(self._get_user(user_id))

    def update_user_role(self, user_id: str, role: UserRole) -> AdminUserResponse:
        user = self._get_user(user_id)
        with transaction(self.db):
            user.role = role
        logger.info("Admin changed role of user %s to %s", user_id, UserRole(role).value)
        return self._to_admin_user(user)

    def update_user_status(self, user_id: str, status: UserStatus) -> AdminUserResponse:
        user = self._get_user(user_id)
        if user.role == UserRole.ADMIN:
            raise ValidationFailed("Cannot change status of admin users", code="admin_status_immutable")
        with transaction(self.db):
            user.status = status
        logger.info("Admin changed status of user %s to %s", user_id, UserStatus(status).value)
        return self._to_admin_user(user)

    def update_business_info(self, user_id: str, data: BusinessInfoUpdate) -> AdminUserResponse:
        user = self._get_user(user_id)
        if user.role != UserRole.SELLER:
            raise ValidationFailed(
                "Can only update business info for seller accounts", code="not_a_seller"
            )
        with transaction(self.db):
            user.cnpj = data.cnpj
            user.legal_company_name = data.legal_company_name
        return self._to_admin_user(user)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    def list_orders(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        status: Optional[OrderStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> AdminOrderListResponse:
        page, limit = max(page, 1), max(limit, 1)
        query = self.db.query(Order)
        if status:
            query = query.filter(Order.status == status)
        if start_date:
            query = query.filter(Order.created_at >= start_date)
        if end_date:
            query = query.filter(Order.created_at <= end_date)

        total = query.count()
        orders = query.order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
        return AdminOrderListResponse(
            orders=[OrderResponse.model_validate(o) for o in orders],
            pagination=_pagination(page, limit, total),
        )

    def update_order_status(self, order_id: str, status: OrderStatus, admin: User) -> Order:
        return OrderService(self.db).transition_status(order_id, status, admin)

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------
    def dashboard_stats(self) -> DashboardStats:
        revenue = (
            self.db.query(func.coalesce(func.sum(Order.total), 0))
            .filter(Order.status.in_(REVENUE_STATUSES))
            .scalar()
        )
        users_by_role = {
            UserRole(role).value: count
            for role, count in self.db.query(User.role, func.count(User.id)).group_by(User.role).all()
        }
        orders_by_status = {
            OrderStatus(status).value: count
            for status, count in self.db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
        }
        recent: List[Order] = (
            self.db.query(Order).order_by(Order.created_at.desc()).limit(RECENT_ORDERS_LIMIT).all()
        )
        return DashboardStats(
            summary=DashboardSummary(
                total_users=self.db.query(func.count(User.id)).scalar() or 0,
                total_products=self.db.query(func.count(Product.id)).scalar() or 0,
                total_orders=self.db.query(func.count(Order.id)).scalar() or 0,
                revenue=Decimal(str(revenue or 0)),
            ),
            users_by_role=users_by_role,
            orders_by_status=orders_by_status,
            recent_orders=[OrderResponse.model_validate(o) for o in recent],
        )

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------
    def list_submitted_products(self) -> List[Product]:
        return (
            self.db.query(Product)
            .filter(Product.is_submitted_for_approval.is_(True))
            .order_by(Product.created_at.desc())
            .all()
        )

    def update_product_status(self, product_id: str, status: ProductStatus) -> Product:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise NotFound("Product not found", code="product_not_found")
        with transaction(self.db):
            product.status = status
        logger.info("Admin set product %s status to %s", product_id, ProductStatus(status).value)
        return product
