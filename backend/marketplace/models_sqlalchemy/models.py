from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Enum, Boolean, Index, Numeric, JSON, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import uuid

from . import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class UserRole(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"


class UserStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class ProductStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    IN_PROCESS = "IN_PROCESS"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, enum.Enum):
    PIX = "PIX"
    CREDIT_CARD = "CREDIT_CARD"


class ShippingType(str, enum.Enum):
    # Platform-quoted shipping; the cost is split across seller groups.
    PLATFORM = "PLATFORM"
    # Seller arranges and charges shipping outside the checkout.
    SELLER = "SELLER"


class CredentialProvider(str, enum.Enum):
    MERCADO_PAGO = "MERCADO_PAGO"
    BLING = "BLING"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.CUSTOMER)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)

    # Seller business fields
    cnpj = Column(String(20), nullable=True)
    legal_company_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    addresses = relationship("Address", back_populates="user")
    orders = relationship("Order", back_populates="user", foreign_keys="Order.user_id")
    products = relationship("Product", back_populates="seller")
    credentials = relationship("ProviderCredential", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_user_role', 'role'),
        Index('idx_user_status', 'status'),
    )


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, index=True)
    # Seller/admin who owns the category
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    # Category id on the ERP side, when pushed/pulled
    bling_id = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = relationship("Product", back_populates="category")

    @property
    def product_count(self) -> int:
        return len(self.products)


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    images = Column(JSON, nullable=False, default=list)

    # NULL seller = platform-owned product
    seller_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)

    status = Column(Enum(ProductStatus), nullable=False, default=ProductStatus.PENDING)
    is_submitted_for_approval = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    seller = relationship("User", back_populates="products")
    category = relationship("Category", back_populates="products")

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )


class Address(Base):
    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    street = Column(String(255), nullable=False)
    number = Column(String(20), nullable=False)
    complement = Column(String(255), nullable=True)
    neighborhood = Column(String(255), nullable=False)
    city = Column(String(255), nullable=False)
    state = Column(String(2), nullable=False)
    zip_code = Column(String(9), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="addresses")


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    # Buyer
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    # NULL seller = platform-fulfilled group
    seller_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    address_id = Column(String(36), ForeignKey("addresses.id"), nullable=False)

    payment_method = Column(Enum(PaymentMethod), nullable=False)
    shipping_type = Column(Enum(ShippingType), nullable=False, default=ShippingType.PLATFORM)
    shipping_method = Column(String(50), nullable=True)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)

    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING, index=True)
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    # Gateway payment id, set by reconciliation
    payment_id = Column(String(100), nullable=True, index=True)
    application_fee = Column(Numeric(10, 2), nullable=True)
    # Set once when a failed/cancelled payment gives the stock back
    stock_restored_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="orders", foreign_keys=[user_id])
    seller = relationship("User", foreign_keys=[seller_id])
    address = relationship("Address")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.created_at")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    # Unit price captured at order time
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")


class ProviderCredential(Base):
    """OAuth credentials a user holds with an external provider.

    One row per (user, provider). Token and secret columns store encrypted
    values when written through the properties below; the physical column
    names stay readable for SQL tooling.
    """

    __tablename__ = "provider_credentials"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(Enum(CredentialProvider), nullable=False)

    account_id = Column(String(100), nullable=True)
    client_id = Column(String(255), nullable=True)
    _client_secret = Column("client_secret", Text, nullable=True)
    _access_token = Column("access_token", Text, nullable=True)
    _refresh_token = Column("refresh_token", Text, nullable=True)
    scope = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    # Pending OAuth authorization state
    oauth_state = Column(String(100), nullable=True, unique=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="credentials")

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_provider_credentials_user_provider"),
    )

    # ------------------------------------------------------------------
    # Encrypted accessors
    # ------------------------------------------------------------------
    @property
    def access_token(self) -> str | None:
        from marketplace.utils import crypto

        return crypto.decrypt(self._access_token)

    @access_token.setter
    def access_token(self, value: str | None) -> None:
        from marketplace.utils import crypto

        self._access_token = crypto.encrypt(value) if value else None

    @property
    def refresh_token(self) -> str | None:
        from marketplace.utils import crypto

        return crypto.decrypt(self._refresh_token)

    @refresh_token.setter
    def refresh_token(self, value: str | None) -> None:
        from marketplace.utils import crypto

        self._refresh_token = crypto.encrypt(value) if value else None

    @property
    def client_secret(self) -> str | None:
        from marketplace.utils import crypto

        return crypto.decrypt(self._client_secret)

    @client_secret.setter
    def client_secret(self, value: str | None) -> None:
        from marketplace.utils import crypto

        self._client_secret = crypto.encrypt(value) if value else None

    @property
    def is_connected(self) -> bool:
        return bool(self._access_token)
