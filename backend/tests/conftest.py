from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.models_sqlalchemy import Base, get_db
from marketplace.models_sqlalchemy.models import (
    Address,
    Category,
    CredentialProvider,
    Product,
    ProviderCredential,
    User,
    UserRole,
    UserStatus,
)
from marketplace.services.auth import create_access_token, get_password_hash


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    """TestClient bound to the in-memory database (startup hooks are not run)."""
    from marketplace.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ----------------------------------------------------------------------
# Factories
# ----------------------------------------------------------------------
@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role=UserRole.CUSTOMER, status=UserStatus.ACTIVE, name=None, password="secret123"):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=f"{role.value.lower()}{n}@example.com",
            name=name or f"{role.value.title()} {n}",
            hashed_password=get_password_hash(password),
            role=role,
            status=status,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_address(db):
    def _make_address(user, is_default=False, **overrides):
        fields = dict(
            street="Rua Augusta",
            number="100",
            neighborhood="Consolação",
            city="São Paulo",
            state="SP",
            zip_code="01305000",
            is_default=is_default,
        )
        fields.update(overrides)
        address = Address(user_id=user.id, **fields)
        db.add(address)
        db.commit()
        return address

    return _make_address


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make_product(seller=None, price="100.00", stock=10, name=None, category=None):
        counter["n"] += 1
        n = counter["n"]
        product = Product(
            sku=f"SKU-{n:04d}",
            name=name or f"Frame {n}",
            price=Decimal(price),
            stock=stock,
            images=[],
            seller_id=seller.id if seller is not None else None,
            category_id=category.id if category is not None else None,
        )
        db.add(product)
        db.commit()
        return product

    return _make_product


@pytest.fixture
def make_category(db):
    def _make_category(owner, name="Sunglasses", bling_id=None):
        category = Category(name=name, slug=name.lower(), user_id=owner.id, bling_id=bling_id)
        db.add(category)
        db.commit()
        return category

    return _make_category


@pytest.fixture
def connect_provider(db):
    """Give a user a connected provider credential (Mercado Pago by default)."""

    def _connect(user, provider=CredentialProvider.MERCADO_PAGO, access_token="seller-token", refresh_token="seller-refresh", expires_at=None):
        credential = ProviderCredential(user_id=user.id, provider=provider, expires_at=expires_at)
        credential.access_token = access_token
        credential.refresh_token = refresh_token
        db.add(credential)
        db.commit()
        return credential

    return _connect


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": user.id, "email": user.email, "role": user.role.value})
        return {"Authorization": f"Bearer {token}"}

    return _headers
