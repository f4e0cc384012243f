import pytest
from fastapi.security import HTTPAuthorizationCredentials

from marketplace.errors import AuthenticationFailed, Conflict, PermissionDenied
from marketplace.models.user import UserCreate, UserLogin
from marketplace.models_sqlalchemy.models import UserRole, UserStatus
from marketplace.services.auth import (
    create_access_token,
    get_current_user,
    get_password_hash,
    login_user,
    register_user,
    verify_password,
)


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_password_hash_roundtrip():
    hashed = get_password_hash("correct horse")

    assert hashed.startswith("pbkdf2_sha256$")
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("correct horse", "garbage")
    assert not verify_password("correct horse", "")


@pytest.mark.parametrize(
    "requested, role, status",
    [
        (None, UserRole.CUSTOMER, UserStatus.ACTIVE),
        (UserRole.CUSTOMER, UserRole.CUSTOMER, UserStatus.ACTIVE),
        (UserRole.SELLER, UserRole.SELLER, UserStatus.PENDING),
        (UserRole.ADMIN, UserRole.CUSTOMER, UserStatus.ACTIVE),
    ],
)
def test_registration_roles(db, requested, role, status):
    result = register_user(db, UserCreate(email="New@Example.com", password="secret123", name="New", role=requested))

    assert result.user.email == "new@example.com"
    assert result.user.role == role
    assert result.user.status == status
    assert result.token


def test_duplicate_email_is_rejected(db):
    register_user(db, UserCreate(email="a@example.com", password="secret123", name="A"))
    with pytest.raises(Conflict):
        register_user(db, UserCreate(email="A@example.com", password="secret123", name="A"))


def test_login(db, make_user):
    user = make_user(password="hunter22")

    result = login_user(db, UserLogin(email=user.email, password="hunter22"))
    assert result.user.id == user.id

    with pytest.raises(AuthenticationFailed) as exc:
        login_user(db, UserLogin(email=user.email, password="nope"))
    assert exc.value.code == "invalid_credentials"


def test_suspended_user_cannot_login(db, make_user):
    user = make_user(status=UserStatus.SUSPENDED, password="hunter22")

    with pytest.raises(PermissionDenied):
        login_user(db, UserLogin(email=user.email, password="hunter22"))


@pytest.mark.asyncio
async def test_current_user_from_token(db, make_user):
    user = make_user(role=UserRole.SELLER)
    token = create_access_token({"sub": user.id})

    assert (await get_current_user(_bearer(token), db)).id == user.id


@pytest.mark.asyncio
async def test_current_user_rejects_bad_tokens(db, make_user):
    with pytest.raises(AuthenticationFailed):
        await get_current_user(None, db)
    with pytest.raises(AuthenticationFailed) as exc:
        await get_current_user(_bearer("not-a-jwt"), db)
    assert exc.value.code == "invalid_token"
    with pytest.raises(AuthenticationFailed):
        await get_current_user(_bearer(create_access_token({"sub": "missing-user"})), db)


@pytest.mark.asyncio
async def test_suspended_user_token_is_refused(db, make_user):
    user = make_user(status=UserStatus.SUSPENDED)

    with pytest.raises(PermissionDenied):
        await get_current_user(_bearer(create_access_token({"sub": user.id})), db)
