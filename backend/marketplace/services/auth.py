from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
import hashlib
import hmac
import os
import binascii
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from marketplace.config import settings
from marketplace.errors import AuthenticationFailed, Conflict, PermissionDenied
from marketplace.models.user import AuthResponse, UserCreate, UserLogin, UserResponse
from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import User, UserRole, UserStatus
from marketplace.services.user_service import UserService
from marketplace.utils.logger import logger

security = HTTPBearer(auto_error=False)

# Password hashing scheme: PBKDF2-HMAC-SHA256 with salt and iterations.
# Stored format: "pbkdf2_sha256$<iterations>$<salt_hex>$<hash_hex>".
_PBKDF2_ALGO_PREFIX = "pbkdf2_sha256"
_PBKDF2_ITERATIONS = 100_000
_PBKDF2_SALT_BYTES = 16

# Roles a user may pick for themselves at registration.
_SELF_SERVICE_ROLES = {UserRole.CUSTOMER, UserRole.SELLER}


def get_password_hash(password: str) -> str:
    """Return a PBKDF2-SHA256 hash string for the given password."""
    if not isinstance(password, str):
        raise TypeError("password must be a string")

    salt = os.urandom(_PBKDF2_SALT_BYTES)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)
    salt_hex = binascii.hexlify(salt).decode("ascii")
    hash_hex = binascii.hexlify(dk).decode("ascii")
    return f"{_PBKDF2_ALGO_PREFIX}${_PBKDF2_ITERATIONS}${salt_hex}${hash_hex}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a PBKDF2-SHA256 encoded hash.

    Returns False if the hash is malformed.
    """
    if not hashed_password:
        return False
    try:
        prefix, iter_str, salt_hex, hash_hex = hashed_password.split("$", 3)
        if prefix != _PBKDF2_ALGO_PREFIX:
            return False
        iterations = int(iter_str)
        salt = binascii.unhexlify(salt_hex.encode("ascii"))
        expected = binascii.unhexlify(hash_hex.encode("ascii"))
    except (ValueError, binascii.Error):
        return False

    dk = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(dk, expected)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.ALGORITHM)
    return encoded_jwt


def _token_for(user: User) -> str:
    return create_access_token({"sub": user.id, "email": user.email, "role": UserRole(user.role).value})


def register_user(db: Session, user_data: UserCreate) -> AuthResponse:
    service = UserService(db)
    if service.get_user_by_email(user_data.email):
        logger.warning(f"Registration failed: Email already exists - {user_data.email}")
        raise Conflict("Email already registered", code="email_taken")

    role = user_data.role if user_data.role in _SELF_SERVICE_ROLES else UserRole.CUSTOMER
    user = service.create_user(
        email=user_data.email,
        name=user_data.name,
        hashed_password=get_password_hash(user_data.password),
        role=role,
    )
    return AuthResponse(user=UserResponse.model_validate(user), token=_token_for(user))


def login_user(db: Session, credentials: UserLogin) -> AuthResponse:
    user = UserService(db).get_user_by_email(credentials.email)
    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Authentication failed for {credentials.email}")
        raise AuthenticationFailed("Invalid credentials", code="invalid_credentials")
    if user.status == UserStatus.SUSPENDED:
        logger.warning(f"Suspended user attempted login: {user.email}")
        raise PermissionDenied("Account is suspended", code="account_suspended")

    logger.info(f"User authenticated successfully: {user.email}")
    return AuthResponse(user=UserResponse.model_validate(user), token=_token_for(user))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthenticationFailed("No authorization header")
    try:
        payload = jwt.decode(credentials.credentials, settings.secret_key, algorithms=[settings.ALGORITHM])
        user_id: Optional[str] = payload.get("sub")
        if user_id is None:
            raise AuthenticationFailed()
    except JWTError as e:
        logger.error(f"JWT validation error: {str(e)}")
        raise AuthenticationFailed("Invalid token", code="invalid_token")

    user = UserService(db).get_user_by_id(user_id)
    if user is None:
        logger.error(f"User not found for token: {user_id}")
        raise AuthenticationFailed()
    if user.status == UserStatus.SUSPENDED:
        logger.warning(f"Suspended user attempted access: {user.email}")
        raise PermissionDenied("Account is suspended", code="account_suspended")

    return user


def require_roles(*roles: UserRole):
    """Dependency factory restricting a route to the given roles."""
    allowed = set(roles)

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(
                f"User {current_user.email} with role {UserRole(current_user.role).value} denied; requires {sorted(r.value for r in allowed)}"
            )
            raise PermissionDenied("Insufficient permissions", code="insufficient_role")
        return current_user

    return _checker


admin_required = require_roles(UserRole.ADMIN)
seller_or_admin_required = require_roles(UserRole.SELLER, UserRole.ADMIN)
seller_required = require_roles(UserRole.SELLER)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user but anonymous callers get None instead of a 401."""
    if credentials is None:
        return None
    return await get_current_user(credentials, db)
