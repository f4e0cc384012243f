from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional

from marketplace.models_sqlalchemy.models import UserRole, UserStatus


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    # Only CUSTOMER or SELLER are honoured at registration.
    role: Optional[UserRole] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: str
    email: EmailStr
    name: str
    role: UserRole
    status: UserStatus
    cnpj: Optional[str] = None
    legal_company_name: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    user: UserResponse
    token: str
    token_type: str = "bearer"
