from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class AddressCreate(BaseModel):
    street: str
    number: str
    complement: Optional[str] = None
    neighborhood: str
    city: str
    state: str = Field(..., min_length=2, max_length=2)
    zip_code: str = Field(..., min_length=8, max_length=9)
    is_default: bool = False


class AddressUpdate(BaseModel):
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    zip_code: Optional[str] = Field(None, min_length=8, max_length=9)
    is_default: Optional[bool] = None


class AddressResponse(BaseModel):
    id: str
    user_id: str
    street: str
    number: str
    complement: Optional[str] = None
    neighborhood: str
    city: str
    state: str
    zip_code: str
    is_default: bool
    created_at: datetime

    class Config:
        from_attributes = True
