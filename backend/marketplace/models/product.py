from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from marketplace.models_sqlalchemy.models import ProductStatus


class ProductCreate(BaseModel):
    sku: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0)
    stock: int = Field(0, ge=0)
    category_id: Optional[str] = None
    images: List[str] = []


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0)
    stock: Optional[int] = Field(None, ge=0)
    category_id: Optional[str] = None
    images: Optional[List[str]] = None
    is_submitted_for_approval: Optional[bool] = None

    # Omitted fields stay untouched; only description and category may be cleared.
    @field_validator("name", "price", "stock", "images", "is_submitted_for_approval", mode="before")
    @classmethod
    def _not_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class ProductSellerSummary(BaseModel):
    id: str
    name: str
    email: str

    class Config:
        from_attributes = True


class ProductResponse(BaseModel):
    id: str
    sku: str
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    images: List[str] = []
    seller_id: Optional[str] = None
    category_id: Optional[str] = None
    status: ProductStatus
    is_submitted_for_approval: bool
    seller: Optional[ProductSellerSummary] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class ProductListResponse(BaseModel):
    data: List[ProductResponse]
    meta: PageMeta
