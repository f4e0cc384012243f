from pydantic import BaseModel, Field
from typing import Optional


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None


class CategoryResponse(BaseModel):
    id: str
    name: str
    slug: str
    user_id: Optional[str] = None
    bling_id: Optional[int] = None
    product_count: int = 0

    class Config:
        from_attributes = True
