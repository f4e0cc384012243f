from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from marketplace.models.product import ProductCreate, ProductListResponse, ProductResponse, ProductUpdate
from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import User
from marketplace.services.auth import admin_required, get_current_user, seller_or_admin_required
from marketplace.services.product_service import DEFAULT_PAGE_SIZE, ProductService

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=ProductListResponse)
async def list_products(
    category_id: Optional[str] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ProductService(db).list_products(category_id, min_price, max_price, page, limit)


@router.get("/seller/me", response_model=List[ProductResponse])
async def list_my_products(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ProductService(db).list_seller_products(current_user.id)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, db: Session = Depends(get_db)):
    return ProductService(db).get_product(product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    current_user: User = Depends(seller_or_admin_required),
    db: Session = Depends(get_db),
):
    return await ProductService(db).create_product(current_user, data)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    current_user: User = Depends(seller_or_admin_required),
    db: Session = Depends(get_db),
):
    return ProductService(db).update_product(product_id, current_user, data)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: str, current_user: User = Depends(admin_required), db: Session = Depends(get_db)):
    ProductService(db).delete_product(product_id)
