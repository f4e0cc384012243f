from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.models.category import CategoryCreate, CategoryResponse, CategoryUpdate
from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import User
from marketplace.services.auth import get_current_user, get_optional_user, seller_or_admin_required
from marketplace.services.category_service import CategoryService

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=List[CategoryResponse])
async def list_categories(current_user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    return CategoryService(db).list_categories(current_user)


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return CategoryService(db).get_category(category_id, current_user.id)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    current_user: User = Depends(seller_or_admin_required),
    db: Session = Depends(get_db),
):
    return await CategoryService(db).create_category(current_user.id, data)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    current_user: User = Depends(seller_or_admin_required),
    db: Session = Depends(get_db),
):
    return await CategoryService(db).update_category(category_id, current_user.id, data)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: str,
    current_user: User = Depends(seller_or_admin_required),
    db: Session = Depends(get_db),
):
    CategoryService(db).delete_category(category_id, current_user.id)
