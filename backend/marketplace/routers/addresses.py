from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from marketplace.models.address import AddressCreate, AddressResponse, AddressUpdate
from marketplace.models_sqlalchemy import get_db
from marketplace.models_sqlalchemy.models import User
from marketplace.services.address_service import AddressService
from marketplace.services.auth import get_current_user

router = APIRouter(prefix="/api/addresses", tags=["addresses"])


@router.get("", response_model=List[AddressResponse])
async def list_addresses(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return AddressService(db).list_addresses(current_user.id)


@router.get("/{address_id}", response_model=AddressResponse)
async def get_address(address_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return AddressService(db).get_address(address_id, current_user.id)


@router.post("", response_model=AddressResponse, status_code=status.HTTP_201_CREATED)
async def create_address(data: AddressCreate, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return AddressService(db).create_address(current_user.id, data)


@router.put("/{address_id}", response_model=AddressResponse)
async def update_address(
    address_id: str,
    data: AddressUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AddressService(db).update_address(address_id, current_user.id, data)


@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_address(address_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    AddressService(db).delete_address(address_id, current_user.id)
