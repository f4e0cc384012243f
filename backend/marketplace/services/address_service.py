from typing import List, Optional

from sqlalchemy.orm import Session

from marketplace.errors import Conflict, NotFound
from marketplace.models.address import AddressCreate, AddressUpdate
from marketplace.models_sqlalchemy import transaction
from marketplace.models_sqlalchemy.models import Address, Order


class AddressService:

    def __init__(self, db: Session):
        self.db = db

    def list_addresses(self, user_id: str) -> List[Address]:
        return (
            self.db.query(Address)
            .filter(Address.user_id == user_id)
            .order_by(Address.is_default.desc(), Address.created_at.desc())
            .all()
        )

    def get_address(self, address_id: str, user_id: str) -> Address:
        address = (
            self.db.query(Address)
            .filter(Address.id == address_id, Address.user_id == user_id)
            .first()
        )
        if address is None:
            raise NotFound("Address not found", code="address_not_found")
        return address

    def _clear_default(self, user_id: str, keep_id: Optional[str] = None) -> None:
        query = self.db.query(Address).filter(Address.user_id == user_id, Address.is_default.is_(True))
        if keep_id:
            query = query.filter(Address.id != keep_id)
        query.update({Address.is_default: False}, synchronize_session=False)

    def create_address(self, user_id: str, data: AddressCreate) -> Address:
        address = Address(user_id=user_id, **data.model_dump())
        with transaction(self.db):
            if data.is_default:
                self._clear_default(user_id)
            self.db.add(address)
        return address

    def update_address(self, address_id: str, user_id: str, data: AddressUpdate) -> Address:
        address = self.get_address(address_id, user_id)
        updates = data.model_dump(exclude_unset=True)
        with transaction(self.db):
            if updates.get("is_default"):
                self._clear_default(user_id, keep_id=address.id)
            for key, value in updates.items():
                setattr(address, key, value)
        return address

    def delete_address(self, address_id: str, user_id: str) -> Address:
        address = self.get_address(address_id, user_id)
        if self.db.query(Order.id).filter(Order.address_id == address.id).first():
            raise Conflict("Address is used by an order and cannot be deleted", code="address_in_use")
        with transaction(self.db):
            self.db.delete(address)
        return address
