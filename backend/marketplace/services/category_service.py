from typing import List, Optional

from sqlalchemy.orm import Session

from marketplace.errors import Conflict, NotFound
from marketplace.models.category import CategoryCreate, CategoryUpdate
from marketplace.models_sqlalchemy import transaction
from marketplace.models_sqlalchemy.models import Category, Product, User, UserRole
from marketplace.services.bling_service import BlingService, slugify
from marketplace.utils.logger import logger


class CategoryService:

    def __init__(self, db: Session, bling: Optional[BlingService] = None):
        self.db = db
        self.bling = bling or BlingService(db)

    def list_categories(self, user: Optional[User] = None) -> List[Category]:
        """Sellers and admins see their own categories; everybody else sees all."""
        query = self.db.query(Category)
        if user is not None and user.role in (UserRole.SELLER, UserRole.ADMIN):
            query = query.filter(Category.user_id == user.id)
        return query.order_by(Category.name.asc()).all()

    def get_category(self, category_id: str, user_id: str) -> Category:
        category = (
            self.db.query(Category)
            .filter(Category.id == category_id, Category.user_id == user_id)
            .first()
        )
        if category is None:
            raise NotFound("Category not found", code="category_not_found")
        return category

    async def create_category(self, user_id: str, data: CategoryCreate) -> Category:
        """Create a category, pushing it to Bling first when the user is connected."""
        bling_id = None
        if self.bling.is_configured(user_id):
            bling_id = await self.bling.create_category(user_id, data.name)

        category = Category(
            name=data.name,
            slug=data.slug or slugify(data.name),
            user_id=user_id,
            bling_id=bling_id,
        )
        with transaction(self.db):
            self.db.add(category)
        logger.info("Created category %s (%s) for user %s bling_id=%s", category.id, category.name, user_id, bling_id)
        return category

    async def update_category(self, category_id: str, user_id: str, data: CategoryUpdate) -> Category:
        category = self.get_category(category_id, user_id)
        updates = data.model_dump(exclude_unset=True)

        if "name" in updates and category.bling_id and self.bling.is_configured(user_id):
            await self.bling.update_category(user_id, category.bling_id, updates["name"])

        with transaction(self.db):
            for key, value in updates.items():
                setattr(category, key, value)
        return category

    def delete_category(self, category_id: str, user_id: str) -> Category:
        category = self.get_category(category_id, user_id)
        in_use = self.db.query(Product.id).filter(Product.category_id == category.id).first()
        if in_use:
            raise Conflict("Category still has products", code="category_in_use")
        with transaction(self.db):
            self.db.delete(category)
        logger.info("Deleted category %s for user %s", category_id, user_id)
        return category
