import math
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from marketplace.errors import Conflict, NotFound, PermissionDenied
from marketplace.models.product import PageMeta, ProductCreate, ProductListResponse, ProductResponse, ProductUpdate
from marketplace.models_sqlalchemy import transaction
from marketplace.models_sqlalchemy.models import Category, OrderItem, Product, User, UserRole
from marketplace.services.bling_service import BlingService
from marketplace.utils.logger import logger


DEFAULT_PAGE_SIZE = 20


class ProductService:

    def __init__(self, db: Session, bling: Optional[BlingService] = None):
        self.db = db
        self.bling = bling or BlingService(db)

    def list_products(
        self,
        category_id: Optional[str] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> ProductListResponse:
        page = max(page, 1)
        limit = max(limit, 1)

        query = self.db.query(Product)
        if category_id:
            query = query.filter(Product.category_id == category_id)
        if min_price is not None:
            query = query.filter(Product.price >= min_price)
        if max_price is not None:
            query = query.filter(Product.price <= max_price)

        total = query.count()
        products = (
            query.options(joinedload(Product.seller))
            .order_by(Product.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return ProductListResponse(
            data=[ProductResponse.model_validate(p) for p in products],
            meta=PageMeta(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit)),
        )

    def list_seller_products(self, seller_id: str) -> List[Product]:
        return (
            self.db.query(Product)
            .filter(Product.seller_id == seller_id)
            .order_by(Product.created_at.desc())
            .all()
        )

    def get_product(self, product_id: str) -> Product:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise NotFound("Product not found", code="product_not_found")
        return product

    async def create_product(self, seller: User, data: ProductCreate) -> Product:
        """Create a product owned by ``seller``.

        When the seller has a Bling connection the product is pushed there
        first; a failed push aborts the local insert.
        """
        if self.db.query(Product.id).filter(Product.sku == data.sku).first():
            raise Conflict(f"Product with SKU {data.sku} already exists", code="sku_taken")

        category = None
        if data.category_id:
            category = self.db.query(Category).filter(Category.id == data.category_id).first()
            if category is None:
                raise NotFound("Category not found", code="category_not_found")

        if self.bling.is_configured(seller.id):
            await self.bling.push_product(
                seller.id,
                sku=data.sku,
                name=data.name,
                price=float(data.price),
                description=data.description,
                image_url=data.images[0] if data.images else None,
                bling_category_id=category.bling_id if category is not None else None,
            )

        product = Product(
            sku=data.sku,
            name=data.name,
            description=data.description,
            price=data.price,
            stock=data.stock,
            images=list(data.images),
            seller_id=seller.id,
            category_id=data.category_id,
        )
        with transaction(self.db):
            self.db.add(product)
        logger.info("Created product %s sku=%s for seller %s", product.id, product.sku, seller.id)
        return product

    def update_product(self, product_id: str, actor: User, data: ProductUpdate) -> Product:
        product = self.get_product(product_id)
        if actor.role != UserRole.ADMIN and product.seller_id != actor.id:
            raise PermissionDenied("Product does not belong to this seller", code="product_not_owned")

        changes = data.model_dump(exclude_unset=True)
        if changes.get("category_id"):
            category = self.db.query(Category).filter(Category.id == changes["category_id"]).first()
            if category is None:
                raise NotFound("Category not found", code="category_not_found")

        with transaction(self.db):
            for key, value in changes.items():
                setattr(product, key, value)
        return product

    def delete_product(self, product_id: str) -> Product:
        product = self.get_product(product_id)
        if self.db.query(OrderItem.id).filter(OrderItem.product_id == product.id).first():
            raise Conflict("Product has orders and cannot be deleted", code="product_in_use")
        with transaction(self.db):
            self.db.delete(product)
        logger.info("Deleted product %s", product_id)
        return product
