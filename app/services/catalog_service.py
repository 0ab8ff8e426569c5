import logging
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, selectinload

from app.core import storage
from app.core.cache import cache, invalidate_cache
from app.core.config import get_settings
from app.core.db import atomic
from app.models import Category, ImageKind, Product, ProductCategory

from . import exceptions
from .product_category_service import ProductCategoryService

logger = logging.getLogger(__name__)

CATEGORY_NAMESPACE = "categories"
PRODUCT_NAMESPACE = "products"

PRODUCT_SORTS = ("name", "price_asc", "price_desc", "latest")


def _catalog_ttl() -> int:
    return get_settings().CATALOG_CACHE_TTL_SECONDS


class CatalogService:
    """Keeps products, categories and their links consistent.

    Every write that spans the product/category tables and the link table
    runs in a single transaction; the link-table part is delegated to
    ``ProductCategoryService`` with ``commit=False``.
    """

    def __init__(self, db: Session):
        self.db = db
        self.links = ProductCategoryService(db)

    # Cached public reads

    @cache(ttl=_catalog_ttl, namespace=CATEGORY_NAMESPACE, key_builder=lambda self: "active")
    def get_cached_active_categories(self) -> list[dict]:
        counts = self.links.count_by_category()
        return [
            self.serialize_category(category, counts.get(category.id, 0))
            for category in self.list_categories(active_only=True)
        ]

    @cache(
        ttl=_catalog_ttl,
        namespace=PRODUCT_NAMESPACE,
        key_builder=lambda self, category_id=None: f"active:{category_id or 'all'}",
    )
    def get_cached_active_products(self, category_id: int | None = None) -> list[dict]:
        products = self.list_products(active_only=True, category_id=category_id)
        return [self.serialize_product(product) for product in products]

    # Categories

    def list_categories(self, *, active_only: bool = False, search: str | None = None) -> list[Category]:
        query = self.db.query(Category)
        if active_only:
            query = query.filter(Category.active.is_(True))
        if search:
            query = query.filter(Category.name.ilike(f"%{search.strip()}%"))
        return query.order_by(Category.name).all()

    def get_category(self, category_id: int) -> Category:
        return self.links.get_category(category_id)

    def create_category(self, *, data: dict) -> Category:
        name = data["name"].strip()
        if self._category_name_taken(name):
            raise exceptions.ConflictError("A category with this name already exists")
        category = Category(
            name=name,
            description=data.get("description"),
            image_url=data.get("image_url"),
            active=True if data.get("active") is None else data["active"],
        )
        with self._transaction("A category with this name already exists"):
            self.db.add(category)
        self.db.refresh(category)
        self._invalidate()
        logger.info("Category created: %s", category.name)
        return category

    def update_category(self, *, category_id: int, data: dict) -> Category:
        category = self.get_category(category_id)
        if "name" in data and data["name"] is not None:
            name = data["name"].strip()
            if name != category.name and self._category_name_taken(name):
                raise exceptions.ConflictError("A category with this name already exists")
            data["name"] = name
        with self._transaction("A category with this name already exists"):
            for key, value in data.items():
                setattr(category, key, value)
            self.db.add(category)
        self.db.refresh(category)
        self._invalidate()
        logger.info("Category updated: %s", category.name)
        return category

    def delete_category(self, *, category_id: int) -> None:
        with self._transaction():
            category = self.links.lock_category(category_id)
            linked = self.links.count_products(category_id)
            if linked > 0:
                raise exceptions.ConflictError(
                    f"Category '{category.name}' cannot be deleted because {linked} product(s) are linked to it"
                )
            self.links.delete_all_for_category(category_id, commit=False)
            self.db.delete(category)
        storage.delete_image(ImageKind.CATEGORY, category.image_url)
        self._invalidate()
        logger.info("Category deleted: %s", category.name)

    def toggle_category_status(self, *, category_id: int) -> Category:
        category = self.get_category(category_id)
        with self._transaction():
            category.active = not category.active
        self._invalidate()
        logger.info("Category %s %s", category.name, "activated" if category.active else "deactivated")
        return category

    def set_category_image(
        self, *, category_id: int, file_name: str | None, content_type: str | None, contents: bytes
    ) -> Category:
        category = self.get_category(category_id)
        new_url = storage.save_image(
            ImageKind.CATEGORY, file_name=file_name, content_type=content_type, contents=contents
        )
        old_url = category.image_url
        with self._transaction():
            category.image_url = new_url
        storage.delete_image(ImageKind.CATEGORY, old_url)
        self._invalidate()
        return category

    def remove_category_image(self, *, category_id: int) -> Category:
        category = self.get_category(category_id)
        old_url = category.image_url
        if old_url:
            with self._transaction():
                category.image_url = None
            storage.delete_image(ImageKind.CATEGORY, old_url)
            self._invalidate()
        return category

    def category_stats(self) -> dict:
        total = self.db.query(func.count(Category.id)).scalar() or 0
        active = self.db.query(func.count(Category.id)).filter(Category.active.is_(True)).scalar() or 0
        with_products = (
            self.db.query(func.count(func.distinct(ProductCategory.category_id))).scalar() or 0
        )
        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "with_products": with_products,
            "empty": total - with_products,
        }

    # Products

    def list_products(
        self,
        *,
        active_only: bool = False,
        category_id: int | None = None,
        search: str | None = None,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
        in_stock: bool | None = None,
        sort: str = "name",
    ) -> list[Product]:
        if sort not in PRODUCT_SORTS:
            raise exceptions.ValidationError("sort must be one of: " + ", ".join(PRODUCT_SORTS))
        if min_price is not None and max_price is not None and min_price > max_price:
            raise exceptions.ValidationError("min_price cannot be greater than max_price")

        query = self._product_query()
        if active_only:
            query = query.filter(Product.active.is_(True))
        if category_id is not None:
            primary_of_category = select(ProductCategory.product_id).where(
                ProductCategory.category_id == category_id,
                ProductCategory.is_primary.is_(True),
            )
            query = query.filter(Product.id.in_(primary_of_category))
        if search:
            query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
        if min_price is not None:
            query = query.filter(Product.price >= min_price)
        if max_price is not None:
            query = query.filter(Product.price <= max_price)
        if in_stock is True:
            query = query.filter(Product.stock > 0)
        elif in_stock is False:
            query = query.filter(Product.stock == 0)

        if sort == "price_asc":
            query = query.order_by(Product.price.asc(), Product.id)
        elif sort == "price_desc":
            query = query.order_by(Product.price.desc(), Product.id)
        elif sort == "latest":
            query = query.order_by(Product.created_at.desc(), Product.id.desc())
        else:
            query = query.order_by(Product.name, Product.id)
        return query.all()

    def low_stock_products(self, threshold: int | None = None) -> list[Product]:
        if threshold is None:
            threshold = get_settings().LOW_STOCK_THRESHOLD
        return (
            self._product_query()
            .filter(Product.active.is_(True), Product.stock <= threshold)
            .order_by(Product.stock, Product.name)
            .all()
        )

    def latest_products(self, limit: int = 10) -> list[Product]:
        return (
            self._product_query()
            .filter(Product.active.is_(True))
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
            .all()
        )

    def get_product(self, product_id: int) -> Product:
        product = self._product_query().filter(Product.id == product_id).first()
        if not product:
            raise exceptions.NotFoundError("Product not found")
        return product

    def create_product(self, *, data: dict) -> Product:
        data = dict(data)
        category_id = data.pop("category_id")
        if data.get("active") is None:
            data["active"] = True
        with self._transaction():
            self.links.get_category(category_id)
            product = Product(**data)
            self.db.add(product)
            self.db.flush()
            self.links.add_link(product.id, category_id, is_primary=True, commit=False)
        self._invalidate()
        logger.info("Product created: %s in category %s", product.name, product.category_name)
        return product

    def update_product(self, *, product_id: int, data: dict) -> Product:
        data = dict(data)
        category_id = data.pop("category_id", None)
        with self._transaction():
            product = self.links.lock_product(product_id)
            for key, value in data.items():
                setattr(product, key, value)
            self.db.add(product)
            self.db.flush()
            if category_id is not None and category_id != product.category_id:
                self._retarget_primary(product.id, category_id)
        self.db.refresh(product)
        self._invalidate()
        logger.info("Product updated: %s in category %s", product.name, product.category_name)
        return product

    def delete_product(self, *, product_id: int) -> None:
        with self._transaction():
            product = self.links.lock_product(product_id)
            # links first, so an interrupted delete never leaves orphan rows
            self.links.delete_all_for_product(product_id, commit=False)
            self.db.delete(product)
        storage.delete_image(ImageKind.PRODUCT, product.image_url)
        self._invalidate()
        logger.info("Product deleted: %s", product.name)

    def toggle_product_status(self, *, product_id: int) -> Product:
        product = self.get_product(product_id)
        with self._transaction():
            product.active = not product.active
        self._invalidate()
        logger.info("Product %s %s", product.name, "activated" if product.active else "deactivated")
        return product

    def update_stock(self, *, product_id: int, stock: int) -> Product:
        if stock < 0:
            raise exceptions.ValidationError("Stock cannot be negative")
        product = self.get_product(product_id)
        old_stock = product.stock
        with self._transaction():
            product.stock = stock
        self._invalidate()
        logger.info("Stock updated for product %s: %s -> %s", product.name, old_stock, stock)
        return product

    def set_product_image(
        self, *, product_id: int, file_name: str | None, content_type: str | None, contents: bytes
    ) -> Product:
        product = self.get_product(product_id)
        new_url = storage.save_image(
            ImageKind.PRODUCT, file_name=file_name, content_type=content_type, contents=contents
        )
        old_url = product.image_url
        with self._transaction():
            product.image_url = new_url
        storage.delete_image(ImageKind.PRODUCT, old_url)
        self._invalidate()
        return product

    def remove_product_image(self, *, product_id: int) -> Product:
        product = self.get_product(product_id)
        old_url = product.image_url
        if old_url:
            with self._transaction():
                product.image_url = None
            storage.delete_image(ImageKind.PRODUCT, old_url)
            self._invalidate()
        return product

    def product_stats(self) -> dict:
        threshold = get_settings().LOW_STOCK_THRESHOLD
        total = self.db.query(func.count(Product.id)).scalar() or 0
        active_filter = Product.active.is_(True)
        active = self.db.query(func.count(Product.id)).filter(active_filter).scalar() or 0
        total_stock = self.db.query(func.coalesce(func.sum(Product.stock), 0)).filter(active_filter).scalar()
        low_stock = (
            self.db.query(func.count(Product.id)).filter(active_filter, Product.stock <= threshold).scalar() or 0
        )
        out_of_stock = (
            self.db.query(func.count(Product.id)).filter(active_filter, Product.stock == 0).scalar() or 0
        )
        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "total_stock": int(total_stock or 0),
            "low_stock": low_stock,
            "out_of_stock": out_of_stock,
            "low_stock_threshold": threshold,
        }

    # Helpers

    def _retarget_primary(self, product_id: int, category_id: int) -> None:
        # The previous primary stays linked as a secondary category.
        if self.links.find_link(product_id, category_id) is None:
            self.links.add_link(product_id, category_id, is_primary=True, commit=False)
        else:
            self.links.set_primary(product_id, category_id, commit=False)

    def _product_query(self) -> Query:
        return self.db.query(Product).options(
            selectinload(Product.primary_link).selectinload(ProductCategory.category)
        )

    def _category_name_taken(self, name: str) -> bool:
        return self.db.query(Category.id).filter(Category.name == name).first() is not None

    @contextmanager
    def _transaction(
        self, integrity_message: str = "Catalog data was changed concurrently, retry the request"
    ) -> Iterator[None]:
        try:
            with atomic(self.db):
                yield
        except IntegrityError as exc:
            raise exceptions.ConflictError(integrity_message) from exc

    @staticmethod
    def _invalidate() -> None:
        # category listings carry product counts, so both namespaces go together
        invalidate_cache(CATEGORY_NAMESPACE)
        invalidate_cache(PRODUCT_NAMESPACE)

    @staticmethod
    def serialize_category(category: Category, product_count: int = 0) -> dict:
        return {
            "id": category.id,
            "name": category.name,
            "description": category.description,
            "image_url": category.image_url,
            "active": category.active,
            "product_count": product_count,
            "created_at": category.created_at,
            "updated_at": category.updated_at,
        }

    @staticmethod
    def serialize_product(product: Product) -> dict:
        return {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "price": str(product.price),
            "stock": product.stock,
            "image_url": product.image_url,
            "active": product.active,
            "category_id": product.category_id,
            "category_name": product.category_name,
            "created_at": product.created_at,
            "updated_at": product.updated_at,
        }
