import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.db import atomic
from app.models import Category, Product, ProductCategory

from . import exceptions

logger = logging.getLogger(__name__)

PAIR_CONSTRAINT = "uq_product_categories_pair"


def _violates_pair(exc: IntegrityError) -> bool:
    # PostgreSQL names the constraint, SQLite lists the columns
    message = str(exc.orig)
    return PAIR_CONSTRAINT in message or "product_categories.category_id" in message


class ProductCategoryService:
    """Owns every write to the ``product_categories`` link table.

    A product with at least one link always has exactly one primary link.
    Writers that touch a product's primary flag lock the product row first,
    so concurrent promotions for the same product run one after another.

    Mutating methods accept ``commit``. With ``commit=False`` they only flush
    and leave the transaction to the caller, which is how ``CatalogService``
    folds them into product creation/update/deletion.
    """

    def __init__(self, db: Session):
        self.db = db

    def add_link(
        self,
        product_id: int,
        category_id: int,
        *,
        is_primary: bool = False,
        commit: bool = True,
    ) -> ProductCategory:
        with self._transaction(commit):
            product = self.lock_product(product_id)
            category = self.lock_category(category_id)
            if self.find_link(product_id, category_id) is not None:
                raise exceptions.DuplicateLinkError("Product is already linked to this category")

            if is_primary:
                self._demote_primary(product_id)
            link = ProductCategory(product_id=product.id, category_id=category.id, is_primary=is_primary)
            self.db.add(link)
            try:
                self.db.flush()
            except IntegrityError as exc:
                if _violates_pair(exc):
                    raise exceptions.DuplicateLinkError("Product is already linked to this category") from exc
                raise
            self._expire_views(product=product, category=category)

        logger.info(
            "Category '%s' linked to product '%s' as %s",
            category.name,
            product.name,
            "primary" if is_primary else "secondary",
        )
        return link

    def remove_link(self, product_id: int, category_id: int, *, commit: bool = True) -> None:
        with self._transaction(commit):
            product = self.lock_product(product_id)
            link = self._get_link(product_id, category_id)
            if link.is_primary:
                raise exceptions.ValidationError(
                    "Cannot remove the primary category; set another primary category first"
                )
            category = link.category
            self.db.delete(link)
            self.db.flush()
            self._expire_views(product=product, category=category)

        logger.info("Link between product %s and category %s removed", product_id, category_id)

    def set_primary(self, product_id: int, category_id: int, *, commit: bool = True) -> ProductCategory:
        with self._transaction(commit):
            product = self.lock_product(product_id)
            link = self._get_link(product_id, category_id)
            if not link.is_primary:
                self._demote_primary(product_id)
                link.is_primary = True
                self.db.flush()
                self._expire_views(product=product)

        logger.info("Category %s set as primary for product %s", category_id, product_id)
        return link

    def replace_all(
        self,
        product_id: int,
        category_ids: Iterable[int],
        primary_category_id: int,
        *,
        commit: bool = True,
    ) -> list[ProductCategory]:
        requested = list(dict.fromkeys(category_ids))
        if not requested:
            raise exceptions.ValidationError("At least one category is required")
        if primary_category_id not in requested:
            raise exceptions.ValidationError("Primary category must be one of the given categories")
        # primary first, the rest in the order given
        ordered = [primary_category_id] + [cid for cid in requested if cid != primary_category_id]

        with self._transaction(commit):
            product = self.lock_product(product_id)
            found = {
                row.id
                for row in self.db.query(Category.id).filter(Category.id.in_(ordered)).all()
            }
            missing = [cid for cid in ordered if cid not in found]
            if missing:
                raise exceptions.NotFoundError(
                    "Category not found: " + ", ".join(str(cid) for cid in missing)
                )

            self.db.query(ProductCategory).filter(ProductCategory.product_id == product_id).delete(
                synchronize_session="fetch"
            )
            links = [
                ProductCategory(product_id=product.id, category_id=cid, is_primary=cid == primary_category_id)
                for cid in ordered
            ]
            self.db.add_all(links)
            self.db.flush()
            self._expire_views(product=product)

        logger.info(
            "Categories replaced for product '%s': %s (primary %s)",
            product.name,
            ordered,
            primary_category_id,
        )
        return links

    def get_primary(self, product_id: int) -> Category | None:
        self.get_product(product_id)
        return (
            self.db.query(Category)
            .join(ProductCategory, ProductCategory.category_id == Category.id)
            .filter(ProductCategory.product_id == product_id, ProductCategory.is_primary.is_(True))
            .first()
        )

    def get_categories_for(self, product_id: int) -> list[Category]:
        self.get_product(product_id)
        return (
            self.db.query(Category)
            .join(ProductCategory, ProductCategory.category_id == Category.id)
            .filter(ProductCategory.product_id == product_id)
            .order_by(ProductCategory.id)
            .all()
        )

    def get_secondary(self, product_id: int) -> list[Category]:
        self.get_product(product_id)
        return (
            self.db.query(Category)
            .join(ProductCategory, ProductCategory.category_id == Category.id)
            .filter(ProductCategory.product_id == product_id, ProductCategory.is_primary.is_(False))
            .order_by(ProductCategory.id)
            .all()
        )

    def get_products_for(self, category_id: int) -> list[Product]:
        self.get_category(category_id)
        return (
            self.db.query(Product)
            .join(ProductCategory, ProductCategory.product_id == Product.id)
            .filter(ProductCategory.category_id == category_id)
            .order_by(ProductCategory.id)
            .all()
        )

    def get_links(self, product_id: int) -> list[ProductCategory]:
        self.get_product(product_id)
        return (
            self.db.query(ProductCategory)
            .filter(ProductCategory.product_id == product_id)
            .order_by(ProductCategory.id)
            .all()
        )

    def count_products(self, category_id: int) -> int:
        return (
            self.db.query(func.count(ProductCategory.id))
            .filter(ProductCategory.category_id == category_id)
            .scalar()
            or 0
        )

    def count_by_category(self) -> dict[int, int]:
        rows = (
            self.db.query(ProductCategory.category_id, func.count(ProductCategory.id))
            .group_by(ProductCategory.category_id)
            .all()
        )
        return {category_id: count for category_id, count in rows}

    def delete_all_for_product(self, product_id: int, *, commit: bool = True) -> int:
        with self._transaction(commit):
            removed = (
                self.db.query(ProductCategory)
                .filter(ProductCategory.product_id == product_id)
                .delete(synchronize_session="fetch")
            )
        logger.info("Removed %s category links of product %s", removed, product_id)
        return removed

    def delete_all_for_category(self, category_id: int, *, commit: bool = True) -> int:
        with self._transaction(commit):
            removed = (
                self.db.query(ProductCategory)
                .filter(ProductCategory.category_id == category_id)
                .delete(synchronize_session="fetch")
            )
        logger.info("Removed %s product links of category %s", removed, category_id)
        return removed

    def products_with_most_categories(self, limit: int = 10) -> list[dict]:
        count = func.count(ProductCategory.id).label("category_count")
        rows = (
            self.db.query(Product.id, Product.name, count)
            .join(ProductCategory, ProductCategory.product_id == Product.id)
            .group_by(Product.id, Product.name)
            .order_by(count.desc(), Product.id)
            .limit(limit)
            .all()
        )
        return [{"product_id": pid, "name": name, "category_count": total} for pid, name, total in rows]

    def most_used_categories(self, limit: int = 10) -> list[dict]:
        count = func.count(ProductCategory.id).label("product_count")
        rows = (
            self.db.query(Category.id, Category.name, count)
            .join(ProductCategory, ProductCategory.category_id == Category.id)
            .group_by(Category.id, Category.name)
            .order_by(count.desc(), Category.id)
            .limit(limit)
            .all()
        )
        return [{"category_id": cid, "name": name, "product_count": total} for cid, name, total in rows]

    @contextmanager
    def _transaction(self, commit: bool) -> Iterator[None]:
        try:
            with atomic(self.db, commit=commit):
                yield
        except IntegrityError as exc:
            raise exceptions.ConflictError(
                "Product categories were changed concurrently, retry the request"
            ) from exc

    def _demote_primary(self, product_id: int) -> int:
        return (
            self.db.query(ProductCategory)
            .filter(ProductCategory.product_id == product_id, ProductCategory.is_primary.is_(True))
            .update({ProductCategory.is_primary: False}, synchronize_session="fetch")
        )

    def find_link(self, product_id: int, category_id: int) -> ProductCategory | None:
        return (
            self.db.query(ProductCategory)
            .filter(ProductCategory.product_id == product_id, ProductCategory.category_id == category_id)
            .first()
        )

    def _get_link(self, product_id: int, category_id: int) -> ProductCategory:
        link = self.find_link(product_id, category_id)
        if link is None:
            raise exceptions.NotFoundError("Product is not linked to this category")
        return link

    def get_product(self, product_id: int) -> Product:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise exceptions.NotFoundError("Product not found")
        return product

    def get_category(self, category_id: int) -> Category:
        category = self.db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise exceptions.NotFoundError("Category not found")
        return category

    def lock_product(self, product_id: int) -> Product:
        product = self.db.query(Product).filter(Product.id == product_id).with_for_update().first()
        if not product:
            raise exceptions.NotFoundError("Product not found")
        return product

    def lock_category(self, category_id: int) -> Category:
        category = self.db.query(Category).filter(Category.id == category_id).with_for_update().first()
        if not category:
            raise exceptions.NotFoundError("Category not found")
        return category

    def _expire_views(self, *, product: Product | None = None, category: Category | None = None) -> None:
        # view-only relationships are not refreshed by flushes
        if product is not None:
            self.db.expire(product, ["category_links", "primary_link"])
        if category is not None:
            self.db.expire(category, ["product_links", "products"])
