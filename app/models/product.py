from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DECIMAL, Boolean, Integer, String, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

if TYPE_CHECKING:  # pragma: no cover
    from .category import Category
    from .product_category import ProductCategory


class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), index=True)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2))
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    category_links: Mapped[list["ProductCategory"]] = relationship(
        "ProductCategory",
        order_by="ProductCategory.id",
        viewonly=True,
    )
    primary_link: Mapped[Optional["ProductCategory"]] = relationship(
        "ProductCategory",
        primaryjoin="and_(Product.id == ProductCategory.product_id, ProductCategory.is_primary.is_(True))",
        uselist=False,
        viewonly=True,
    )

    # The primary association row is the single source of truth for the
    # owning category; nothing is stored on the product itself.
    @property
    def category(self) -> Optional["Category"]:
        return self.primary_link.category if self.primary_link is not None else None

    @property
    def category_id(self) -> Optional[int]:
        return self.primary_link.category_id if self.primary_link is not None else None

    @property
    def category_name(self) -> Optional[str]:
        category = self.category
        return category.name if category is not None else None
