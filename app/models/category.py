from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Integer, String, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

if TYPE_CHECKING:  # pragma: no cover
    from .product import Product
    from .product_category import ProductCategory


class Category(TimestampMixin, Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    # Links are written only through ProductCategoryService.
    product_links: Mapped[list["ProductCategory"]] = relationship(
        "ProductCategory",
        order_by="ProductCategory.id",
        viewonly=True,
    )
    products: Mapped[list["Product"]] = relationship(
        "Product",
        secondary="product_categories",
        order_by="ProductCategory.id",
        viewonly=True,
    )
