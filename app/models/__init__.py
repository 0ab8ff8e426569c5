from .base import Base
from .category import Category
from .enums import ImageKind, UserRole
from .product import Product
from .product_category import ProductCategory
from .user import User

__all__ = [
    "Base",
    "Category",
    "ImageKind",
    "Product",
    "ProductCategory",
    "User",
    "UserRole",
]
