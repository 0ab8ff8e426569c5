from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class ImageKind(str, Enum):
    PRODUCT = "product_images"
    CATEGORY = "category_images"
