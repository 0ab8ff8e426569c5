from .admin_attempts import AdminCodeAttemptTracker
from .auth_service import AuthService
from .catalog_service import CatalogService
from .product_category_service import ProductCategoryService
from .report_service import ReportService
from .user_service import UserService
__all__ = [
    "AdminCodeAttemptTracker",
    "AuthService",
    "CatalogService",
    "ProductCategoryService",
    "ReportService",
    "UserService",
]
