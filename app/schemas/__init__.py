from .auth import (
    AdminCodeInfo,
    AuthResponse,
    AuthStats,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenValidation,
    ValidateTokenRequest,
)
from .catalog import (
    CategoryCreate,
    CategoryRead,
    CategoryStats,
    CategoryUpdate,
    ProductCountResponse,
    ProductCreate,
    ProductRead,
    ProductStats,
    ProductUpdate,
    StockUpdate,
)
from .common import MessageResponse, Pagination, TokenResponse
from .product_category import (
    CategoryProductsResponse,
    CategoryUsageRanking,
    LinkCreate,
    LinkRead,
    ProductCategoriesResponse,
    ProductCategoryRanking,
    ReplaceCategoriesRequest,
)
from .report import ReportInfo
from .user import ChangePasswordRequest, UserListResponse, UserRead, UserStats, UserUpdate
