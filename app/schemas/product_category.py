from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .catalog import CategoryRead, ProductRead


class LinkCreate(BaseModel):
    is_primary: bool = False


class LinkRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    category_id: int
    is_primary: bool
    created_at: Optional[datetime] = None


class ReplaceCategoriesRequest(BaseModel):
    category_ids: list[int]
    primary_category_id: int


class ProductCategoriesResponse(BaseModel):
    product_id: int
    primary: Optional[CategoryRead] = None
    categories: list[CategoryRead]


class CategoryProductsResponse(BaseModel):
    category_id: int
    products: list[ProductRead]


class ProductCategoryRanking(BaseModel):
    product_id: int
    name: str
    category_count: int


class CategoryUsageRanking(BaseModel):
    category_id: int
    name: str
    product_count: int
