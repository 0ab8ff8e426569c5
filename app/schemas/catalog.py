from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = Field(default=None, max_length=500)


class CategoryCreate(CategoryBase):
    active: Optional[bool] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = Field(default=None, max_length=500)
    active: Optional[bool] = None


class CategoryRead(CategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    active: bool
    product_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryStats(BaseModel):
    total: int
    active: int
    inactive: int
    with_products: int
    empty: int


class ProductBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    image_url: Optional[str] = Field(default=None, max_length=500)


class ProductCreate(ProductBase):
    category_id: int
    active: Optional[bool] = None


class ProductUpdate(BaseModel):
    category_id: Optional[int] = None
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    stock: Optional[int] = Field(default=None, ge=0)
    image_url: Optional[str] = Field(default=None, max_length=500)
    active: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def check_at_least_one(cls, values):
        data = values or {}
        if isinstance(data, dict) and not data:
            raise ValueError("At least one field must be provided for update")
        return values


class ProductRead(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    active: bool
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StockUpdate(BaseModel):
    stock: int = Field(..., ge=0)


class ProductStats(BaseModel):
    total: int
    active: int
    inactive: int
    total_stock: int
    low_stock: int
    out_of_stock: int
    low_stock_threshold: int


class ProductCountResponse(BaseModel):
    category_id: int
    product_count: int
