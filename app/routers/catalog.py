from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_admin, get_db
from app.models import Category, Product
from app.schemas import (
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
from app.services import CatalogService

router = APIRouter(prefix="/catalog", tags=["catalog"])

admin_only = [Depends(get_current_admin)]


def _category_read(service: CatalogService, category: Category) -> CategoryRead:
    count = service.links.count_products(category.id)
    return CategoryRead(**service.serialize_category(category, count))


def _product_read(product: Product) -> ProductRead:
    return ProductRead.model_validate(product)


# Categories


@router.get("/categories", response_model=list[CategoryRead])
def list_categories(
    active_only: bool = Query(default=True),
    search: Optional[str] = Query(default=None, max_length=100),
    db: Session = Depends(get_db),
):
    service = CatalogService(db)
    if active_only and not search:
        return [CategoryRead(**item) for item in service.get_cached_active_categories()]
    counts = service.links.count_by_category()
    return [
        CategoryRead(**service.serialize_category(category, counts.get(category.id, 0)))
        for category in service.list_categories(active_only=active_only, search=search)
    ]


@router.get("/categories/stats", response_model=CategoryStats, dependencies=admin_only)
def category_stats(db: Session = Depends(get_db)):
    return CatalogService(db).category_stats()


@router.get("/categories/{category_id}", response_model=CategoryRead)
def get_category(category_id: int, db: Session = Depends(get_db)):
    service = CatalogService(db)
    return _category_read(service, service.get_category(category_id))


@router.get("/categories/{category_id}/product-count", response_model=ProductCountResponse)
def category_product_count(category_id: int, db: Session = Depends(get_db)):
    service = CatalogService(db)
    service.get_category(category_id)
    return ProductCountResponse(category_id=category_id, product_count=service.links.count_products(category_id))


@router.post(
    "/categories",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    service = CatalogService(db)
    category = service.create_category(data=payload.model_dump())
    return _category_read(service, category)


@router.put("/categories/{category_id}", response_model=CategoryRead, dependencies=admin_only)
def update_category(category_id: int, payload: CategoryUpdate, db: Session = Depends(get_db)):
    updates = payload.model_dump(exclude_none=True)
    service = CatalogService(db)
    category = service.update_category(category_id=category_id, data=updates)
    return _category_read(service, category)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=admin_only)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    CatalogService(db).delete_category(category_id=category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/categories/{category_id}/toggle-status", response_model=CategoryRead, dependencies=admin_only)
def toggle_category_status(category_id: int, db: Session = Depends(get_db)):
    service = CatalogService(db)
    category = service.toggle_category_status(category_id=category_id)
    return _category_read(service, category)


@router.post("/categories/{category_id}/image", response_model=CategoryRead, dependencies=admin_only)
async def upload_category_image(category_id: int, file: UploadFile = File(...), db: Session = Depends(get_db)):
    contents = await file.read()
    service = CatalogService(db)
    category = service.set_category_image(
        category_id=category_id,
        file_name=file.filename,
        content_type=file.content_type,
        contents=contents,
    )
    return _category_read(service, category)


@router.delete("/categories/{category_id}/image", response_model=CategoryRead, dependencies=admin_only)
def delete_category_image(category_id: int, db: Session = Depends(get_db)):
    service = CatalogService(db)
    category = service.remove_category_image(category_id=category_id)
    return _category_read(service, category)


# Products


@router.get("/products", response_model=list[ProductRead])
def list_products(
    category_id: Optional[int] = Query(default=None),
    active_only: bool = Query(default=True),
    search: Optional[str] = Query(default=None, max_length=200),
    min_price: Optional[Decimal] = Query(default=None, ge=0),
    max_price: Optional[Decimal] = Query(default=None, ge=0),
    in_stock: Optional[bool] = Query(default=None),
    sort: str = Query(default="name"),
    db: Session = Depends(get_db),
):
    service = CatalogService(db)
    filtered = any(value is not None for value in (search, min_price, max_price, in_stock))
    if active_only and not filtered and sort == "name":
        data = service.get_cached_active_products(category_id=category_id)
        return [ProductRead(**{**item, "price": Decimal(item["price"])}) for item in data]
    products = service.list_products(
        active_only=active_only,
        category_id=category_id,
        search=search,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        sort=sort,
    )
    return [_product_read(product) for product in products]


@router.get("/products/low-stock", response_model=list[ProductRead], dependencies=admin_only)
def low_stock_products(
    threshold: Optional[int] = Query(default=None, ge=0),
    db: Session = Depends(get_db),
):
    return [_product_read(product) for product in CatalogService(db).low_stock_products(threshold)]


@router.get("/products/latest", response_model=list[ProductRead])
def latest_products(limit: int = Query(default=10, ge=1, le=100), db: Session = Depends(get_db)):
    return [_product_read(product) for product in CatalogService(db).latest_products(limit)]


@router.get("/products/stats", response_model=ProductStats, dependencies=admin_only)
def product_stats(db: Session = Depends(get_db)):
    return CatalogService(db).product_stats()


@router.get("/products/{product_id}", response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return _product_read(CatalogService(db).get_product(product_id))


@router.post(
    "/products",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    product = CatalogService(db).create_product(data=payload.model_dump())
    return _product_read(product)


@router.put("/products/{product_id}", response_model=ProductRead, dependencies=admin_only)
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    updates = payload.model_dump(exclude_none=True)
    product = CatalogService(db).update_product(product_id=product_id, data=updates)
    return _product_read(product)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=admin_only)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    CatalogService(db).delete_product(product_id=product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/products/{product_id}/toggle-status", response_model=ProductRead, dependencies=admin_only)
def toggle_product_status(product_id: int, db: Session = Depends(get_db)):
    return _product_read(CatalogService(db).toggle_product_status(product_id=product_id))


@router.patch("/products/{product_id}/stock", response_model=ProductRead, dependencies=admin_only)
def update_product_stock(product_id: int, payload: StockUpdate, db: Session = Depends(get_db)):
    return _product_read(CatalogService(db).update_stock(product_id=product_id, stock=payload.stock))


@router.post("/products/{product_id}/image", response_model=ProductRead, dependencies=admin_only)
async def upload_product_image(product_id: int, file: UploadFile = File(...), db: Session = Depends(get_db)):
    contents = await file.read()
    product = CatalogService(db).set_product_image(
        product_id=product_id,
        file_name=file.filename,
        content_type=file.content_type,
        contents=contents,
    )
    return _product_read(product)


@router.delete("/products/{product_id}/image", response_model=ProductRead, dependencies=admin_only)
def delete_product_image(product_id: int, db: Session = Depends(get_db)):
    return _product_read(CatalogService(db).remove_product_image(product_id=product_id))
