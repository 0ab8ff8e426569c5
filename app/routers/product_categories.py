from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.cache import invalidate_cache
from app.core.dependencies import get_current_admin, get_db
from app.schemas import (
    CategoryProductsResponse,
    CategoryRead,
    CategoryUsageRanking,
    LinkCreate,
    LinkRead,
    ProductCategoriesResponse,
    ProductCategoryRanking,
    ProductCountResponse,
    ProductRead,
    ReplaceCategoriesRequest,
)
from app.services import CatalogService, ProductCategoryService
from app.services.catalog_service import CATEGORY_NAMESPACE, PRODUCT_NAMESPACE

router = APIRouter(prefix="/product-categories", tags=["product-categories"])

admin_only = [Depends(get_current_admin)]


def _invalidate_catalog() -> None:
    invalidate_cache(CATEGORY_NAMESPACE)
    invalidate_cache(PRODUCT_NAMESPACE)


def _categories_response(service: ProductCategoryService, product_id: int) -> ProductCategoriesResponse:
    counts = service.count_by_category()
    primary = service.get_primary(product_id)
    categories = service.get_categories_for(product_id)

    def read(category):
        return CategoryRead(**CatalogService.serialize_category(category, counts.get(category.id, 0)))

    return ProductCategoriesResponse(
        product_id=product_id,
        primary=read(primary) if primary else None,
        categories=[read(category) for category in categories],
    )


@router.post(
    "/products/{product_id}/categories/{category_id}",
    response_model=LinkRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=admin_only,
)
def add_category_to_product(
    product_id: int,
    category_id: int,
    payload: LinkCreate | None = None,
    db: Session = Depends(get_db),
):
    primary = payload.is_primary if payload is not None else False
    link = ProductCategoryService(db).add_link(product_id, category_id, is_primary=primary)
    _invalidate_catalog()
    return LinkRead.model_validate(link)


@router.delete(
    "/products/{product_id}/categories/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=admin_only,
)
def remove_category_from_product(product_id: int, category_id: int, db: Session = Depends(get_db)):
    ProductCategoryService(db).remove_link(product_id, category_id)
    _invalidate_catalog()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/products/{product_id}/categories",
    response_model=ProductCategoriesResponse,
    dependencies=admin_only,
)
def replace_product_categories(product_id: int, payload: ReplaceCategoriesRequest, db: Session = Depends(get_db)):
    service = ProductCategoryService(db)
    service.replace_all(product_id, payload.category_ids, payload.primary_category_id)
    _invalidate_catalog()
    return _categories_response(service, product_id)


@router.get("/products/{product_id}/categories", response_model=ProductCategoriesResponse)
def get_product_categories(product_id: int, db: Session = Depends(get_db)):
    return _categories_response(ProductCategoryService(db), product_id)


@router.get("/products/{product_id}/links", response_model=list[LinkRead])
def get_product_links(product_id: int, db: Session = Depends(get_db)):
    return [LinkRead.model_validate(link) for link in ProductCategoryService(db).get_links(product_id)]


@router.get("/products/{product_id}/primary-category", response_model=CategoryRead | None)
def get_primary_category(product_id: int, db: Session = Depends(get_db)):
    service = ProductCategoryService(db)
    category = service.get_primary(product_id)
    if category is None:
        return None
    return CategoryRead(**CatalogService.serialize_category(category, service.count_products(category.id)))


@router.get("/products/{product_id}/secondary-categories", response_model=list[CategoryRead])
def get_secondary_categories(product_id: int, db: Session = Depends(get_db)):
    service = ProductCategoryService(db)
    counts = service.count_by_category()
    return [
        CategoryRead(**CatalogService.serialize_category(category, counts.get(category.id, 0)))
        for category in service.get_secondary(product_id)
    ]


@router.patch(
    "/products/{product_id}/primary-category/{category_id}",
    response_model=LinkRead,
    dependencies=admin_only,
)
def set_primary_category(product_id: int, category_id: int, db: Session = Depends(get_db)):
    link = ProductCategoryService(db).set_primary(product_id, category_id)
    _invalidate_catalog()
    return LinkRead.model_validate(link)


@router.get("/categories/{category_id}/products", response_model=CategoryProductsResponse)
def get_category_products(category_id: int, db: Session = Depends(get_db)):
    products = ProductCategoryService(db).get_products_for(category_id)
    return CategoryProductsResponse(
        category_id=category_id,
        products=[ProductRead.model_validate(product) for product in products],
    )


@router.get("/categories/{category_id}/product-count", response_model=ProductCountResponse)
def get_category_product_count(category_id: int, db: Session = Depends(get_db)):
    service = ProductCategoryService(db)
    service.get_category(category_id)
    return ProductCountResponse(category_id=category_id, product_count=service.count_products(category_id))


@router.get(
    "/stats/products-most-categories",
    response_model=list[ProductCategoryRanking],
    dependencies=admin_only,
)
def products_with_most_categories(limit: int = Query(default=10, ge=1, le=100), db: Session = Depends(get_db)):
    return ProductCategoryService(db).products_with_most_categories(limit)


@router.get(
    "/stats/most-used-categories",
    response_model=list[CategoryUsageRanking],
    dependencies=admin_only,
)
def most_used_categories(limit: int = Query(default=10, ge=1, le=100), db: Session = Depends(get_db)):
    return ProductCategoryService(db).most_used_categories(limit)
