from fastapi import APIRouter

from . import (
    auth,
    catalog,
    files,
    health,
    product_categories,
    reports,
    users,
)


def get_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(health.router)
    router.include_router(auth.router)
    router.include_router(users.router)
    router.include_router(catalog.router)
    router.include_router(product_categories.router)
    router.include_router(reports.router)
    router.include_router(files.router)
    return router
