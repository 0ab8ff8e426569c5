from typing import Callable

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_admin, get_db
from app.schemas import ReportInfo
from app.services import ReportService
from app.services.report_service import EXCEL_CONTENT_TYPE, PDF_CONTENT_TYPE, report_filename

router = APIRouter(prefix="/reports", tags=["reports"], dependencies=[Depends(get_current_admin)])


def _download(render: Callable[[], bytes], report_type: str, extension: str, content_type: str) -> Response:
    content = render()
    file_name = report_filename(report_type, extension)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.get("/available", response_model=list[ReportInfo])
def available_reports(db: Session = Depends(get_db)):
    return ReportService(db).available_reports()


@router.get("/products/pdf")
def products_pdf(db: Session = Depends(get_db)):
    return _download(ReportService(db).products_pdf, "products", "pdf", PDF_CONTENT_TYPE)


@router.get("/products/excel")
def products_excel(db: Session = Depends(get_db)):
    return _download(ReportService(db).products_excel, "products", "xlsx", EXCEL_CONTENT_TYPE)


@router.get("/categories/pdf")
def categories_pdf(db: Session = Depends(get_db)):
    return _download(ReportService(db).categories_pdf, "categories", "pdf", PDF_CONTENT_TYPE)


@router.get("/users/excel")
def users_excel(db: Session = Depends(get_db)):
    return _download(ReportService(db).users_excel, "users", "xlsx", EXCEL_CONTENT_TYPE)


@router.get("/inventory/pdf")
def inventory_pdf(db: Session = Depends(get_db)):
    return _download(ReportService(db).inventory_pdf, "inventory", "pdf", PDF_CONTENT_TYPE)
