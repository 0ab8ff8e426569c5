import io
import logging
from datetime import datetime

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models import User

from .catalog_service import CatalogService

logger = logging.getLogger(__name__)

EXCEL_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_CONTENT_TYPE = "application/pdf"

AVAILABLE_REPORTS = [
    {"type": "products", "format": "pdf", "path": "/reports/products/pdf", "description": "All products with category, price, stock and status"},
    {"type": "products", "format": "excel", "path": "/reports/products/excel", "description": "All products as a spreadsheet"},
    {"type": "categories", "format": "pdf", "path": "/reports/categories/pdf", "description": "Categories with the number of linked products"},
    {"type": "users", "format": "excel", "path": "/reports/users/excel", "description": "Registered users with role and account status"},
    {"type": "inventory", "format": "pdf", "path": "/reports/inventory/pdf", "description": "Active products at or below the low-stock threshold"},
]


def report_filename(report_type: str, extension: str, *, now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"report_{report_type}_{stamp}.{extension}"


def _status(active: bool) -> str:
    return "Active" if active else "Inactive"


def _date(value: datetime | None) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


class ReportService:
    """Renders catalog and user reports as Excel workbooks or PDF documents."""

    def __init__(self, db: Session):
        self.db = db
        self.catalog = CatalogService(db)

    def available_reports(self) -> list[dict]:
        return [dict(item) for item in AVAILABLE_REPORTS]

    # Excel

    def products_excel(self) -> bytes:
        products = self.catalog.list_products()
        rows = [
            [
                product.id,
                product.name,
                product.description or "",
                product.category_name or "",
                float(product.price),
                product.stock,
                _status(product.active),
                _date(product.created_at),
            ]
            for product in products
        ]
        content = self._workbook(
            "Products",
            ["ID", "Name", "Description", "Category", "Price", "Stock", "Status", "Created"],
            rows,
        )
        logger.info("Products Excel report generated with %s rows", len(rows))
        return content

    def users_excel(self) -> bytes:
        users = self.db.query(User).order_by(User.id).all()
        rows = [
            [
                user.id,
                user.username,
                user.email,
                user.role.value,
                "Enabled" if user.enabled else "Disabled",
                "Locked" if user.locked else "Unlocked",
                _date(user.created_at),
            ]
            for user in users
        ]
        content = self._workbook(
            "Users",
            ["ID", "Username", "Email", "Role", "Status", "Locked", "Registered"],
            rows,
        )
        logger.info("Users Excel report generated with %s rows", len(rows))
        return content

    # PDF

    def products_pdf(self) -> bytes:
        products = self.catalog.list_products()
        stats = self.catalog.product_stats()
        rows = [
            [
                str(product.id),
                product.name,
                product.category_name or "",
                f"${product.price}",
                str(product.stock),
                _status(product.active),
            ]
            for product in products
        ]
        content = self._pdf(
            "Products Report",
            ["ID", "Name", "Category", "Price", "Stock", "Status"],
            rows,
            summary=[
                f"Total products: {stats['total']}",
                f"Active products: {stats['active']}",
                f"Total stock: {stats['total_stock']}",
            ],
        )
        logger.info("Products PDF report generated with %s rows", len(rows))
        return content

    def categories_pdf(self) -> bytes:
        categories = self.catalog.list_categories()
        counts = self.catalog.links.count_by_category()
        rows = [
            [
                str(category.id),
                category.name,
                category.description or "",
                str(counts.get(category.id, 0)),
                _status(category.active),
            ]
            for category in categories
        ]
        active = sum(1 for category in categories if category.active)
        content = self._pdf(
            "Categories Report",
            ["ID", "Name", "Description", "Products", "Status"],
            rows,
            summary=[f"Total categories: {len(categories)}", f"Active categories: {active}"],
        )
        logger.info("Categories PDF report generated with %s rows", len(rows))
        return content

    def inventory_pdf(self) -> bytes:
        threshold = get_settings().LOW_STOCK_THRESHOLD
        products = self.catalog.low_stock_products(threshold)
        stats = self.catalog.product_stats()
        rows = [
            [
                product.name,
                product.category_name or "",
                str(product.stock),
                "Out of stock" if product.stock == 0 else "Low stock",
            ]
            for product in products
        ]
        content = self._pdf(
            "Inventory Report",
            ["Product", "Category", "Stock", "Status"],
            rows,
            subtitle=f"Products with stock at or below {threshold} units",
            summary=[
                f"Active products: {stats['active']}",
                f"Low stock products: {len(rows)}",
                f"Out of stock products: {stats['out_of_stock']}",
                f"Total stock: {stats['total_stock']}",
            ],
        )
        logger.info("Inventory PDF report generated with %s low-stock rows", len(rows))
        return content

    # Rendering

    @staticmethod
    def _workbook(title: str, headers: list[str], rows: list[list]) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = title
        sheet.append(headers)
        for cell in sheet[1]:
            cell.font = Font(bold=True)
        for row in rows:
            sheet.append(row)

        for index, header in enumerate(headers, start=1):
            width = max([len(str(header))] + [len(str(row[index - 1])) for row in rows])
            sheet.column_dimensions[get_column_letter(index)].width = min(width + 2, 60)

        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    @staticmethod
    def _pdf(
        title: str,
        headers: list[str],
        rows: list[list[str]],
        *,
        summary: list[str],
        subtitle: str | None = None,
    ) -> bytes:
        buffer = io.BytesIO()
        document = SimpleDocTemplate(buffer, pagesize=landscape(A4), title=title)
        styles = getSampleStyleSheet()

        story = [
            Paragraph(title, styles["Title"]),
            Paragraph(f"Date: {datetime.now().strftime('%d/%m/%Y %H:%M')}", styles["Normal"]),
            Spacer(1, 12),
        ]
        if subtitle:
            story += [Paragraph(subtitle, styles["Heading2"]), Spacer(1, 6)]

        table = Table([headers] + rows, repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ]
            )
        )
        story += [table, Spacer(1, 12), Paragraph("Statistics", styles["Heading2"])]
        story += [Paragraph(line, styles["Normal"]) for line in summary]

        document.build(story)
        return buffer.getvalue()
