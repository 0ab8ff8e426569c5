import io

import pytest
from openpyxl import load_workbook

from app.core import storage
from app.models import ImageKind
from app.services import exceptions as service_exceptions
from app.services.report_service import report_filename

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture()
def category(client, admin_headers):
    return client.post("/api/v1/catalog/categories", json={"name": "Shirts"}, headers=admin_headers).json()


@pytest.fixture()
def product(client, admin_headers, category):
    return client.post(
        "/api/v1/catalog/products",
        json={"name": "Blue Tee", "price": "19.99", "stock": 3, "category_id": category["id"]},
        headers=admin_headers,
    ).json()


def test_validate_image_rules(monkeypatch):
    with pytest.raises(service_exceptions.ValidationError):
        storage.validate_image(None, "image/png", PNG_BYTES)
    with pytest.raises(service_exceptions.ValidationError):
        storage.validate_image("shell.php", "image/png", PNG_BYTES)
    with pytest.raises(service_exceptions.ValidationError):
        storage.validate_image("photo.png", "text/plain", PNG_BYTES)
    with pytest.raises(service_exceptions.ValidationError):
        storage.validate_image("photo.png", "image/png", b"")
    assert storage.validate_image("Photo.PNG", "image/png", PNG_BYTES) == ".png"

    monkeypatch.setattr(storage.get_settings(), "MAX_UPLOAD_SIZE_MB", 1)
    with pytest.raises(service_exceptions.ValidationError):
        storage.validate_image("big.png", "image/png", b"0" * (1024 * 1024 + 1))


def test_upload_serve_and_replace_product_image(client, admin_headers, product, media_root):
    upload = client.post(
        f"/api/v1/catalog/products/{product['id']}/image",
        files={"file": ("tee.png", PNG_BYTES, "image/png")},
        headers=admin_headers,
    )
    assert upload.status_code == 200
    first_url = upload.json()["image_url"]
    assert first_url.startswith("/api/v1/files/product_images/")

    served = client.get(first_url)
    assert served.status_code == 200
    assert served.content == PNG_BYTES

    replaced = client.post(
        f"/api/v1/catalog/products/{product['id']}/image",
        files={"file": ("tee2.jpg", PNG_BYTES, "image/jpeg")},
        headers=admin_headers,
    )
    second_url = replaced.json()["image_url"]
    assert second_url != first_url
    first_name = storage.extract_image_name(ImageKind.PRODUCT, first_url)
    assert not (media_root / "product_images" / first_name).exists()

    removed = client.delete(f"/api/v1/catalog/products/{product['id']}/image", headers=admin_headers)
    assert removed.json()["image_url"] is None
    assert client.get(second_url).status_code == 404


def test_rejected_upload_is_400(client, admin_headers, category):
    response = client.post(
        f"/api/v1/catalog/categories/{category['id']}/image",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_file_route_does_not_escape_media_dir(client):
    assert client.get("/api/v1/files/product_images/..%2F..%2Fsecret.txt").status_code == 404
    assert client.get("/api/v1/files/unknown_kind/file.png").status_code == 422


def test_report_filename_format():
    from datetime import datetime

    assert report_filename("products", "pdf", now=datetime(2026, 3, 4, 5, 6, 7)) == "report_products_20260304_050607.pdf"


def test_excel_reports(client, admin_headers, product):
    response = client.get("/api/v1/reports/products/excel", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert 'filename="report_products_' in response.headers["content-disposition"]

    sheet = load_workbook(io.BytesIO(response.content)).active
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0][:4] == ("ID", "Name", "Description", "Category")
    assert rows[1][1] == "Blue Tee"
    assert rows[1][3] == "Shirts"

    users = client.get("/api/v1/reports/users/excel", headers=admin_headers)
    user_rows = list(load_workbook(io.BytesIO(users.content)).active.iter_rows(values_only=True))
    assert user_rows[1][1] == "admin"


@pytest.mark.parametrize("path", ["/products/pdf", "/categories/pdf", "/inventory/pdf"])
def test_pdf_reports(client, admin_headers, product, path):
    response = client.get(f"/api/v1/reports{path}", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_reports_need_admin(client, user_headers):
    assert client.get("/api/v1/reports/available", headers=user_headers).status_code == 403


def test_available_reports(client, admin_headers):
    reports = client.get("/api/v1/reports/available", headers=admin_headers).json()
    assert {(r["type"], r["format"]) for r in reports} == {
        ("products", "pdf"),
        ("products", "excel"),
        ("categories", "pdf"),
        ("users", "excel"),
        ("inventory", "pdf"),
    }
