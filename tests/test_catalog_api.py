def _create_category(client, headers, name: str) -> dict:
    response = client.post("/api/v1/catalog/categories", json={"name": name}, headers=headers)
    assert response.status_code == 201
    return response.json()


def _create_product(client, headers, category_id: int, name: str = "Blue Tee", **extra) -> dict:
    payload = {"name": name, "price": "19.99", "stock": 12, "category_id": category_id}
    payload.update(extra)
    response = client.post("/api/v1/catalog/products", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_catalog_reads_are_public_and_writes_need_admin(client, user_headers):
    assert client.get("/api/v1/catalog/categories").status_code == 200
    assert client.get("/api/v1/catalog/products").status_code == 200

    anonymous = client.post("/api/v1/catalog/categories", json={"name": "Shirts"})
    assert anonymous.status_code == 401
    as_user = client.post("/api/v1/catalog/categories", json={"name": "Shirts"}, headers=user_headers)
    assert as_user.status_code == 403


def test_product_lifecycle(client, admin_headers):
    shirts = _create_category(client, admin_headers, "Shirts")
    sale = _create_category(client, admin_headers, "Sale")
    product = _create_product(client, admin_headers, shirts["id"])
    assert product["category_id"] == shirts["id"]
    assert product["category_name"] == "Shirts"

    listed = client.get("/api/v1/catalog/products", params={"category_id": shirts["id"]}).json()
    assert [item["id"] for item in listed] == [product["id"]]

    updated = client.put(
        f"/api/v1/catalog/products/{product['id']}",
        json={"category_id": sale["id"], "stock": 2},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["category_name"] == "Sale"

    links = client.get(f"/api/v1/product-categories/products/{product['id']}/categories").json()
    assert links["primary"]["id"] == sale["id"]
    assert {c["id"] for c in links["categories"]} == {shirts["id"], sale["id"]}

    low_stock = client.get("/api/v1/catalog/products/low-stock", headers=admin_headers).json()
    assert [item["id"] for item in low_stock] == [product["id"]]

    toggled = client.patch(f"/api/v1/catalog/products/{product['id']}/toggle-status", headers=admin_headers)
    assert toggled.json()["active"] is False
    assert client.get("/api/v1/catalog/products").json() == []

    stock = client.patch(
        f"/api/v1/catalog/products/{product['id']}/stock", json={"stock": 40}, headers=admin_headers
    )
    assert stock.json()["stock"] == 40

    deleted = client.delete(f"/api/v1/catalog/products/{product['id']}", headers=admin_headers)
    assert deleted.status_code == 204
    assert client.get(f"/api/v1/catalog/products/{product['id']}").status_code == 404


def test_create_product_with_unknown_category_is_404(client, admin_headers):
    response = client.post(
        "/api/v1/catalog/products",
        json={"name": "Ghost", "price": "5.00", "category_id": 12345},
        headers=admin_headers,
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Category not found"


def test_delete_category_with_products_is_rejected(client, admin_headers):
    shirts = _create_category(client, admin_headers, "Shirts")
    _create_product(client, admin_headers, shirts["id"])

    response = client.delete(f"/api/v1/catalog/categories/{shirts['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "cannot be deleted" in response.json()["detail"]

    count = client.get(f"/api/v1/catalog/categories/{shirts['id']}/product-count").json()
    assert count == {"category_id": shirts["id"], "product_count": 1}


def test_duplicate_category_name_is_rejected(client, admin_headers):
    _create_category(client, admin_headers, "Shirts")
    response = client.post("/api/v1/catalog/categories", json={"name": "Shirts"}, headers=admin_headers)
    assert response.status_code == 400


def test_category_listing_reflects_writes(client, admin_headers):
    shirts = _create_category(client, admin_headers, "Shirts")
    assert client.get("/api/v1/catalog/categories").json()[0]["product_count"] == 0

    _create_product(client, admin_headers, shirts["id"])
    listed = client.get("/api/v1/catalog/categories").json()
    assert listed[0]["product_count"] == 1

    client.patch(f"/api/v1/catalog/categories/{shirts['id']}/toggle-status", headers=admin_headers)
    assert client.get("/api/v1/catalog/categories").json() == []
    everything = client.get("/api/v1/catalog/categories", params={"active_only": "false"}).json()
    assert everything[0]["active"] is False


def test_product_filters_and_stats(client, admin_headers):
    shirts = _create_category(client, admin_headers, "Shirts")
    _create_product(client, admin_headers, shirts["id"], name="Cheap Tee", price="5.00", stock=0)
    _create_product(client, admin_headers, shirts["id"], name="Fancy Tee", price="80.00", stock=50)

    cheap = client.get("/api/v1/catalog/products", params={"max_price": "10"}).json()
    assert [item["name"] for item in cheap] == ["Cheap Tee"]

    in_stock = client.get("/api/v1/catalog/products", params={"in_stock": "true"}).json()
    assert [item["name"] for item in in_stock] == ["Fancy Tee"]

    by_price = client.get("/api/v1/catalog/products", params={"sort": "price_desc", "search": "tee"}).json()
    assert [item["name"] for item in by_price] == ["Fancy Tee", "Cheap Tee"]

    bad_range = client.get("/api/v1/catalog/products", params={"min_price": "50", "max_price": "10"})
    assert bad_range.status_code == 400

    latest = client.get("/api/v1/catalog/products/latest", params={"limit": 1}).json()
    assert len(latest) == 1

    stats = client.get("/api/v1/catalog/products/stats", headers=admin_headers).json()
    assert stats["total"] == 2
    assert stats["out_of_stock"] == 1


def test_empty_product_update_is_rejected(client, admin_headers):
    shirts = _create_category(client, admin_headers, "Shirts")
    product = _create_product(client, admin_headers, shirts["id"])

    response = client.put(f"/api/v1/catalog/products/{product['id']}", json={}, headers=admin_headers)
    assert response.status_code == 422


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok", "cache": "memory"}
