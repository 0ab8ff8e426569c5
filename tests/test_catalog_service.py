from decimal import Decimal

import pytest

from app.models import Category, Product, ProductCategory
from app.services import CatalogService
from app.services import exceptions as service_exceptions


def _product_data(category_id: int, **overrides) -> dict:
    data = {
        "name": "Blue Tee",
        "description": "Cotton tee",
        "price": Decimal("19.99"),
        "stock": 25,
        "image_url": None,
        "active": None,
        "category_id": category_id,
    }
    data.update(overrides)
    return data


def test_blue_tee_scenario(db_session):
    service = CatalogService(db_session)
    shirts = service.create_category(data={"name": "Shirts"})
    summer = service.create_category(data={"name": "Summer"})

    tee = service.create_product(data=_product_data(shirts.id))
    assert service.links.get_primary(tee.id).id == shirts.id
    assert tee.category_name == "Shirts"

    service.links.add_link(tee.id, summer.id)
    assert {c.name for c in service.links.get_categories_for(tee.id)} == {"Shirts", "Summer"}

    service.links.set_primary(tee.id, summer.id)
    assert service.links.get_primary(tee.id).id == summer.id
    assert {c.name for c in service.links.get_categories_for(tee.id)} == {"Shirts", "Summer"}

    with pytest.raises(service_exceptions.ConflictError):
        service.delete_category(category_id=shirts.id)


def test_create_product_with_unknown_category_leaves_nothing(db_session):
    service = CatalogService(db_session)

    with pytest.raises(service_exceptions.NotFoundError):
        service.create_product(data=_product_data(999))

    assert db_session.query(Product).count() == 0
    assert db_session.query(ProductCategory).count() == 0


def test_create_category_rejects_duplicate_name(db_session):
    service = CatalogService(db_session)
    service.create_category(data={"name": "Shirts"})

    with pytest.raises(service_exceptions.ConflictError):
        service.create_category(data={"name": " Shirts "})


def test_update_product_moves_primary_and_keeps_old_as_secondary(db_session):
    service = CatalogService(db_session)
    shirts = service.create_category(data={"name": "Shirts"})
    sale = service.create_category(data={"name": "Sale"})
    tee = service.create_product(data=_product_data(shirts.id))

    updated = service.update_product(product_id=tee.id, data={"category_id": sale.id, "price": Decimal("9.99")})

    assert updated.price == Decimal("9.99")
    assert updated.category_id == sale.id
    assert [c.id for c in service.links.get_secondary(tee.id)] == [shirts.id]

    # moving back reuses the existing link
    service.update_product(product_id=tee.id, data={"category_id": shirts.id})
    assert service.links.get_primary(tee.id).id == shirts.id
    assert len(service.links.get_links(tee.id)) == 2


def test_delete_product_removes_links(db_session):
    service = CatalogService(db_session)
    shirts = service.create_category(data={"name": "Shirts"})
    summer = service.create_category(data={"name": "Summer"})
    tee = service.create_product(data=_product_data(shirts.id))
    service.links.add_link(tee.id, summer.id)

    service.delete_product(product_id=tee.id)

    assert db_session.query(Product).count() == 0
    assert db_session.query(ProductCategory).filter(ProductCategory.product_id == tee.id).count() == 0


def test_delete_category_blocked_by_secondary_links_until_cleared(db_session):
    service = CatalogService(db_session)
    shirts = service.create_category(data={"name": "Shirts"})
    summer = service.create_category(data={"name": "Summer"})
    tee = service.create_product(data=_product_data(shirts.id))
    service.links.add_link(tee.id, summer.id)

    with pytest.raises(service_exceptions.ConflictError):
        service.delete_category(category_id=summer.id)

    service.links.remove_link(tee.id, summer.id)
    service.delete_category(category_id=summer.id)

    assert db_session.query(Category).filter(Category.id == summer.id).first() is None
    assert db_session.query(ProductCategory).filter(ProductCategory.category_id == summer.id).count() == 0


def test_list_products_filters_by_primary_category_and_price(db_session):
    service = CatalogService(db_session)
    shirts = service.create_category(data={"name": "Shirts"})
    summer = service.create_category(data={"name": "Summer"})
    tee = service.create_product(data=_product_data(shirts.id, name="Tee", price=Decimal("10.00")))
    shorts = service.create_product(data=_product_data(summer.id, name="Shorts", price=Decimal("30.00")))
    service.links.add_link(shorts.id, shirts.id)

    in_shirts = service.list_products(category_id=shirts.id)
    assert [p.id for p in in_shirts] == [tee.id]

    by_price = service.list_products(min_price=Decimal("20"), sort="price_desc")
    assert [p.id for p in by_price] == [shorts.id]

    with pytest.raises(service_exceptions.ValidationError):
        service.list_products(min_price=Decimal("50"), max_price=Decimal("10"))
    with pytest.raises(service_exceptions.ValidationError):
        service.list_products(sort="random")


def test_stock_toggle_and_stats(db_session):
    service = CatalogService(db_session)
    shirts = service.create_category(data={"name": "Shirts"})
    tee = service.create_product(data=_product_data(shirts.id, stock=25))
    polo = service.create_product(data=_product_data(shirts.id, name="Polo", stock=3))

    service.update_stock(product_id=tee.id, stock=0)
    with pytest.raises(service_exceptions.ValidationError):
        service.update_stock(product_id=tee.id, stock=-1)

    low = service.low_stock_products()
    assert {p.id for p in low} == {tee.id, polo.id}

    service.toggle_product_status(product_id=polo.id)
    stats = service.product_stats()
    assert stats["total"] == 2
    assert stats["active"] == 1
    assert stats["out_of_stock"] == 1
    assert stats["total_stock"] == 0

    category_stats = service.category_stats()
    assert category_stats == {"total": 1, "active": 1, "inactive": 0, "with_products": 1, "empty": 0}


def test_cached_products_are_invalidated_on_write(db_session):
    service = CatalogService(db_session)
    shirts = service.create_category(data={"name": "Shirts"})
    service.create_product(data=_product_data(shirts.id, name="Tee"))

    first = service.get_cached_active_products()
    assert [item["name"] for item in first] == ["Tee"]

    service.create_product(data=_product_data(shirts.id, name="Polo"))
    second = service.get_cached_active_products()
    assert [item["name"] for item in second] == ["Polo", "Tee"]

    categories = service.get_cached_active_categories()
    assert categories[0]["product_count"] == 2
