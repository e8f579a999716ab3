"""Tests for the shop catalog: product categories and products."""
from __future__ import annotations

from clinic.extensions import db
from clinic.models import Product, Sale


def _category(client, headers, name: str = "Aceites") -> int:
    response = client.post("/api/product-categories", json={"name": name}, headers=headers)
    assert response.status_code == 201
    return response.get_json()["product_category"]["id"]


def _product_body(category_id: int, **overrides) -> dict[str, object]:
    body = {
        "name": "Aceite de Almendras",
        "description": "Aceite corporal prensado en frío.",
        "base_price": "24.90",
        "category_id": category_id,
        "images": [{"url": "https://cdn.example.com/almendras.jpg", "alt": "Frasco"}],
    }
    body.update(overrides)
    return body


def test_create_product_and_lookup_by_slug(client, admin_headers) -> None:
    category_id = _category(client, admin_headers)

    response = client.post("/api/products", json=_product_body(category_id), headers=admin_headers)

    assert response.status_code == 201
    product = response.get_json()["product"]
    assert product["slug"] == "aceite-de-almendras"
    assert product["base_price"] == 24.9
    assert product["images"][0]["position"] == 0
    assert product["in_stock"] is True

    by_slug = client.get("/api/products/aceite-de-almendras")
    assert by_slug.status_code == 200
    assert by_slug.get_json()["product"]["category"]["name"] == "Aceites"


def test_product_validation(client, admin_headers) -> None:
    category_id = _category(client, admin_headers)

    no_images = client.post("/api/products", json=_product_body(category_id, images=[]), headers=admin_headers)
    assert no_images.status_code == 400
    assert "images" in no_images.get_json()["details"]

    free = client.post("/api/products", json=_product_body(category_id, base_price=0), headers=admin_headers)
    assert free.status_code == 400
    assert "base_price" in free.get_json()["details"]

    untracked = client.post(
        "/api/products", json=_product_body(category_id, track_stock=True), headers=admin_headers
    )
    assert untracked.status_code == 400
    assert "stock" in untracked.get_json()["details"]

    missing_category = client.post("/api/products", json=_product_body(999), headers=admin_headers)
    assert missing_category.status_code == 404


def test_duplicate_product_slug(client, admin_headers) -> None:
    category_id = _category(client, admin_headers)
    client.post("/api/products", json=_product_body(category_id), headers=admin_headers)

    clash = client.post("/api/products", json=_product_body(category_id), headers=admin_headers)

    assert clash.status_code == 409
    assert clash.get_json()["error"] == "duplicate_slug"


def test_public_listing_filters(client, admin_headers) -> None:
    oils = _category(client, admin_headers)
    candles = _category(client, admin_headers, name="Velas")
    client.post("/api/products", json=_product_body(oils, featured=True), headers=admin_headers)
    client.post("/api/products", json=_product_body(candles, name="Vela de Lavanda"), headers=admin_headers)
    client.post(
        "/api/products", json=_product_body(candles, name="Vela Retirada", active=False), headers=admin_headers
    )

    public = client.get("/api/products").get_json()["products"]
    assert {item["name"] for item in public} == {"Aceite de Almendras", "Vela de Lavanda"}

    featured = client.get("/api/products?featured=true").get_json()["products"]
    assert [item["name"] for item in featured] == ["Aceite de Almendras"]

    by_category = client.get("/api/products?category=velas").get_json()["products"]
    assert [item["name"] for item in by_category] == ["Vela de Lavanda"]

    inactive = client.get("/api/products?active=false", headers=admin_headers).get_json()["products"]
    assert [item["name"] for item in inactive] == ["Vela Retirada"]
    assert client.get("/api/products/vela-retirada").status_code == 404


def test_delete_product_category_with_products_conflicts(client, admin_headers) -> None:
    category_id = _category(client, admin_headers)
    product_id = client.post(
        "/api/products", json=_product_body(category_id), headers=admin_headers
    ).get_json()["product"]["id"]

    listed = client.get("/api/product-categories").get_json()["product_categories"]
    assert listed[0]["product_count"] == 1

    blocked = client.delete(f"/api/product-categories/{category_id}", headers=admin_headers)
    assert blocked.status_code == 409
    assert blocked.get_json()["error"] == "has_products"

    assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/product-categories/{category_id}", headers=admin_headers).status_code == 200


def test_product_with_sales_cannot_be_deleted(app, client, admin_headers) -> None:
    category_id = _category(client, admin_headers)
    product_id = client.post(
        "/api/products", json=_product_body(category_id), headers=admin_headers
    ).get_json()["product"]["id"]
    with app.app_context():
        db.session.add(Sale(
            product_id=product_id,
            client_name="Marta",
            client_email="marta@example.com",
            client_phone="600111222",
        ))
        db.session.commit()

    response = client.delete(f"/api/products/{product_id}", headers=admin_headers)

    assert response.status_code == 409
    with app.app_context():
        assert db.session.get(Product, product_id) is not None


def test_update_and_reorder_products(app, client, admin_headers) -> None:
    category_id = _category(client, admin_headers)
    first = client.post("/api/products", json=_product_body(category_id), headers=admin_headers).get_json()["product"]
    second = client.post(
        "/api/products", json=_product_body(category_id, name="Crema Facial"), headers=admin_headers
    ).get_json()["product"]

    updated = client.patch(
        f"/api/products/{first['id']}",
        json={"track_stock": True, "stock": 3, "base_price": 19.5},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.get_json()["product"]["stock"] == 3
    assert updated.get_json()["product"]["base_price"] == 19.5

    response = client.post(
        "/api/products/reorder",
        json={"items": [{"id": first["id"], "order": 2}, {"id": second["id"], "order": 1}]},
        headers=admin_headers,
    )
    assert response.status_code == 200

    names = [item["name"] for item in client.get("/api/products").get_json()["products"]]
    assert names == ["Crema Facial", "Aceite de Almendras"]
