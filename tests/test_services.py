"""Tests for the service catalog and its two-level hierarchy."""
from __future__ import annotations

from clinic.extensions import db
from clinic.models import Service


def _create(client, headers, **payload):
    body = {"name": "Drenaje Linfático", "duration": 60, "price": 55}
    body.update(payload)
    return client.post("/api/services", json=body, headers=headers)


def test_create_service_derives_slug(client, admin_headers) -> None:
    response = _create(client, admin_headers, name="Drenaje Linfático Manual")

    assert response.status_code == 201
    service = response.get_json()["service"]
    assert service["slug"] == "drenaje-linfatico-manual"
    assert service["duration"] == 60
    assert service["price"] == 55.0
    assert service["parent_service_id"] is None


def test_create_service_slug_override_and_duplicate(client, admin_headers) -> None:
    first = _create(client, admin_headers, slug="Mi Servicio Especial")
    assert first.status_code == 201
    assert first.get_json()["service"]["slug"] == "mi-servicio-especial"

    clash = _create(client, admin_headers, name="Otro", slug="mi-servicio-especial")
    assert clash.status_code == 409
    assert clash.get_json()["error"] == "duplicate_slug"


def test_create_service_validation_details(client, admin_headers) -> None:
    response = _create(client, admin_headers, duration=0)

    assert response.status_code == 400
    data = response.get_json()
    assert data["error"] == "invalid_payload"
    assert "duration" in data["details"]


def test_create_requires_admin(client) -> None:
    response = _create(client, {})
    assert response.status_code == 401


def test_parent_ignored_without_sub_service_flag(client, admin_headers) -> None:
    parent_id = _create(client, admin_headers, name="Parent").get_json()["service"]["id"]

    response = _create(client, admin_headers, name="Loose", parent_service_id=parent_id)

    assert response.status_code == 201
    assert response.get_json()["service"]["parent_service_id"] is None


def test_sub_service_requires_parent(client, admin_headers) -> None:
    response = _create(client, admin_headers, name="Orphan", is_sub_service=True)

    assert response.status_code == 400
    assert "parent_service_id" in response.get_json()["details"]


def test_tree_is_limited_to_two_levels(client, admin_headers) -> None:
    parent_id = _create(client, admin_headers, name="Parent").get_json()["service"]["id"]
    child = _create(client, admin_headers, name="Child", is_sub_service=True, parent_service_id=parent_id)
    assert child.status_code == 201
    child_id = child.get_json()["service"]["id"]
    assert child.get_json()["service"]["parent_service_id"] == parent_id

    grandchild = _create(
        client, admin_headers, name="Grandchild", is_sub_service=True, parent_service_id=child_id
    )
    assert grandchild.status_code == 400
    assert grandchild.get_json()["error"] == "invalid_parent"

    other_id = _create(client, admin_headers, name="Other").get_json()["service"]["id"]
    nest_parent = client.patch(
        f"/api/services/{parent_id}",
        json={"is_sub_service": True, "parent_service_id": other_id},
        headers=admin_headers,
    )
    assert nest_parent.status_code == 400

    missing = _create(client, admin_headers, name="Lost", is_sub_service=True, parent_service_id=9999)
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "parent_not_found"


def test_delete_service_with_children_conflicts(app, client, admin_headers) -> None:
    parent_id = _create(client, admin_headers, name="Parent").get_json()["service"]["id"]
    child_id = _create(
        client, admin_headers, name="Child", is_sub_service=True, parent_service_id=parent_id
    ).get_json()["service"]["id"]

    blocked = client.delete(f"/api/services/{parent_id}", headers=admin_headers)
    assert blocked.status_code == 409
    assert blocked.get_json()["error"] == "has_children"

    assert client.delete(f"/api/services/{child_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/services/{parent_id}", headers=admin_headers).status_code == 200

    with app.app_context():
        assert Service.query.count() == 0


def test_get_service_by_id_or_slug(client, admin_headers) -> None:
    service = _create(client, admin_headers, name="Masaje Reductor").get_json()["service"]

    by_slug = client.get("/api/services/masaje-reductor")
    by_id = client.get(f"/api/services/{service['id']}")

    assert by_slug.status_code == 200
    assert by_id.get_json()["service"]["slug"] == "masaje-reductor"
    assert client.get("/api/services/unknown-slug").status_code == 404


def test_inactive_services_hidden_from_public(client, admin_headers) -> None:
    _create(client, admin_headers, name="Visible")
    hidden = _create(client, admin_headers, name="Hidden", active=False).get_json()["service"]

    public = client.get("/api/services").get_json()["services"]
    assert [item["name"] for item in public] == ["Visible"]
    assert client.get(f"/api/services/{hidden['id']}").status_code == 404

    admin = client.get("/api/services", headers=admin_headers).get_json()["services"]
    assert {item["name"] for item in admin} == {"Visible", "Hidden"}


def test_top_level_listing_nests_children_in_order(client, admin_headers) -> None:
    parent_id = _create(client, admin_headers, name="Parent").get_json()["service"]["id"]
    _create(client, admin_headers, name="Second", is_sub_service=True, parent_service_id=parent_id, order=2)
    _create(client, admin_headers, name="First", is_sub_service=True, parent_service_id=parent_id, order=1)

    services = client.get("/api/services?topLevel=true").get_json()["services"]

    assert [item["name"] for item in services] == ["Parent"]
    assert [child["name"] for child in services[0]["child_services"]] == ["First", "Second"]

    children = client.get(f"/api/services/{parent_id}/children").get_json()["services"]
    assert [child["name"] for child in children] == ["First", "Second"]


def test_reorder_services_and_move_under_parent(app, client, admin_headers) -> None:
    a = _create(client, admin_headers, name="A").get_json()["service"]["id"]
    b = _create(client, admin_headers, name="B").get_json()["service"]["id"]
    parent = _create(client, admin_headers, name="Parent").get_json()["service"]["id"]

    response = client.post(
        "/api/services/reorder",
        json={"items": [{"id": a, "order": 1}, {"id": b, "order": 0}], "parent_id": parent},
        headers=admin_headers,
    )
    assert response.status_code == 200

    with app.app_context():
        assert db.session.get(Service, a).display_order == 1
        assert db.session.get(Service, b).display_order == 0
        assert db.session.get(Service, a).parent_service_id == parent

    missing = client.post(
        "/api/services/reorder",
        json={"items": [{"id": a, "order": 0}, {"id": 999, "order": 1}]},
        headers=admin_headers,
    )
    assert missing.status_code == 404
    with app.app_context():
        assert db.session.get(Service, a).display_order == 1


def test_reorder_cannot_nest_a_parent(client, admin_headers) -> None:
    parent = _create(client, admin_headers, name="Parent").get_json()["service"]["id"]
    _create(client, admin_headers, name="Child", is_sub_service=True, parent_service_id=parent)
    other = _create(client, admin_headers, name="Other").get_json()["service"]["id"]

    response = client.post(
        "/api/services/reorder",
        json={"items": [{"id": parent, "order": 0}], "parent_id": other},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_parent"
