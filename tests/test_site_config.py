"""Tests for the editable site sections."""
from __future__ import annotations

from clinic import site_config
from clinic.extensions import db
from clinic.models import Service


def test_unknown_section_is_404(client, admin_headers) -> None:
    assert client.get("/api/config/footer-links").status_code == 404
    assert client.patch("/api/config/footer-links", json={}, headers=admin_headers).status_code == 404


def test_defaults_are_served_without_stored_data(client) -> None:
    response = client.get("/api/config/hero")

    assert response.status_code == 200
    data = response.get_json()
    assert data["section"] == "hero"
    assert data["config"] == site_config.SECTION_DEFAULTS["hero"]


def test_patch_merges_over_defaults(client, admin_headers) -> None:
    response = client.patch(
        "/api/config/about",
        json={"hero_title": "Sobre mí", "years_experience": "12", "certifications": ["Osteopatía", " "],
              "unknown_field": "ignored"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    config = response.get_json()["config"]
    assert config["hero_title"] == "Sobre mí"
    assert config["years_experience"] == 12
    assert config["certifications"] == ["Osteopatía"]
    assert "unknown_field" not in config

    second = client.patch("/api/config/about", json={"biography": "Texto"}, headers=admin_headers)
    assert second.get_json()["config"]["hero_title"] == "Sobre mí"
    assert client.get("/api/config/about").get_json()["config"]["biography"] == "Texto"


def test_colors_validation_and_css(client, admin_headers) -> None:
    invalid = client.patch("/api/config/colors", json={"primary_color": "green"}, headers=admin_headers)
    assert invalid.status_code == 400
    assert "primary_color" in invalid.get_json()["details"]

    client.patch("/api/config/colors", json={"primary_color": "#112233"}, headers=admin_headers)

    css = client.get("/api/config/colors/css")
    assert css.status_code == 200
    assert css.mimetype == "text/css"
    assert "max-age=60" in css.headers["Cache-Control"]
    body = css.get_data(as_text=True)
    assert "--primary-color: #112233;" in body
    assert "--cream-color: #F5F1E8;" in body


def test_patch_requires_admin(client) -> None:
    assert client.patch("/api/config/hero", json={"main_title": "Hola"}).status_code == 401


def test_home_services_selection(app, client, admin_headers) -> None:
    with app.app_context():
        services = [
            Service(name=f"Servicio {index}", slug=f"servicio-{index}", duration_minutes=60, display_order=index)
            for index in range(5)
        ]
        db.session.add_all(services)
        db.session.commit()
        ids = [service.service_id for service in services]

    default = client.get("/api/config/home-services").get_json()["config"]
    assert default["selected_services"] == ids[:3]
    assert [item["id"] for item in default["services"]] == ids[:3]

    too_few = client.patch(
        "/api/config/home-services", json={"selected_services": ids[:2]}, headers=admin_headers
    )
    assert too_few.status_code == 400

    repeated = client.patch(
        "/api/config/home-services", json={"selected_services": [ids[0], ids[0], ids[1]]}, headers=admin_headers
    )
    assert repeated.status_code == 400

    unknown = client.patch(
        "/api/config/home-services", json={"selected_services": [ids[0], ids[1], 999]}, headers=admin_headers
    )
    assert unknown.status_code == 400

    chosen = [ids[4], ids[2], ids[0]]
    saved = client.patch("/api/config/home-services", json={"selected_services": chosen}, headers=admin_headers)
    assert saved.status_code == 200

    config = client.get("/api/config/home-services").get_json()["config"]
    assert [item["id"] for item in config["services"]] == chosen


def test_render_colors_css_falls_back_to_defaults() -> None:
    css = site_config.render_colors_css({"primary_color": None})

    assert css.startswith(":root {\n")
    assert "  --primary-color: #2C5F2D;" in css
    assert css.endswith("}\n")
