"""Routes for the shop, events, moderation queues, newsletter, redirects, page content and site config."""
from __future__ import annotations

import csv
import io
import re
from datetime import date, datetime

from flask import Blueprint, Response, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import notifications, site_config
from .auth import admin_required, is_admin_request
from .catalog import apply_display_order, slugify
from .extensions import db
from .models import (EVENT_LOCATIONS, EVENT_STATUSES, NEWSLETTER_SOURCES, SALE_STATUSES,
                     TESTIMONIAL_STATUSES, Certification, ContentSection, Event, NewsletterSubscriber,
                     Product, ProductCategory, Redirect, Sale, Service, SiteSection, Testimonial,
                     utc_now)
from .responses import bool_arg, database_error, error_response, invalid_response, notify_safely
from .validators import (ValidationError, optional_text, parse_bool, parse_choice, parse_datetime,
                         parse_email, parse_images, parse_int, parse_optional_int,
                         parse_optional_price, parse_order_items, parse_price, parse_string_list,
                         parse_url, require_text)

bp_ext = Blueprint("api_ext", __name__)


def _slug_from(payload: dict, values: dict, source_field: str, creating: bool) -> None:
    if payload.get("slug"):
        values["slug"] = slugify(payload["slug"])
    elif creating:
        values["slug"] = slugify(values[source_field])
    if "slug" in values and not values["slug"]:
        raise ValidationError("slug", "slug must contain letters or digits")


def _reorder(model, pk_attr: str, label: str):
    payload = request.get_json(silent=True) or {}
    try:
        pairs = parse_order_items(payload)
    except ValidationError as exc:
        return invalid_response(exc)

    pk_column = getattr(model, pk_attr)
    try:
        rows = model.query.filter(pk_column.in_([item_id for item_id, _ in pairs])).all()
        missing = apply_display_order(rows, pk_attr, pairs)
        if missing:
            db.session.rollback()
            return error_response("not_found", f"{label} not found: {missing}", 404)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(f"Failed to reorder {label}", exc)

    return jsonify({"message": "Order updated", "updated": len(pairs)}), 200


def subscribe_email(email: str, name: str | None, source: str) -> NewsletterSubscriber:
    """Insert or reactivate a subscriber inside the caller's transaction."""
    subscriber = NewsletterSubscriber.query.filter_by(email=email).first()
    if subscriber is None:
        subscriber = NewsletterSubscriber(email=email, name=name, source=source, active=True)
        db.session.add(subscriber)
    else:
        subscriber.active = True
        subscriber.source = source
        if name:
            subscriber.name = name
    return subscriber


# --- START: Product categories ---

def _read_product_category(payload: dict, creating: bool) -> dict[str, object]:
    values: dict[str, object] = {}
    if creating or "name" in payload:
        values["name"] = require_text(payload, "name", max_length=100)
    _slug_from(payload, values, "name", creating)
    if "description" in payload:
        values["description"] = optional_text(payload, "description")
    if "icon" in payload:
        values["icon"] = optional_text(payload, "icon") or "📦"
    if "active" in payload:
        values["active"] = parse_bool(payload["active"], "active")
    if "order" in payload:
        values["display_order"] = parse_int(payload["order"], "order", minimum=0)
    return values


@bp_ext.get("/api/product-categories")
def list_product_categories() -> tuple[dict[str, object], int]:
    try:
        query = ProductCategory.query
        if not is_admin_request():
            query = query.filter(ProductCategory.active.is_(True))
        categories = query.order_by(ProductCategory.display_order, ProductCategory.name).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch product categories", exc)
    return jsonify({
        "product_categories": [category.to_dict(include_count=True) for category in categories]
    }), 200


@bp_ext.post("/api/product-categories")
@admin_required
def create_product_category() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_product_category(payload, creating=True)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        if ProductCategory.query.filter_by(slug=values["slug"]).first():
            return error_response("duplicate_slug", "a product category with this slug already exists", 409)
        category = ProductCategory(**values)
        db.session.add(category)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "a product category with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to create product category", exc)

    return jsonify({"product_category": category.to_dict(include_count=True)}), 201


@bp_ext.route("/api/product-categories/<int:category_id>", methods=["PUT", "PATCH"])
@admin_required
def update_product_category(category_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_product_category(payload, creating=False)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        category = db.session.get(ProductCategory, category_id)
        if not category:
            return error_response("not_found", "Product category not found", 404)
        if "slug" in values and values["slug"] != category.slug:
            clash = ProductCategory.query.filter(
                ProductCategory.slug == values["slug"],
                ProductCategory.product_category_id != category_id,
            ).first()
            if clash:
                return error_response("duplicate_slug", "a product category with this slug already exists", 409)
        for field, value in values.items():
            setattr(category, field, value)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "a product category with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to update product category", exc)

    return jsonify({"product_category": category.to_dict(include_count=True)}), 200


@bp_ext.delete("/api/product-categories/<int:category_id>")
@admin_required
def delete_product_category(category_id: int) -> tuple[dict[str, object], int]:
    """Delete a product category that has no products.
    ---
    tags:
      - Products
    responses:
      200:
        description: Category deleted
      404:
        description: Category not found
      409:
        description: The category still has products
    """
    try:
        # Product writes lock the same row before assigning it
        category = (
            ProductCategory.query.filter_by(product_category_id=category_id).with_for_update().first()
        )
        if not category:
            return error_response("not_found", "Product category not found", 404)
        product_count = category.products.count()
        if product_count:
            db.session.rollback()
            return error_response(
                "has_products",
                f"Category has {product_count} product(s); move or delete them first",
                409,
            )
        db.session.delete(category)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("has_products", "Category still has products", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to delete product category", exc)

    return jsonify({"message": "Product category deleted"}), 200


@bp_ext.post("/api/product-categories/reorder")
@admin_required
def reorder_product_categories() -> tuple[dict[str, object], int]:
    return _reorder(ProductCategory, "product_category_id", "Product categories")

# --- END: Product categories ---


# --- START: Products ---

def _read_product(payload: dict, product: Product | None = None) -> dict[str, object]:
    creating = product is None
    values: dict[str, object] = {}
    if creating or "name" in payload:
        values["name"] = require_text(payload, "name", max_length=200)
    _slug_from(payload, values, "name", creating)
    if creating or "description" in payload:
        values["description"] = require_text(payload, "description")
    if creating or "base_price" in payload:
        values["base_price"] = parse_price(payload.get("base_price"), "base_price", positive=True)
    if creating or "category_id" in payload:
        values["category_id"] = parse_int(payload.get("category_id"), "category_id", minimum=1)
    if creating or "images" in payload:
        values["images"] = parse_images(payload.get("images"), min_items=1)
    for field in ("short_description", "meta_title", "meta_description"):
        if field in payload:
            values[field] = optional_text(payload, field)
    for field in ("track_stock", "active", "featured"):
        if field in payload:
            values[field] = parse_bool(payload[field], field)
    if "stock" in payload:
        values["stock"] = parse_optional_int(payload["stock"], "stock", minimum=0)
    if "order" in payload:
        values["display_order"] = parse_int(payload["order"], "order", minimum=0)

    track_stock = values.get("track_stock", product.track_stock if product else False)
    stock = values["stock"] if "stock" in values else (product.stock if product else None)
    if track_stock and stock is None:
        raise ValidationError("stock", "stock is required when track_stock is enabled")
    return values


def _find_product(identifier: str) -> Product | None:
    if identifier.isdigit():
        return db.session.get(Product, int(identifier))
    return Product.query.filter_by(slug=identifier).first()


@bp_ext.get("/api/products")
def list_products() -> tuple[dict[str, object], int]:
    """List products in display order.
    ---
    tags:
      - Products
    parameters:
      - name: category
        in: query
        type: string
        description: Product category slug
      - name: featured
        in: query
        type: boolean
      - name: active
        in: query
        type: boolean
        description: Admin only, anonymous callers always get active products
    responses:
      200:
        description: List of products
    """
    try:
        featured = bool_arg("featured")
        active = bool_arg("active")
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        query = Product.query
        if not is_admin_request():
            query = query.filter(Product.active.is_(True))
        elif active is not None:
            query = query.filter(Product.active.is_(active))
        if featured is not None:
            query = query.filter(Product.featured.is_(featured))
        category_slug = (request.args.get("category") or "").strip()
        if category_slug:
            query = query.join(ProductCategory).filter(ProductCategory.slug == category_slug)
        products = query.order_by(Product.display_order, Product.name).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch products", exc)

    return jsonify({"products": [product.to_dict() for product in products]}), 200


@bp_ext.get("/api/products/<string:identifier>")
def get_product(identifier: str) -> tuple[dict[str, object], int]:
    try:
        product = _find_product(identifier)
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch product", exc)
    if not product or (not product.active and not is_admin_request()):
        return error_response("not_found", "Product not found", 404)
    return jsonify({"product": product.to_dict()}), 200


@bp_ext.post("/api/products")
@admin_required
def create_product() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_product(payload)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        category = (
            ProductCategory.query.filter_by(product_category_id=values["category_id"]).with_for_update().first()
        )
        if not category:
            db.session.rollback()
            return error_response("not_found", "Product category not found", 404)
        if Product.query.filter_by(slug=values["slug"]).first():
            db.session.rollback()
            return error_response("duplicate_slug", "a product with this slug already exists", 409)
        product = Product(**values)
        db.session.add(product)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "a product with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to create product", exc)

    return jsonify({"product": product.to_dict()}), 201


@bp_ext.route("/api/products/<int:product_id>", methods=["PUT", "PATCH"])
@admin_required
def update_product(product_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        product = db.session.get(Product, product_id)
        if not product:
            return error_response("not_found", "Product not found", 404)
        try:
            values = _read_product(payload, product)
        except ValidationError as exc:
            return invalid_response(exc)

        if "category_id" in values and values["category_id"] != product.category_id:
            category = (
                ProductCategory.query.filter_by(product_category_id=values["category_id"])
                .with_for_update()
                .first()
            )
            if not category:
                db.session.rollback()
                return error_response("not_found", "Product category not found", 404)
        if "slug" in values and values["slug"] != product.slug:
            clash = Product.query.filter(Product.slug == values["slug"], Product.product_id != product_id).first()
            if clash:
                db.session.rollback()
                return error_response("duplicate_slug", "a product with this slug already exists", 409)
        for field, value in values.items():
            setattr(product, field, value)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "a product with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to update product", exc)

    return jsonify({"product": product.to_dict()}), 200


@bp_ext.delete("/api/products/<int:product_id>")
@admin_required
def delete_product(product_id: int) -> tuple[dict[str, object], int]:
    try:
        product = db.session.get(Product, product_id)
        if not product:
            return error_response("not_found", "Product not found", 404)
        if product.sales.first() is not None:
            return error_response("conflict", "Product has sales; deactivate it instead", 409)
        db.session.delete(product)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("conflict", "Product has sales; deactivate it instead", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to delete product", exc)
    return jsonify({"message": "Product deleted"}), 200


@bp_ext.post("/api/products/reorder")
@admin_required
def reorder_products() -> tuple[dict[str, object], int]:
    return _reorder(Product, "product_id", "Products")

# --- END: Products ---


# --- START: Sales ---

@bp_ext.get("/api/sales")
@admin_required
def list_sales() -> tuple[dict[str, object], int]:
    status = request.args.get("status")
    try:
        if status:
            parse_choice(status, "status", SALE_STATUSES)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        query = Sale.query
        if status:
            query = query.filter(Sale.status == status)
        sales = query.order_by(Sale.created_at.desc()).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch sales", exc)
    return jsonify({"sales": [sale.to_dict() for sale in sales]}), 200


@bp_ext.post("/api/sales")
def create_sale() -> tuple[dict[str, object], int]:
    """Register a purchase request from the public shop.
    ---
    tags:
      - Sales
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            product_id:
              type: integer
            client_name:
              type: string
            client_email:
              type: string
            client_phone:
              type: string
            client_notes:
              type: string
            accepts_newsletter:
              type: boolean
    responses:
      201:
        description: Sale created with status PENDING
      404:
        description: Product not available
      409:
        description: Product out of stock
    """
    payload = request.get_json(silent=True) or {}
    try:
        product_id = parse_int(payload.get("product_id"), "product_id", minimum=1)
        client_name = require_text(payload, "client_name", max_length=150)
        client_email = parse_email(payload.get("client_email"), "client_email")
        client_phone = require_text(payload, "client_phone", max_length=30)
        client_notes = optional_text(payload, "client_notes")
        accepts_newsletter = parse_bool(payload.get("accepts_newsletter", False), "accepts_newsletter")
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        product = db.session.get(Product, product_id)
        if not product or not product.active:
            return error_response("not_found", "Product not available", 404)
        if not product.in_stock:
            return error_response("conflict", "Product out of stock", 409)

        sale = Sale(
            product_id=product.product_id,
            client_name=client_name,
            client_email=client_email,
            client_phone=client_phone,
            client_notes=client_notes,
            accepts_newsletter=accepts_newsletter,
            status="PENDING",
        )
        db.session.add(sale)
        if accepts_newsletter:
            subscribe_email(client_email, client_name, "sale")
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to create sale", exc)

    notify_safely(notifications.notify_sale_created, sale)
    return jsonify({"sale": sale.to_dict()}), 201


@bp_ext.get("/api/sales/<int:sale_id>")
@admin_required
def get_sale(sale_id: int) -> tuple[dict[str, object], int]:
    try:
        sale = db.session.get(Sale, sale_id)
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch sale", exc)
    if not sale:
        return error_response("not_found", "Sale not found", 404)
    data = sale.to_dict()
    data["whatsapp_link"] = notifications.whatsapp_link(
        sale.client_phone, f"Hola {sale.client_name}, te escribimos por tu pedido."
    )
    return jsonify({"sale": data}), 200


@bp_ext.route("/api/sales/<int:sale_id>", methods=["PUT", "PATCH"])
@admin_required
def update_sale(sale_id: int) -> tuple[dict[str, object], int]:
    """Update status, negotiated price or notes.

    The first move to COMPLETED stamps ``completed_at`` and the first move to
    CANCELLED stamps ``cancelled_at``; later moves keep the original stamps.
    """
    payload = request.get_json(silent=True) or {}
    try:
        values: dict[str, object] = {}
        if "status" in payload:
            values["status"] = parse_choice(payload["status"], "status", SALE_STATUSES)
        if "final_price" in payload:
            values["final_price"] = parse_optional_price(payload["final_price"], "final_price")
        if "admin_notes" in payload:
            values["admin_notes"] = optional_text(payload, "admin_notes")
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        sale = db.session.get(Sale, sale_id)
        if not sale:
            return error_response("not_found", "Sale not found", 404)
        for field, value in values.items():
            setattr(sale, field, value)
        if sale.status == "COMPLETED" and sale.completed_at is None:
            sale.completed_at = utc_now()
        if sale.status == "CANCELLED" and sale.cancelled_at is None:
            sale.cancelled_at = utc_now()
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to update sale", exc)

    return jsonify({"sale": sale.to_dict()}), 200


@bp_ext.delete("/api/sales/<int:sale_id>")
@admin_required
def delete_sale(sale_id: int) -> tuple[dict[str, object], int]:
    try:
        sale = db.session.get(Sale, sale_id)
        if not sale:
            return error_response("not_found", "Sale not found", 404)
        db.session.delete(sale)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to delete sale", exc)
    return jsonify({"message": "Sale deleted"}), 200

# --- END: Sales ---


# --- START: Events ---

def _read_event(payload: dict, event: Event | None = None) -> dict[str, object]:
    creating = event is None
    values: dict[str, object] = {}
    if creating or "title" in payload:
        values["title"] = require_text(payload, "title", max_length=200)
    _slug_from(payload, values, "title", creating)
    if creating or "start_date" in payload:
        values["start_date"] = parse_datetime(payload.get("start_date"), "start_date")
    if "end_date" in payload:
        values["end_date"] = (
            parse_datetime(payload["end_date"], "end_date") if payload["end_date"] else None
        )
    if "location" in payload:
        values["location"] = parse_choice(payload["location"], "location", EVENT_LOCATIONS)
    if "status" in payload:
        values["status"] = parse_choice(payload["status"], "status", EVENT_STATUSES)
    for field in (
        "short_description", "description", "location_details", "event_type", "hero_image",
        "video_url", "requirements", "whatsapp_number", "whatsapp_message",
    ):
        if field in payload:
            values[field] = optional_text(payload, field)
    for field in ("includes", "what_to_bring"):
        if field in payload:
            values[field] = parse_string_list(payload[field], field)
    if "images" in payload:
        values["images"] = parse_images(payload["images"])
    if "price" in payload:
        values["price"] = parse_optional_price(payload["price"], "price") or 0
    for field in ("is_free", "active"):
        if field in payload:
            values[field] = parse_bool(payload[field], field)
    for field in ("max_places", "available_places"):
        if field in payload:
            values[field] = parse_optional_int(payload[field], field, minimum=0)
    if "order" in payload:
        values["display_order"] = parse_int(payload["order"], "order", minimum=0)

    def current(field):
        return values[field] if field in values else (getattr(event, field) if event else None)

    start, end = current("start_date"), current("end_date")
    if start and end and end < start:
        raise ValidationError("end_date", "end_date cannot be before start_date")
    max_places, available = current("max_places"), current("available_places")
    if max_places is not None and available is not None and available > max_places:
        raise ValidationError("available_places", "available_places cannot exceed max_places")
    if values.get("is_free"):
        values["price"] = 0
    return values


def _event_payload(event: Event) -> dict[str, object]:
    data = event.to_dict()
    data["whatsapp_link"] = notifications.whatsapp_link(event.whatsapp_number, event.whatsapp_message or "")
    return data


def _find_event(identifier: str) -> Event | None:
    if identifier.isdigit():
        return db.session.get(Event, int(identifier))
    return Event.query.filter_by(slug=identifier).first()


@bp_ext.get("/api/events")
def list_events() -> tuple[dict[str, object], int]:
    """List events by start date.

    Anonymous callers only see active, non-draft events.
    """
    status = request.args.get("status")
    try:
        if status:
            parse_choice(status, "status", EVENT_STATUSES)
        active = bool_arg("active")
        upcoming = bool_arg("upcoming")
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        query = Event.query
        if not is_admin_request():
            query = query.filter(Event.active.is_(True), Event.status != "DRAFT")
        elif active is not None:
            query = query.filter(Event.active.is_(active))
        if status:
            query = query.filter(Event.status == status)
        if upcoming:
            query = query.filter(Event.start_date >= datetime.combine(date.today(), datetime.min.time()))
        events = query.order_by(Event.start_date, Event.display_order).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch events", exc)

    return jsonify({"events": [event.to_dict() for event in events]}), 200


@bp_ext.get("/api/events/<string:identifier>")
def get_event(identifier: str) -> tuple[dict[str, object], int]:
    try:
        event = _find_event(identifier)
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch event", exc)
    if not event or ((not event.active or event.status == "DRAFT") and not is_admin_request()):
        return error_response("not_found", "Event not found", 404)
    return jsonify({"event": _event_payload(event)}), 200


@bp_ext.post("/api/events")
@admin_required
def create_event() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_event(payload)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        if Event.query.filter_by(slug=values["slug"]).first():
            return error_response("duplicate_slug", "an event with this slug already exists", 409)
        event = Event(**values)
        db.session.add(event)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "an event with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to create event", exc)

    return jsonify({"event": _event_payload(event)}), 201


@bp_ext.route("/api/events/<int:event_id>", methods=["PUT", "PATCH"])
@admin_required
def update_event(event_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        event = db.session.get(Event, event_id)
        if not event:
            return error_response("not_found", "Event not found", 404)
        try:
            values = _read_event(payload, event)
        except ValidationError as exc:
            return invalid_response(exc)
        if "slug" in values and values["slug"] != event.slug:
            if Event.query.filter(Event.slug == values["slug"], Event.event_id != event_id).first():
                return error_response("duplicate_slug", "an event with this slug already exists", 409)
        for field, value in values.items():
            setattr(event, field, value)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "an event with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to update event", exc)

    return jsonify({"event": _event_payload(event)}), 200


@bp_ext.delete("/api/events/<int:event_id>")
@admin_required
def delete_event(event_id: int) -> tuple[dict[str, object], int]:
    try:
        event = db.session.get(Event, event_id)
        if not event:
            return error_response("not_found", "Event not found", 404)
        db.session.delete(event)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to delete event", exc)
    return jsonify({"message": "Event deleted"}), 200

# --- END: Events ---


# --- START: Testimonials ---

def _read_testimonial(payload: dict, creating: bool) -> dict[str, object]:
    values: dict[str, object] = {}
    if creating or "name" in payload:
        values["name"] = require_text(payload, "name", min_length=2, max_length=150)
    if "email" in payload:
        values["email"] = parse_email(payload["email"]) if payload["email"] else None
    if "service" in payload:
        values["service"] = optional_text(payload, "service")
    if creating or "rating" in payload:
        values["rating"] = parse_int(payload.get("rating"), "rating", minimum=1, maximum=5)
    if creating or "text" in payload:
        values["text"] = require_text(payload, "text", min_length=10)
    if "status" in payload:
        values["status"] = parse_choice(payload["status"], "status", TESTIMONIAL_STATUSES)
    if "order" in payload:
        values["display_order"] = parse_int(payload["order"], "order", minimum=0)
    return values


@bp_ext.get("/api/testimonials")
def list_testimonials() -> tuple[dict[str, object], int]:
    """Approved testimonials for the public site, or the full queue for admins."""
    status = request.args.get("status")
    try:
        if status:
            parse_choice(status, "status", TESTIMONIAL_STATUSES)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        query = Testimonial.query
        if not is_admin_request():
            query = query.filter(Testimonial.status == "APPROVED")
        elif status:
            query = query.filter(Testimonial.status == status)
        testimonials = query.order_by(Testimonial.display_order, Testimonial.created_at.desc()).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch testimonials", exc)

    return jsonify({"testimonials": [item.to_dict() for item in testimonials]}), 200


@bp_ext.post("/api/testimonials/public")
def submit_testimonial() -> tuple[dict[str, object], int]:
    """Public testimonial form. Submissions wait in PENDING for moderation.
    ---
    tags:
      - Testimonials
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            service:
              type: string
            rating:
              type: integer
            text:
              type: string
    responses:
      201:
        description: Testimonial received
      400:
        description: Invalid payload
    """
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_testimonial(payload, creating=True)
        values["email"] = parse_email(payload.get("email"))
    except ValidationError as exc:
        return invalid_response(exc)
    values["status"] = "PENDING"
    values.pop("display_order", None)

    testimonial = Testimonial(**values)
    try:
        db.session.add(testimonial)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to store testimonial", exc)

    return jsonify({"testimonial": testimonial.to_dict()}), 201


@bp_ext.post("/api/testimonials")
@admin_required
def create_testimonial() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_testimonial(payload, creating=True)
    except ValidationError as exc:
        return invalid_response(exc)

    testimonial = Testimonial(**values)
    try:
        db.session.add(testimonial)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to create testimonial", exc)

    return jsonify({"testimonial": testimonial.to_dict()}), 201


@bp_ext.route("/api/testimonials/<int:testimonial_id>", methods=["PUT", "PATCH"])
@admin_required
def update_testimonial(testimonial_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_testimonial(payload, creating=False)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        testimonial = db.session.get(Testimonial, testimonial_id)
        if not testimonial:
            return error_response("not_found", "Testimonial not found", 404)
        for field, value in values.items():
            setattr(testimonial, field, value)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to update testimonial", exc)

    return jsonify({"testimonial": testimonial.to_dict()}), 200


@bp_ext.delete("/api/testimonials/<int:testimonial_id>")
@admin_required
def delete_testimonial(testimonial_id: int) -> tuple[dict[str, object], int]:
    try:
        testimonial = db.session.get(Testimonial, testimonial_id)
        if not testimonial:
            return error_response("not_found", "Testimonial not found", 404)
        db.session.delete(testimonial)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to delete testimonial", exc)
    return jsonify({"message": "Testimonial deleted"}), 200


@bp_ext.post("/api/testimonials/reorder")
@admin_required
def reorder_testimonials() -> tuple[dict[str, object], int]:
    return _reorder(Testimonial, "testimonial_id", "Testimonials")

# --- END: Testimonials ---


# --- START: Certifications ---

def _read_certification(payload: dict, creating: bool) -> dict[str, object]:
    values: dict[str, object] = {}
    if creating or "name" in payload:
        values["name"] = require_text(payload, "name", max_length=200)
    for field in ("description", "issuer"):
        if field in payload:
            values[field] = optional_text(payload, field)
    if "image_url" in payload:
        values["image_url"] = parse_url(payload["image_url"], "image_url")
    if "year" in payload:
        values["year"] = (
            parse_int(payload["year"], "year", minimum=1900, maximum=date.today().year)
            if payload["year"] is not None else None
        )
    if "active" in payload:
        values["active"] = parse_bool(payload["active"], "active")
    if "order" in payload:
        values["display_order"] = parse_int(payload["order"], "order", minimum=0)
    return values


@bp_ext.get("/api/certifications")
def list_certifications() -> tuple[dict[str, object], int]:
    """Active certifications for the public site; admins also see inactive ones."""
    try:
        query = Certification.query
        if not is_admin_request():
            query = query.filter(Certification.active.is_(True))
        certifications = query.order_by(Certification.display_order, Certification.name).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch certifications", exc)
    return jsonify({"certifications": [item.to_dict() for item in certifications]}), 200


@bp_ext.post("/api/certifications")
@admin_required
def create_certification() -> tuple[dict[str, object], int]:
    """Add a certification or diploma shown on the about page.
    ---
    tags:
      - Certifications
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            description:
              type: string
            image_url:
              type: string
            issuer:
              type: string
            year:
              type: integer
            active:
              type: boolean
            order:
              type: integer
          required:
            - name
    responses:
      201:
        description: Certification created
      400:
        description: Invalid payload
    """
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_certification(payload, creating=True)
    except ValidationError as exc:
        return invalid_response(exc)

    certification = Certification(**values)
    try:
        db.session.add(certification)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to create certification", exc)

    return jsonify({"certification": certification.to_dict()}), 201


@bp_ext.route("/api/certifications/<int:certification_id>", methods=["PUT", "PATCH"])
@admin_required
def update_certification(certification_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_certification(payload, creating=False)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        certification = db.session.get(Certification, certification_id)
        if not certification:
            return error_response("not_found", "Certification not found", 404)
        for field, value in values.items():
            setattr(certification, field, value)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to update certification", exc)

    return jsonify({"certification": certification.to_dict()}), 200


@bp_ext.delete("/api/certifications/<int:certification_id>")
@admin_required
def delete_certification(certification_id: int) -> tuple[dict[str, object], int]:
    try:
        certification = db.session.get(Certification, certification_id)
        if not certification:
            return error_response("not_found", "Certification not found", 404)
        db.session.delete(certification)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to delete certification", exc)
    return jsonify({"message": "Certification deleted"}), 200


@bp_ext.post("/api/certifications/reorder")
@admin_required
def reorder_certifications() -> tuple[dict[str, object], int]:
    return _reorder(Certification, "certification_id", "Certifications")

# --- END: Certifications ---


# --- START: Newsletter ---

SOURCE_LABELS = {
    "sale": "Compra",
    "contact_form": "Formulario de Contacto",
    "footer": "Footer",
    "manual": "Manual",
}


def render_subscribers_csv(subscribers) -> str:
    """CSV of subscribers with a labelled source and a dd/mm/yyyy date."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Email", "Name", "Source", "Date"])
    for subscriber in subscribers:
        writer.writerow([
            subscriber.email,
            subscriber.name or "",
            SOURCE_LABELS.get(subscriber.source, subscriber.source),
            subscriber.created_at.strftime("%d/%m/%Y") if subscriber.created_at else "",
        ])
    content = output.getvalue()
    output.close()
    return content


@bp_ext.get("/api/newsletter")
@admin_required
def list_subscribers() -> tuple[dict[str, object], int]:
    try:
        active = bool_arg("active")
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        query = NewsletterSubscriber.query
        if active is not None:
            query = query.filter(NewsletterSubscriber.active.is_(active))
        subscribers = query.order_by(NewsletterSubscriber.created_at.desc()).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch subscribers", exc)
    return jsonify({"subscribers": [subscriber.to_dict() for subscriber in subscribers]}), 200


@bp_ext.post("/api/newsletter")
def subscribe() -> tuple[dict[str, object], int]:
    """Subscribe an email, reactivating it when it had unsubscribed.
    ---
    tags:
      - Newsletter
    responses:
      200:
        description: Subscription reactivated
      201:
        description: Subscription created
      409:
        description: Email already subscribed
    """
    payload = request.get_json(silent=True) or {}
    try:
        email = parse_email(payload.get("email"))
        name = optional_text(payload, "name")
        source = parse_choice(payload.get("source") or "manual", "source", NEWSLETTER_SOURCES)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        existing = NewsletterSubscriber.query.filter_by(email=email).first()
        if existing and existing.active:
            return error_response("conflict", "This email is already subscribed", 409)
        reactivated = existing is not None
        subscriber = subscribe_email(email, name, source)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("conflict", "This email is already subscribed", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to subscribe", exc)

    if reactivated:
        return jsonify({"message": "Subscription reactivated", "subscriber": subscriber.to_dict()}), 200
    return jsonify({"message": "Subscribed", "subscriber": subscriber.to_dict()}), 201


@bp_ext.get("/api/newsletter/export")
@admin_required
def export_subscribers():
    """Download active subscribers as CSV."""
    try:
        subscribers = (
            NewsletterSubscriber.query.filter(NewsletterSubscriber.active.is_(True))
            .order_by(NewsletterSubscriber.created_at.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        return database_error("Failed to export subscribers", exc)

    filename = f"newsletter-{date.today().isoformat()}.csv"
    return Response(
        render_subscribers_csv(subscribers),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@bp_ext.route("/api/newsletter/<int:subscriber_id>", methods=["PUT", "PATCH"])
@admin_required
def update_subscriber(subscriber_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values: dict[str, object] = {}
        if "active" in payload:
            values["active"] = parse_bool(payload["active"], "active")
        if "name" in payload:
            values["name"] = optional_text(payload, "name")
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        subscriber = db.session.get(NewsletterSubscriber, subscriber_id)
        if not subscriber:
            return error_response("not_found", "Subscriber not found", 404)
        for field, value in values.items():
            setattr(subscriber, field, value)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to update subscriber", exc)
    return jsonify({"subscriber": subscriber.to_dict()}), 200


@bp_ext.delete("/api/newsletter/<int:subscriber_id>")
@admin_required
def unsubscribe(subscriber_id: int) -> tuple[dict[str, object], int]:
    """Unsubscribe. The row is kept with ``active`` false."""
    try:
        subscriber = db.session.get(NewsletterSubscriber, subscriber_id)
        if not subscriber:
            return error_response("not_found", "Subscriber not found", 404)
        subscriber.active = False
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to unsubscribe", exc)
    return jsonify({"subscriber": subscriber.to_dict()}), 200

# --- END: Newsletter ---


# --- START: Redirects ---

def follow_redirect(path: str) -> Redirect | None:
    """Return the active redirect for ``path``, counting the hit."""
    rule = Redirect.query.filter_by(source=path, active=True).first()
    if rule is None:
        return None
    rule.hits = (rule.hits or 0) + 1
    rule.last_hit_at = utc_now()
    db.session.commit()
    return rule


def _read_redirect(payload: dict, creating: bool) -> dict[str, object]:
    values: dict[str, object] = {}
    if creating or "source" in payload:
        source = require_text(payload, "source", max_length=500)
        if not source.startswith("/"):
            raise ValidationError("source", "source must start with /")
        values["source"] = source
    if creating or "destination" in payload:
        destination = require_text(payload, "destination", max_length=500)
        if not destination.startswith(("/", "http://", "https://")):
            raise ValidationError("destination", "destination must be a path or an http(s) URL")
        values["destination"] = destination
    for field in ("permanent", "active"):
        if field in payload:
            values[field] = parse_bool(payload[field], field)
    if values.get("source") and values.get("source") == values.get("destination"):
        raise ValidationError("destination", "destination must differ from source")
    return values


@bp_ext.get("/api/redirects")
@admin_required
def list_redirects() -> tuple[dict[str, object], int]:
    try:
        rules = Redirect.query.order_by(Redirect.created_at.desc()).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch redirects", exc)
    return jsonify({"redirects": [rule.to_dict() for rule in rules]}), 200


@bp_ext.get("/api/redirects/resolve")
def resolve_redirect() -> tuple[dict[str, object], int]:
    path = (request.args.get("path") or "").strip()
    if not path.startswith("/"):
        return error_response("invalid_payload", "path must start with /", 400)
    try:
        rule = follow_redirect(path)
    except SQLAlchemyError as exc:
        return database_error("Failed to resolve redirect", exc)
    if rule is None:
        return error_response("not_found", "No redirect for this path", 404)
    return jsonify({"destination": rule.destination, "status_code": rule.status_code}), 200


@bp_ext.post("/api/redirects")
@admin_required
def create_redirect() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_redirect(payload, creating=True)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        if Redirect.query.filter_by(source=values["source"]).first():
            return error_response("conflict", "A redirect for this source already exists", 409)
        rule = Redirect(**values)
        db.session.add(rule)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("conflict", "A redirect for this source already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to create redirect", exc)

    return jsonify({"redirect": rule.to_dict()}), 201


@bp_ext.route("/api/redirects/<int:redirect_id>", methods=["PUT", "PATCH"])
@admin_required
def update_redirect(redirect_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_redirect(payload, creating=False)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        rule = db.session.get(Redirect, redirect_id)
        if not rule:
            return error_response("not_found", "Redirect not found", 404)
        if values.get("source", rule.source) == values.get("destination", rule.destination):
            return invalid_response(ValidationError("destination", "destination must differ from source"))
        if "source" in values and values["source"] != rule.source:
            clash = Redirect.query.filter(Redirect.source == values["source"], Redirect.redirect_id != redirect_id).first()
            if clash:
                return error_response("conflict", "A redirect for this source already exists", 409)
        for field, value in values.items():
            setattr(rule, field, value)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("conflict", "A redirect for this source already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to update redirect", exc)

    return jsonify({"redirect": rule.to_dict()}), 200


@bp_ext.delete("/api/redirects/<int:redirect_id>")
@admin_required
def delete_redirect(redirect_id: int) -> tuple[dict[str, object], int]:
    try:
        rule = db.session.get(Redirect, redirect_id)
        if not rule:
            return error_response("not_found", "Redirect not found", 404)
        db.session.delete(rule)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to delete redirect", exc)
    return jsonify({"message": "Redirect deleted"}), 200

# --- END: Redirects ---


@bp_ext.post("/api/contact")
def contact() -> tuple[dict[str, object], int]:
    """Contact form: notifies the clinic and sends the visitor an acknowledgement."""
    payload = request.get_json(silent=True) or {}
    try:
        name = require_text(payload, "name", max_length=150)
        email = parse_email(payload.get("email"))
        phone = require_text(payload, "phone", max_length=30)
        message = require_text(payload, "message")
        accepts_newsletter = parse_bool(payload.get("accepts_newsletter", False), "accepts_newsletter")
    except ValidationError as exc:
        return invalid_response(exc)

    if accepts_newsletter:
        try:
            subscribe_email(email, name, "contact_form")
            db.session.commit()
        except SQLAlchemyError as exc:
            return database_error("Failed to subscribe contact", exc)

    current_app.logger.info("Contact message received from %s", email)
    notify_safely(notifications.notify_contact_message, name, email, phone, message)
    return jsonify({"message": "Message sent"}), 200


# --- START: Content sections ---

CONTENT_FIELDS = ("title", "subtitle", "content")
_SECTION_KEY_RE = re.compile(r"^[a-z0-9]+(?:[-_][a-z0-9]+)*$")


def _section_key(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("section", "section is required")
    key = value.strip()
    if not _SECTION_KEY_RE.match(key) or len(key) > 100:
        raise ValidationError("section", "section must be a lowercase key such as 'aviso-legal' or 'home_hero'")
    return key


def _read_content(payload: dict) -> dict[str, object]:
    return {field: optional_text(payload, field) for field in CONTENT_FIELDS if field in payload}


def _upsert_content(key: str, values: dict[str, object]) -> tuple[dict[str, object], int]:
    try:
        content = ContentSection.query.filter_by(section=key).first()
        created = content is None
        if created:
            content = ContentSection(section=key)
            db.session.add(content)
        for field, value in values.items():
            setattr(content, field, value)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("conflict", "Content section was created concurrently, retry the update", 409)
    except SQLAlchemyError as exc:
        return database_error(f"Failed to save {key} content", exc)

    if created:
        current_app.logger.info("Created content section %s", key)
    return jsonify({"content": content.to_dict()}), 200


@bp_ext.get("/api/content")
def list_content() -> tuple[dict[str, object], int]:
    """Every content section ordered by key, or one of them with ``?section=``."""
    key = request.args.get("section")
    if key:
        return get_content(key)
    try:
        sections = ContentSection.query.order_by(ContentSection.section).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch content", exc)
    return jsonify({"content": [item.to_dict() for item in sections]}), 200


@bp_ext.get("/api/content/<string:section>")
def get_content(section: str) -> tuple[dict[str, object], int]:
    try:
        content = ContentSection.query.filter_by(section=section).first()
    except SQLAlchemyError as exc:
        return database_error(f"Failed to fetch {section} content", exc)
    if content is None:
        return error_response("not_found", "Content not found", 404)
    return jsonify({"content": content.to_dict()}), 200


@bp_ext.put("/api/content")
@admin_required
def put_content() -> tuple[dict[str, object], int]:
    """Create or update the section named in the body.
    ---
    tags:
      - Content
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            section:
              type: string
            title:
              type: string
            subtitle:
              type: string
            content:
              type: string
          required:
            - section
    responses:
      200:
        description: Section saved
      400:
        description: Missing or malformed section key
    """
    payload = request.get_json(silent=True) or {}
    try:
        key = _section_key(payload.get("section"))
        values = _read_content(payload)
    except ValidationError as exc:
        return invalid_response(exc)
    return _upsert_content(key, values)


@bp_ext.patch("/api/content/<string:section>")
@admin_required
def patch_content(section: str) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        key = _section_key(section)
        values = _read_content(payload)
    except ValidationError as exc:
        return invalid_response(exc)
    return _upsert_content(key, values)

# --- END: Content sections ---


# --- START: Site configuration ---

def _stored_section(key: str) -> SiteSection | None:
    return SiteSection.query.filter_by(key=key).first()


def _default_home_services() -> list[int]:
    rows = (
        db.session.query(Service.service_id)
        .filter(Service.active.is_(True))
        .order_by(Service.display_order, Service.name)
        .limit(site_config.HOME_SERVICES_MIN)
        .all()
    )
    return [row.service_id for row in rows]


@bp_ext.get("/api/config/colors/css")
def colors_css():
    try:
        stored = _stored_section("colors")
        colors = site_config.merge_section("colors", stored.data if stored else None)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to load colors, serving defaults", exc_info=exc)
        colors = site_config.merge_section("colors", None)
    return Response(
        site_config.render_colors_css(colors),
        mimetype="text/css",
        headers={"Cache-Control": "public, max-age=60"},
    )


@bp_ext.get("/api/config/<string:section>")
def get_site_section(section: str) -> tuple[dict[str, object], int]:
    if not site_config.is_known_section(section):
        return error_response("not_found", "Unknown configuration section", 404)
    try:
        stored = _stored_section(section)
        data = site_config.merge_section(section, stored.data if stored else None)
        if section == "home-services":
            if not data["selected_services"]:
                data["selected_services"] = _default_home_services()
            services = Service.query.filter(
                Service.service_id.in_(data["selected_services"]), Service.active.is_(True)
            ).all()
            by_id = {service.service_id: service for service in services}
            data["services"] = [
                by_id[service_id].to_dict() for service_id in data["selected_services"] if service_id in by_id
            ]
    except SQLAlchemyError as exc:
        return database_error(f"Failed to load {section} configuration", exc)
    return jsonify({"section": section, "config": data}), 200


@bp_ext.patch("/api/config/<string:section>")
@admin_required
def update_site_section(section: str) -> tuple[dict[str, object], int]:
    if not site_config.is_known_section(section):
        return error_response("not_found", "Unknown configuration section", 404)
    payload = request.get_json(silent=True) or {}
    try:
        changes = site_config.clean_section_update(section, payload)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        if "selected_services" in changes:
            found = {
                row.service_id
                for row in db.session.query(Service.service_id)
                .filter(Service.service_id.in_(changes["selected_services"]))
                .all()
            }
            unknown = [service_id for service_id in changes["selected_services"] if service_id not in found]
            if unknown:
                return invalid_response(ValidationError("selected_services", f"unknown services: {unknown}"))

        stored = _stored_section(section)
        if stored is None:
            stored = SiteSection(key=section, data={})
            db.session.add(stored)
        # Reassign so the JSON column is flagged dirty
        stored.data = {**(stored.data or {}), **changes}
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(f"Failed to update {section} configuration", exc)

    return jsonify({"section": section, "config": site_config.merge_section(section, stored.data)}), 200

# --- END: Site configuration ---
