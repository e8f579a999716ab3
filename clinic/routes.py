"""HTTP routes for the clinic backend: catalog, scheduling and bookings."""
from __future__ import annotations

from datetime import date, datetime

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from . import notifications
from .auth import admin_required, build_token, is_admin_request
from .availability import (AvailabilityConfig, BlockedWindow, BookedRange, DaySchedule,
                           ScheduleError, compute_slots, day_of_week, end_time_for,
                           is_slot_available, overlaps_bookings, parse_time)
from .catalog import HierarchyError, ServiceTree, apply_display_order, resolve_parent_id, slugify
from .extensions import db
from .models import (BOOKING_STATUSES, OCCUPYING_STATUSES, AuthAccount, BlockedDate, Booking,
                     Category, ContactInfo, Event, NewsletterSubscriber, Sale, Service,
                     Testimonial, User, WorkingHour, utc_now)
from .responses import bool_arg, database_error, error_response, invalid_response, notify_safely
from .validators import (ValidationError, optional_text, parse_bool, parse_choice, parse_date,
                         parse_email, parse_images, parse_int, parse_optional_int,
                         parse_optional_price, parse_optional_time, parse_order_items,
                         parse_string_list, parse_time_field, require_text)

bp = Blueprint("api", __name__)


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- START: Authentication ---

@bp.post("/api/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate a dashboard user by email/password and return an access token.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Login successful, returns access token
      400:
        description: Missing email or password
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return error_response("invalid_payload", "email and password are required", 400)

    record = (
        db.session.query(User, AuthAccount)
        .join(AuthAccount, AuthAccount.user_id == User.user_id)
        .filter(User.email == email)
        .first()
    )

    if not record:
        return error_response("unauthorized", "invalid email or password", 401)

    user, auth_account = record

    if not check_password_hash(auth_account.password_hash, password):
        current_app.logger.warning("Rejected login for %s", email)
        return error_response("unauthorized", "invalid email or password", 401)

    auth_account.last_login_at = utc_now()

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to update last login timestamp", exc)

    token = build_token({"user_id": user.user_id, "role": user.role})
    return jsonify({"token": token, "user": user.to_dict_basic()}), 200


@bp.get("/api/auth/me")
@admin_required
def current_user() -> tuple[dict[str, object], int]:
    return jsonify({"user": g.current_user.to_dict_basic()}), 200


@bp.post("/api/auth/change-password")
@admin_required
def change_password() -> tuple[dict[str, object], int]:
    """Replace the signed-in user's password after checking the current one."""
    payload = request.get_json(silent=True) or {}
    current_password = payload.get("current_password") or ""
    new_password = payload.get("new_password") or ""

    if not current_password or not new_password:
        return error_response("invalid_payload", "current_password and new_password are required", 400)
    if len(new_password) < 8:
        return (
            jsonify({
                "error": "invalid_payload",
                "message": "new_password must have at least 8 characters",
                "details": {"new_password": "must have at least 8 characters"},
            }),
            400,
        )

    account = g.current_user.auth_account
    if account is None or not check_password_hash(account.password_hash, current_password):
        return error_response("unauthorized", "current password is incorrect", 401)

    account.password_hash = generate_password_hash(new_password)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to change password", exc)

    return jsonify({"message": "password updated"}), 200

# --- END: Authentication ---


# --- START: Service categories ---

def _read_category(payload: dict, category: Category | None = None) -> dict[str, object]:
    values: dict[str, object] = {}
    if category is None or "name" in payload:
        values["name"] = require_text(payload, "name", max_length=100)
    if payload.get("slug"):
        values["slug"] = slugify(payload["slug"])
    elif "name" in values and category is None:
        values["slug"] = slugify(values["name"])
    for field in ("color", "icon"):
        if field in payload:
            values[field] = optional_text(payload, field)
    if "active" in payload:
        values["active"] = parse_bool(payload["active"], "active")
    if "order" in payload:
        values["display_order"] = parse_int(payload["order"], "order", minimum=0)
    if "slug" in values and not values["slug"]:
        raise ValidationError("slug", "slug must contain letters or digits")
    return values


@bp.get("/api/categories")
def list_categories() -> tuple[dict[str, object], int]:
    """List service categories. Anonymous callers only see active ones."""
    try:
        query = Category.query
        if not is_admin_request():
            query = query.filter(Category.active.is_(True))
        categories = query.order_by(Category.display_order, Category.name).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch categories", exc)
    return jsonify({"categories": [category.to_dict() for category in categories]}), 200


@bp.post("/api/categories")
@admin_required
def create_category() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_category(payload)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        if Category.query.filter_by(slug=values["slug"]).first():
            return error_response("duplicate_slug", "a category with this slug already exists", 409)
        category = Category(**values)
        db.session.add(category)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "a category with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to create category", exc)

    return jsonify({"category": category.to_dict()}), 201


@bp.route("/api/categories/<int:category_id>", methods=["PUT", "PATCH"])
@admin_required
def update_category(category_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        category = db.session.get(Category, category_id)
        if not category:
            return error_response("not_found", "Category not found", 404)
        try:
            values = _read_category(payload, category)
        except ValidationError as exc:
            return invalid_response(exc)

        if "slug" in values and values["slug"] != category.slug:
            if Category.query.filter(Category.slug == values["slug"], Category.category_id != category_id).first():
                return error_response("duplicate_slug", "a category with this slug already exists", 409)
        for field, value in values.items():
            setattr(category, field, value)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "a category with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to update category", exc)

    return jsonify({"category": category.to_dict()}), 200


@bp.delete("/api/categories/<int:category_id>")
@admin_required
def delete_category(category_id: int) -> tuple[dict[str, object], int]:
    """Delete a category that no service references.
    ---
    tags:
      - Categories
    responses:
      200:
        description: Category deleted
      404:
        description: Category not found
      409:
        description: Services still reference the category
    """
    try:
        # Service writes lock the same row before assigning a category
        category = (
            Category.query.filter_by(category_id=category_id).with_for_update().first()
        )
        if not category:
            return error_response("not_found", "Category not found", 404)
        in_use = db.session.query(Service.service_id).filter_by(category_id=category_id).first()
        if in_use:
            db.session.rollback()
            return error_response("has_services", "Category still has services assigned", 409)
        db.session.delete(category)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("has_services", "Category still has services assigned", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to delete category", exc)

    return jsonify({"message": "Category deleted"}), 200


@bp.post("/api/categories/reorder")
@admin_required
def reorder_categories() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        pairs = parse_order_items(payload)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        rows = Category.query.filter(Category.category_id.in_([item_id for item_id, _ in pairs])).all()
        missing = apply_display_order(rows, "category_id", pairs)
        if missing:
            db.session.rollback()
            return error_response("not_found", f"Categories not found: {missing}", 404)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to reorder categories", exc)

    return jsonify({"message": "Order updated", "updated": len(pairs)}), 200

# --- END: Service categories ---


# --- START: Services ---

def _service_tree() -> ServiceTree:
    return ServiceTree(db.session.query(Service.service_id, Service.parent_service_id).all())


def _read_service(payload: dict, service: Service | None = None) -> dict[str, object]:
    """Collect validated column values from a create (service None) or update payload."""
    creating = service is None
    values: dict[str, object] = {}

    if creating or "name" in payload:
        values["name"] = require_text(payload, "name", max_length=150)
    if payload.get("slug"):
        values["slug"] = slugify(payload["slug"])
    elif creating:
        values["slug"] = slugify(values["name"])
    if "slug" in values and not values["slug"]:
        raise ValidationError("slug", "slug must contain letters or digits")

    if creating or "duration" in payload:
        values["duration_minutes"] = parse_int(payload.get("duration"), "duration", minimum=1, maximum=720)
    if "price" in payload:
        values["price"] = parse_optional_price(payload["price"], "price")
    for field in ("description", "short_description", "hero_image", "card_image"):
        if field in payload:
            values[field] = optional_text(payload, field)
    for field in ("benefits", "conditions"):
        if field in payload:
            values[field] = parse_string_list(payload[field], field)
    if "images" in payload:
        values["images"] = parse_images(payload["images"])
    if "category_id" in payload:
        values["category_id"] = parse_optional_int(payload["category_id"], "category_id", minimum=1)
    if "active" in payload:
        values["active"] = parse_bool(payload["active"], "active")
    if "order" in payload:
        values["display_order"] = parse_int(payload["order"], "order", minimum=0)

    if creating or "is_sub_service" in payload:
        is_sub_service = parse_bool(payload.get("is_sub_service", False), "is_sub_service")
        parent_id = parse_optional_int(payload.get("parent_service_id"), "parent_service_id", minimum=1)
        if is_sub_service and parent_id is None:
            raise ValidationError("parent_service_id", "parent_service_id is required for a sub-service")
        values["parent_service_id"] = resolve_parent_id(is_sub_service, parent_id)
    elif "parent_service_id" in payload:
        values["parent_service_id"] = parse_optional_int(
            payload["parent_service_id"], "parent_service_id", minimum=1
        )
    return values


def _check_service_references(values: dict[str, object], service_id: int | None):
    """Validate and lock the category and parent referenced by ``values``.

    Returns an error response, or None when the references are usable.
    """
    category_id = values.get("category_id")
    if category_id is not None:
        category = Category.query.filter_by(category_id=category_id).with_for_update().first()
        if not category:
            return error_response("not_found", "Category not found", 404)

    if "parent_service_id" in values and values["parent_service_id"] is not None:
        parent_id = values["parent_service_id"]
        Service.query.filter_by(service_id=parent_id).with_for_update().first()
        try:
            _service_tree().validate_parent(service_id, parent_id)
        except HierarchyError as exc:
            status = 404 if exc.code == "parent_not_found" else 400
            return jsonify({
                "error": exc.code,
                "message": exc.message,
                "details": {"parent_service_id": exc.message},
            }), status
    return None


def _find_service(identifier: str) -> Service | None:
    if identifier.isdigit():
        return db.session.get(Service, int(identifier))
    return Service.query.filter_by(slug=identifier).first()


@bp.get("/api/services")
def list_services() -> tuple[dict[str, object], int]:
    """List services in display order.
    ---
    tags:
      - Services
    parameters:
      - name: active
        in: query
        type: boolean
      - name: category
        in: query
        type: string
        description: Category slug
      - name: parentId
        in: query
        type: integer
      - name: topLevel
        in: query
        type: boolean
        description: Only services without a parent, with their sub-services nested
    responses:
      200:
        description: List of services
    """
    try:
        active = bool_arg("active")
        top_level = bool_arg("topLevel")
        parent_id = parse_optional_int(request.args.get("parentId"), "parentId", minimum=1)
    except ValidationError as exc:
        return invalid_response(exc)

    admin = is_admin_request()
    try:
        query = Service.query
        if not admin:
            query = query.filter(Service.active.is_(True))
        elif active is not None:
            query = query.filter(Service.active.is_(active))
        category_slug = (request.args.get("category") or "").strip()
        if category_slug:
            query = query.join(Category).filter(Category.slug == category_slug)
        if parent_id is not None:
            query = query.filter(Service.parent_service_id == parent_id)
        elif top_level:
            query = query.filter(Service.parent_service_id.is_(None))
        services = query.order_by(Service.display_order, Service.name).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch services", exc)

    data = []
    for service in services:
        item = service.to_dict(include_children=bool(top_level))
        if top_level and not admin:
            item["child_services"] = [child for child in item["child_services"] if child["active"]]
        data.append(item)
    return jsonify({"services": data}), 200


@bp.get("/api/services/<string:identifier>")
def get_service(identifier: str) -> tuple[dict[str, object], int]:
    """Fetch one service by numeric id or by slug."""
    try:
        service = _find_service(identifier)
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch service", exc)
    if not service or (not service.active and not is_admin_request()):
        return error_response("not_found", "Service not found", 404)
    return jsonify({"service": service.to_dict(include_children=True)}), 200


@bp.get("/api/services/<int:service_id>/children")
def list_service_children(service_id: int) -> tuple[dict[str, object], int]:
    try:
        service = db.session.get(Service, service_id)
        if not service:
            return error_response("not_found", "Service not found", 404)
        children = service.children
        if not is_admin_request():
            children = [child for child in children if child.active]
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch sub-services", exc)
    return jsonify({"services": [child.to_dict() for child in children]}), 200


@bp.post("/api/services")
@admin_required
def create_service() -> tuple[dict[str, object], int]:
    """Create a service, optionally as a sub-service of a top-level service.
    ---
    tags:
      - Services
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            slug:
              type: string
            duration:
              type: integer
            price:
              type: number
            category_id:
              type: integer
            is_sub_service:
              type: boolean
            parent_service_id:
              type: integer
    responses:
      201:
        description: Service created
      400:
        description: Invalid payload or parent
      409:
        description: Slug already in use
    """
    payload = request.get_json(silent=True) or {}
    try:
        values = _read_service(payload)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        problem = _check_service_references(values, None)
        if problem:
            db.session.rollback()
            return problem
        if Service.query.filter_by(slug=values["slug"]).first():
            db.session.rollback()
            return error_response("duplicate_slug", "a service with this slug already exists", 409)

        service = Service(**values)
        db.session.add(service)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "a service with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to create service", exc)

    current_app.logger.info("Created service %s (%s)", service.service_id, service.slug)
    return jsonify({"service": service.to_dict(include_children=True)}), 201


@bp.route("/api/services/<int:service_id>", methods=["PUT", "PATCH"])
@admin_required
def update_service(service_id: int) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        service = db.session.get(Service, service_id)
        if not service:
            return error_response("not_found", "Service not found", 404)
        try:
            values = _read_service(payload, service)
        except ValidationError as exc:
            return invalid_response(exc)

        problem = _check_service_references(values, service_id)
        if problem:
            db.session.rollback()
            return problem
        if "slug" in values and values["slug"] != service.slug:
            clash = Service.query.filter(Service.slug == values["slug"], Service.service_id != service_id).first()
            if clash:
                db.session.rollback()
                return error_response("duplicate_slug", "a service with this slug already exists", 409)

        for field, value in values.items():
            setattr(service, field, value)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("duplicate_slug", "a service with this slug already exists", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to update service", exc)

    return jsonify({"service": service.to_dict(include_children=True)}), 200


@bp.delete("/api/services/<int:service_id>")
@admin_required
def delete_service(service_id: int) -> tuple[dict[str, object], int]:
    """Delete a service that has no sub-services.
    ---
    tags:
      - Services
    responses:
      200:
        description: Service deleted
      404:
        description: Service not found
      409:
        description: The service still has sub-services or bookings
    """
    try:
        # Sub-service writes lock the parent row, so the check below cannot go stale
        service = Service.query.filter_by(service_id=service_id).with_for_update().first()
        if not service:
            return error_response("not_found", "Service not found", 404)
        child_count = (
            db.session.query(func.count(Service.service_id))
            .filter(Service.parent_service_id == service_id)
            .scalar()
        )
        if child_count:
            db.session.rollback()
            return error_response(
                "has_children",
                f"Service has {child_count} sub-service(s); delete them first",
                409,
            )
        if db.session.query(Booking.booking_id).filter_by(service_id=service_id).first():
            db.session.rollback()
            return error_response("conflict", "Service has bookings; deactivate it instead", 409)
        db.session.delete(service)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("has_children", "Service is still referenced by other rows", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to delete service", exc)

    return jsonify({"message": "Service deleted"}), 200


@bp.post("/api/services/reorder")
@admin_required
def reorder_services() -> tuple[dict[str, object], int]:
    """Persist drag-and-drop order, optionally moving the items under ``parent_id``.

    ``parent_id`` null moves the items to the top level; leaving it out keeps
    every item under its current parent.
    """
    payload = request.get_json(silent=True) or {}
    try:
        pairs = parse_order_items(payload)
        move = "parent_id" in payload
        parent_id = parse_optional_int(payload.get("parent_id"), "parent_id", minimum=1) if move else None
    except ValidationError as exc:
        return invalid_response(exc)

    ids = [item_id for item_id, _ in pairs]
    try:
        if move and parent_id is not None:
            Service.query.filter_by(service_id=parent_id).with_for_update().first()
        rows = Service.query.filter(Service.service_id.in_(ids)).all()
        missing = apply_display_order(rows, "service_id", pairs)
        if missing:
            db.session.rollback()
            return error_response("not_found", f"Services not found: {missing}", 404)

        if move:
            tree = _service_tree()
            for item_id in ids:
                try:
                    tree.validate_parent(item_id, parent_id)
                except HierarchyError as exc:
                    db.session.rollback()
                    return jsonify({
                        "error": exc.code,
                        "message": f"service {item_id}: {exc.message}",
                        "details": {"parent_id": exc.message},
                    }), 404 if exc.code == "parent_not_found" else 400
            for row in rows:
                row.parent_service_id = parent_id
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to reorder services", exc)

    return jsonify({"message": "Order updated", "updated": len(pairs)}), 200

# --- END: Services ---


# --- START: Scheduling configuration ---

def _locked_contact_info() -> ContactInfo | None:
    """Lock the single contact-info row. Booking writes serialize on this lock."""
    return ContactInfo.query.order_by(ContactInfo.contact_info_id).with_for_update().first()


def _availability_config(target: date, buffer_minutes: int) -> AvailabilityConfig:
    """Snapshot the schedule rows for ``target`` into an engine config."""
    hours = WorkingHour.query.filter_by(day_of_week=day_of_week(target)).first()
    schedule = None
    if hours is not None:
        schedule = DaySchedule(
            is_open=bool(hours.is_open),
            open_time=hours.open_time,
            close_time=hours.close_time,
            break_start=hours.break_start,
            break_end=hours.break_end,
        )
    blocks = tuple(
        BlockedWindow(all_day=bool(row.all_day), start_time=row.start_time, end_time=row.end_time)
        for row in BlockedDate.query.filter_by(date=target).all()
    )
    return AvailabilityConfig(schedule=schedule, blocks=blocks, buffer_minutes=buffer_minutes)


def _occupied_ranges(target: date, exclude_id: int | None = None) -> list[BookedRange]:
    query = Booking.query.filter(Booking.date == target, Booking.status.in_(OCCUPYING_STATUSES))
    if exclude_id is not None:
        query = query.filter(Booking.booking_id != exclude_id)
    return [BookedRange(booking.start_time, booking.end_time) for booking in query.all()]


def _read_working_hour(item: dict) -> dict[str, object]:
    day = parse_int(item.get("day_of_week"), "day_of_week", minimum=0, maximum=6)
    is_open = parse_bool(item.get("is_open", True), "is_open")
    open_time = parse_time_field(item.get("open_time"), "open_time")
    close_time = parse_time_field(item.get("close_time"), "close_time")
    break_start = parse_optional_time(item.get("break_start"), "break_start")
    break_end = parse_optional_time(item.get("break_end"), "break_end")

    if is_open and parse_time(close_time) <= parse_time(open_time):
        raise ValidationError("close_time", "close_time must be after open_time")
    if (break_start is None) != (break_end is None):
        raise ValidationError("break_end", "break_start and break_end must be given together")
    if break_start is not None:
        if parse_time(break_end) <= parse_time(break_start):
            raise ValidationError("break_end", "break_end must be after break_start")
        if parse_time(break_start) < parse_time(open_time) or parse_time(break_end) > parse_time(close_time):
            raise ValidationError("break_start", "the break must fall inside opening hours")

    return {
        "day_of_week": day,
        "is_open": is_open,
        "open_time": open_time,
        "close_time": close_time,
        "break_start": break_start,
        "break_end": break_end,
    }


@bp.get("/api/working-hours")
def list_working_hours() -> tuple[dict[str, object], int]:
    try:
        hours = WorkingHour.query.order_by(WorkingHour.day_of_week).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch working hours", exc)
    return jsonify({"working_hours": [row.to_dict() for row in hours]}), 200


@bp.post("/api/working-hours")
@admin_required
def upsert_working_hours() -> tuple[dict[str, object], int]:
    """Create or replace the schedule of one or more weekdays.
    ---
    tags:
      - Scheduling
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          description: A single day object, or {"working_hours": [day, ...]}
          properties:
            day_of_week:
              type: integer
              description: 0=Sunday ... 6=Saturday
            is_open:
              type: boolean
            open_time:
              type: string
            close_time:
              type: string
            break_start:
              type: string
            break_end:
              type: string
    responses:
      200:
        description: Stored schedule rows
      400:
        description: Invalid schedule
    """
    payload = request.get_json(silent=True) or {}
    items = payload.get("working_hours") if "working_hours" in payload else [payload]
    if not isinstance(items, list) or not items:
        return error_response("invalid_payload", "working_hours must be a non-empty list", 400)

    try:
        rows = [_read_working_hour(item if isinstance(item, dict) else {}) for item in items]
    except ValidationError as exc:
        return invalid_response(exc)
    if len({row["day_of_week"] for row in rows}) != len(rows):
        return error_response("invalid_payload", "each day_of_week may appear only once", 400)

    saved: list[WorkingHour] = []
    try:
        for values in rows:
            record = WorkingHour.query.filter_by(day_of_week=values["day_of_week"]).first()
            if record is None:
                record = WorkingHour(day_of_week=values["day_of_week"])
                db.session.add(record)
            for field, value in values.items():
                setattr(record, field, value)
            saved.append(record)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to save working hours", exc)

    return jsonify({"working_hours": [row.to_dict() for row in saved]}), 200


@bp.get("/api/blocked-dates")
def list_blocked_dates() -> tuple[dict[str, object], int]:
    try:
        start = request.args.get("startDate")
        end = request.args.get("endDate")
        start_date = parse_date(start, "startDate") if start else None
        end_date = parse_date(end, "endDate") if end else None
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        query = BlockedDate.query
        if start_date:
            query = query.filter(BlockedDate.date >= start_date)
        if end_date:
            query = query.filter(BlockedDate.date <= end_date)
        rows = query.order_by(BlockedDate.date, BlockedDate.start_time).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch blocked dates", exc)
    return jsonify({"blocked_dates": [row.to_dict() for row in rows]}), 200


@bp.post("/api/blocked-dates")
@admin_required
def create_blocked_date() -> tuple[dict[str, object], int]:
    """Block a whole day, or a time window inside it when ``all_day`` is false."""
    payload = request.get_json(silent=True) or {}
    try:
        blocked_on = parse_date(payload.get("date"))
        all_day = parse_bool(payload.get("all_day", True), "all_day")
        start_time = end_time = None
        if not all_day:
            start_time = parse_time_field(payload.get("start_time"), "start_time")
            end_time = parse_time_field(payload.get("end_time"), "end_time")
            if parse_time(end_time) <= parse_time(start_time):
                raise ValidationError("end_time", "end_time must be after start_time")
        reason = optional_text(payload, "reason")
    except ValidationError as exc:
        return invalid_response(exc)

    blocked = BlockedDate(
        date=blocked_on,
        reason=reason,
        all_day=all_day,
        start_time=start_time,
        end_time=end_time,
    )
    try:
        db.session.add(blocked)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to create blocked date", exc)

    return jsonify({"blocked_date": blocked.to_dict()}), 201


@bp.delete("/api/blocked-dates/<int:blocked_date_id>")
@admin_required
def delete_blocked_date(blocked_date_id: int) -> tuple[dict[str, object], int]:
    try:
        blocked = db.session.get(BlockedDate, blocked_date_id)
        if not blocked:
            return error_response("not_found", "Blocked date not found", 404)
        db.session.delete(blocked)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to delete blocked date", exc)
    return jsonify({"message": "Blocked date deleted"}), 200


_CONTACT_FIELDS = (
    "phone", "email", "whatsapp", "address", "city", "zip_code",
    "instagram_url", "facebook_url", "maps_embed_url",
)


@bp.get("/api/contact-info")
def get_contact_info() -> tuple[dict[str, object], int]:
    try:
        info = ContactInfo.query.order_by(ContactInfo.contact_info_id).first()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch contact info", exc)
    if info is None:
        data = {field: None for field in _CONTACT_FIELDS}
        data.update(id=None, buffer_minutes=current_app.config["DEFAULT_BUFFER_MINUTES"], updated_at=None)
        return jsonify({"contact_info": data}), 200
    return jsonify({"contact_info": info.to_dict()}), 200


@bp.put("/api/contact-info")
@admin_required
def update_contact_info() -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    try:
        values = {field: optional_text(payload, field) for field in _CONTACT_FIELDS if field in payload}
        if values.get("email"):
            values["email"] = parse_email(values["email"])
        if "buffer_minutes" in payload:
            values["buffer_minutes"] = parse_int(payload["buffer_minutes"], "buffer_minutes", minimum=0, maximum=60)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        info = _locked_contact_info()
        if info is None:
            info = ContactInfo(buffer_minutes=current_app.config["DEFAULT_BUFFER_MINUTES"])
            db.session.add(info)
        for field, value in values.items():
            setattr(info, field, value)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return error_response("conflict", "Contact info was created concurrently, retry the update", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to update contact info", exc)

    return jsonify({"contact_info": info.to_dict()}), 200

# --- END: Scheduling configuration ---


# --- START: Bookings ---

@bp.get("/api/bookings/available-slots")
def available_slots() -> tuple[dict[str, object], int]:
    """Compute the bookable slots of a service on a date.
    ---
    tags:
      - Bookings
    parameters:
      - name: date
        in: query
        type: string
        required: true
        description: YYYY-MM-DD
      - name: serviceId
        in: query
        type: integer
        required: true
    responses:
      200:
        description: Every candidate slot with its availability flag
        schema:
          type: object
          properties:
            slots:
              type: array
              items:
                type: object
                properties:
                  startTime:
                    type: string
                  endTime:
                    type: string
                  available:
                    type: boolean
      400:
        description: Invalid query or malformed schedule data
      404:
        description: Service not found
    """
    try:
        target = parse_date(request.args.get("date"))
        service_id = parse_int(request.args.get("serviceId"), "serviceId", minimum=1)
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        service = db.session.get(Service, service_id)
        if not service or not service.active:
            return error_response("not_found", "Service not found", 404)
        info = ContactInfo.query.order_by(ContactInfo.contact_info_id).first()
        buffer_minutes = info.buffer_minutes if info else current_app.config["DEFAULT_BUFFER_MINUTES"]
        config = _availability_config(target, buffer_minutes)
        slots = compute_slots(config, service.duration_minutes, _occupied_ranges(target))
    except ScheduleError as exc:
        current_app.logger.warning("Unusable schedule for %s: %s", target, exc)
        return error_response("invalid_schedule", str(exc), 400)
    except SQLAlchemyError as exc:
        return database_error("Failed to compute available slots", exc)

    return jsonify({"slots": [slot.to_dict() for slot in slots]}), 200


@bp.get("/api/bookings")
@admin_required
def list_bookings() -> tuple[dict[str, object], int]:
    try:
        status = request.args.get("status")
        if status:
            parse_choice(status, "status", BOOKING_STATUSES)
        on_date = parse_date(request.args["date"]) if request.args.get("date") else None
        start = parse_date(request.args["startDate"], "startDate") if request.args.get("startDate") else None
        end = parse_date(request.args["endDate"], "endDate") if request.args.get("endDate") else None
    except ValidationError as exc:
        return invalid_response(exc)

    try:
        query = Booking.query
        if status:
            query = query.filter(Booking.status == status)
        if on_date:
            query = query.filter(Booking.date == on_date)
        if start:
            query = query.filter(Booking.date >= start)
        if end:
            query = query.filter(Booking.date <= end)
        bookings = query.order_by(Booking.date, Booking.start_time).all()
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch bookings", exc)

    return jsonify({"bookings": [booking.to_dict() for booking in bookings]}), 200


@bp.post("/api/bookings")
def create_booking() -> tuple[dict[str, object], int]:
    """Book a slot. The slot is re-checked inside the write transaction.
    ---
    tags:
      - Bookings
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            service_id:
              type: integer
            date:
              type: string
            start_time:
              type: string
            client_name:
              type: string
            client_email:
              type: string
            client_phone:
              type: string
            client_notes:
              type: string
          required:
            - service_id
            - date
            - start_time
            - client_name
            - client_email
            - client_phone
    responses:
      201:
        description: Booking created with status PENDING
      400:
        description: Invalid payload
      404:
        description: Service not found
      409:
        description: The slot is no longer available
      503:
        description: Contact info row missing, booking is not configured
    """
    payload = request.get_json(silent=True) or {}
    try:
        service_id = parse_int(payload.get("service_id"), "service_id", minimum=1)
        booked_on = parse_date(payload.get("date"))
        start_time = parse_time_field(payload.get("start_time"), "start_time")
        client_name = require_text(payload, "client_name", min_length=2, max_length=150)
        client_email = parse_email(payload.get("client_email"), "client_email")
        client_phone = require_text(payload, "client_phone", max_length=30)
        client_notes = optional_text(payload, "client_notes")
    except ValidationError as exc:
        return invalid_response(exc)

    if booked_on < date.today():
        return (
            jsonify({
                "error": "invalid_payload",
                "message": "date cannot be in the past",
                "details": {"date": "date cannot be in the past"},
            }),
            400,
        )

    try:
        service = db.session.get(Service, service_id)
        if not service or not service.active:
            return error_response("not_found", "Service not found", 404)

        info = _locked_contact_info()
        if info is None:
            db.session.rollback()
            current_app.logger.error("Booking rejected: contact info row missing, run scripts/init_db.py")
            return error_response("not_configured", "Online booking is not configured yet", 503)
        config = _availability_config(booked_on, info.buffer_minutes)
        end_time = end_time_for(start_time, service.duration_minutes)
        if not is_slot_available(config, service.duration_minutes, start_time, _occupied_ranges(booked_on)):
            db.session.rollback()
            return error_response("slot_unavailable", "The selected time is no longer available", 409)

        booking = Booking(
            service_id=service.service_id,
            client_name=client_name,
            client_email=client_email,
            client_phone=client_phone,
            date=booked_on,
            start_time=start_time,
            end_time=end_time,
            status="PENDING",
            client_notes=client_notes,
        )
        db.session.add(booking)
        db.session.commit()
    except ScheduleError as exc:
        db.session.rollback()
        current_app.logger.warning("Unusable schedule for %s: %s", booked_on, exc)
        return error_response("invalid_schedule", str(exc), 400)
    except IntegrityError:
        db.session.rollback()
        return error_response("slot_unavailable", "The selected time is no longer available", 409)
    except SQLAlchemyError as exc:
        return database_error("Failed to create booking", exc)

    current_app.logger.info("Booking %s created for %s %s", booking.booking_id, booked_on, start_time)
    notify_safely(notifications.notify_booking_created, booking)
    return jsonify({"booking": booking.to_dict()}), 201


@bp.get("/api/bookings/<int:booking_id>")
@admin_required
def get_booking(booking_id: int) -> tuple[dict[str, object], int]:
    try:
        booking = db.session.get(Booking, booking_id)
    except SQLAlchemyError as exc:
        return database_error("Failed to fetch booking", exc)
    if not booking:
        return error_response("not_found", "Booking not found", 404)
    return jsonify({"booking": booking.to_dict()}), 200


def _overlaps_other_bookings(booking: Booking) -> bool:
    """Whether an occupying booking now collides with another one on its date."""
    if not booking.occupies_slot:
        return False
    info = ContactInfo.query.order_by(ContactInfo.contact_info_id).first()
    buffer_minutes = info.buffer_minutes if info else current_app.config["DEFAULT_BUFFER_MINUTES"]
    others = _occupied_ranges(booking.date, exclude_id=booking.booking_id)
    try:
        return overlaps_bookings(booking.start_time, booking.end_time, others, buffer_minutes)
    except ScheduleError as exc:
        current_app.logger.warning("Cannot check overlaps for booking %s: %s", booking.booking_id, exc)
        return False


@bp.patch("/api/bookings/<int:booking_id>")
@admin_required
def update_booking(booking_id: int) -> tuple[dict[str, object], int]:
    """Change the status and/or notes of a booking.

    Every status change is allowed. ``overlaps_other_booking`` tells staff when
    the booking now collides with another occupying one.
    """
    payload = request.get_json(silent=True) or {}
    try:
        values: dict[str, object] = {}
        if "status" in payload:
            values["status"] = parse_choice(payload["status"], "status", BOOKING_STATUSES)
        for field in ("admin_notes", "client_notes"):
            if field in payload:
                values[field] = optional_text(payload, field)
    except ValidationError as exc:
        return invalid_response(exc)
    if not values:
        return error_response("invalid_payload", "nothing to update", 400)

    try:
        booking = db.session.get(Booking, booking_id)
        if not booking:
            return error_response("not_found", "Booking not found", 404)
        for field, value in values.items():
            setattr(booking, field, value)
        db.session.commit()
        overlaps = _overlaps_other_bookings(booking)
    except SQLAlchemyError as exc:
        return database_error("Failed to update booking", exc)

    return jsonify({"booking": booking.to_dict(), "overlaps_other_booking": overlaps}), 200


@bp.delete("/api/bookings/<int:booking_id>")
@admin_required
def cancel_booking(booking_id: int) -> tuple[dict[str, object], int]:
    """Cancel a booking. The row is kept with status CANCELLED."""
    try:
        booking = db.session.get(Booking, booking_id)
        if not booking:
            return error_response("not_found", "Booking not found", 404)
        booking.status = "CANCELLED"
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error("Failed to cancel booking", exc)
    return jsonify({"booking": booking.to_dict()}), 200

# --- END: Bookings ---


@bp.get("/api/dashboard/stats")
@admin_required
def dashboard_stats() -> tuple[dict[str, object], int]:
    today = date.today()
    try:
        occupying = Booking.status.in_(OCCUPYING_STATUSES)
        stats = {
            "pending_bookings": Booking.query.filter(Booking.status == "PENDING").count(),
            "today_bookings": Booking.query.filter(Booking.date == today, occupying).count(),
            "upcoming_bookings": Booking.query.filter(Booking.date >= today, occupying).count(),
            "pending_testimonials": Testimonial.query.filter_by(status="PENDING").count(),
            "pending_sales": Sale.query.filter_by(status="PENDING").count(),
            "active_subscribers": NewsletterSubscriber.query.filter_by(active=True).count(),
            "upcoming_events": Event.query.filter(
                Event.status == "UPCOMING",
                Event.active.is_(True),
                Event.start_date >= datetime.combine(today, datetime.min.time()),
            ).count(),
        }
    except SQLAlchemyError as exc:
        return database_error("Failed to compute dashboard stats", exc)
    return jsonify({"stats": stats}), 200
