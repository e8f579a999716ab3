"""Database models for the clinic backend."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import event, true

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _iso(value) -> str | None:
    return value.isoformat() if value else None


BOOKING_STATUSES = ("PENDING", "CONFIRMED", "COMPLETED", "CANCELLED", "NO_SHOW")
# Bookings in these states hold their time on the calendar
OCCUPYING_STATUSES = frozenset({"PENDING", "CONFIRMED", "COMPLETED"})

SALE_STATUSES = ("PENDING", "IN_PROCESS", "COMPLETED", "CANCELLED")
TESTIMONIAL_STATUSES = ("PENDING", "APPROVED", "REJECTED")
EVENT_STATUSES = ("DRAFT", "UPCOMING", "ONGOING", "FINISHED", "CANCELLED")
EVENT_LOCATIONS = ("Centro", "Online", "Otra")
NEWSLETTER_SOURCES = ("sale", "contact_form", "footer", "manual")


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(
        db.Enum("admin", name="user_role", native_enum=False, validate_strings=True),
        nullable=False,
        server_default="admin",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    auth_account = db.relationship("AuthAccount", back_populates="user", uselist=False)

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="auth_account")


class Category(db.Model):
    """Service category shown as a filter on the public site."""

    __tablename__ = "categories"

    category_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    color = db.Column(db.String(20))
    icon = db.Column(db.String(50))
    active = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    services = db.relationship("Service", back_populates="category", lazy="dynamic")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.category_id,
            "name": self.name,
            "slug": self.slug,
            "color": self.color,
            "icon": self.icon,
            "active": bool(self.active),
            "order": self.display_order,
        }


class Service(db.Model):
    """Bookable treatment. A service may hang under one parent service."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    slug = db.Column(db.String(180), unique=True, nullable=False)
    description = db.Column(db.Text)
    short_description = db.Column(db.String(300))
    duration_minutes = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.category_id"), nullable=True)
    benefits = db.Column(db.JSON, nullable=True, default=list)
    conditions = db.Column(db.JSON, nullable=True, default=list)
    hero_image = db.Column(db.String(500))
    card_image = db.Column(db.String(500))
    images = db.Column(db.JSON, nullable=True, default=list)
    active = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    parent_service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    category = db.relationship("Category", back_populates="services")
    parent = db.relationship("Service", remote_side=[service_id], back_populates="children")
    children = db.relationship(
        "Service",
        back_populates="parent",
        order_by="Service.display_order",
    )

    def to_dict(self, include_children: bool = False) -> dict[str, object]:
        data = {
            "id": self.service_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "short_description": self.short_description,
            "duration": self.duration_minutes,
            "price": _money(self.price),
            "category_id": self.category_id,
            "category": self.category.slug if self.category else None,
            "benefits": self.benefits or [],
            "conditions": self.conditions or [],
            "hero_image": self.hero_image,
            "card_image": self.card_image,
            "images": self.images or [],
            "active": bool(self.active),
            "order": self.display_order,
            "parent_service_id": self.parent_service_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_children:
            data["child_services"] = [child.to_dict() for child in self.children]
        return data


class WorkingHour(db.Model):
    """Opening hours for one weekday (0=Sunday ... 6=Saturday)."""

    __tablename__ = "working_hours"

    working_hour_id = db.Column(db.Integer, primary_key=True)
    day_of_week = db.Column(db.Integer, unique=True, nullable=False)
    is_open = db.Column(db.Boolean, nullable=False, default=True)
    open_time = db.Column(db.String(5), nullable=False)
    close_time = db.Column(db.String(5), nullable=False)
    break_start = db.Column(db.String(5))
    break_end = db.Column(db.String(5))
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        db.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="day"),
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.working_hour_id,
            "day_of_week": self.day_of_week,
            "is_open": bool(self.is_open),
            "open_time": self.open_time,
            "close_time": self.close_time,
            "break_start": self.break_start,
            "break_end": self.break_end,
        }


class BlockedDate(db.Model):
    """A day, or a window inside a day, closed for bookings."""

    __tablename__ = "blocked_dates"

    blocked_date_id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    reason = db.Column(db.String(255))
    all_day = db.Column(db.Boolean, nullable=False, default=True)
    start_time = db.Column(db.String(5))
    end_time = db.Column(db.String(5))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.blocked_date_id,
            "date": _iso(self.date),
            "reason": self.reason,
            "all_day": bool(self.all_day),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "created_at": _iso(self.created_at),
        }


class ContactInfo(db.Model):
    """Single row holding contact details and the booking buffer."""

    __tablename__ = "contact_info"

    contact_info_id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(30))
    email = db.Column(db.String(255))
    whatsapp = db.Column(db.String(30))
    address = db.Column(db.String(255))
    city = db.Column(db.String(100))
    zip_code = db.Column(db.String(20))
    instagram_url = db.Column(db.String(500))
    facebook_url = db.Column(db.String(500))
    maps_embed_url = db.Column(db.Text)
    buffer_minutes = db.Column(db.Integer, nullable=False, default=15)
    # Always true; the unique index keeps the table to one row
    singleton = db.Column(db.Boolean, nullable=False, default=True, server_default=true())
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        db.UniqueConstraint("singleton", name="uq_contact_info_singleton"),
        db.CheckConstraint("singleton", name="singleton"),
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.contact_info_id,
            "phone": self.phone,
            "email": self.email,
            "whatsapp": self.whatsapp,
            "address": self.address,
            "city": self.city,
            "zip_code": self.zip_code,
            "instagram_url": self.instagram_url,
            "facebook_url": self.facebook_url,
            "maps_embed_url": self.maps_embed_url,
            "buffer_minutes": self.buffer_minutes,
            "updated_at": _iso(self.updated_at),
        }


class Booking(db.Model):
    """Client appointment for one service on one date."""

    __tablename__ = "bookings"

    booking_id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    client_name = db.Column(db.String(150), nullable=False)
    client_email = db.Column(db.String(255), nullable=False)
    client_phone = db.Column(db.String(30), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)
    status = db.Column(
        db.Enum(*BOOKING_STATUSES, name="booking_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="PENDING",
        server_default="PENDING",
    )
    # Mirrors start_time while the booking occupies the calendar, NULL otherwise
    active_slot = db.Column(db.String(5), nullable=True)
    client_notes = db.Column(db.Text)
    admin_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        db.UniqueConstraint("date", "active_slot", name="uq_bookings_date_active_slot"),
    )

    service = db.relationship("Service")

    @property
    def occupies_slot(self) -> bool:
        return self.status in OCCUPYING_STATUSES

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.booking_id,
            "service_id": self.service_id,
            "service": {
                "id": self.service.service_id,
                "name": self.service.name,
                "duration": self.service.duration_minutes,
                "price": _money(self.service.price),
            } if self.service else None,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "date": _iso(self.date),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "status": self.status,
            "client_notes": self.client_notes,
            "admin_notes": self.admin_notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@event.listens_for(Booking, "before_insert")
def _claim_active_slot(mapper, connection, target: Booking) -> None:
    target.active_slot = target.start_time if target.occupies_slot else None


@event.listens_for(Booking, "before_update")
def _release_active_slot(mapper, connection, target: Booking) -> None:
    # Status changes may free the slot but never claim it back
    if not target.occupies_slot:
        target.active_slot = None


class Event(db.Model):
    """Workshop or retreat advertised on the events page."""

    __tablename__ = "events"

    event_id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(220), unique=True, nullable=False)
    short_description = db.Column(db.String(300))
    description = db.Column(db.Text)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime)
    location = db.Column(
        db.Enum(*EVENT_LOCATIONS, name="event_location", native_enum=False, validate_strings=True),
        nullable=False,
        default="Centro",
    )
    location_details = db.Column(db.String(255))
    event_type = db.Column(db.String(100))
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    is_free = db.Column(db.Boolean, nullable=False, default=False)
    max_places = db.Column(db.Integer)
    available_places = db.Column(db.Integer)
    hero_image = db.Column(db.String(500))
    images = db.Column(db.JSON, nullable=True, default=list)
    video_url = db.Column(db.String(500))
    includes = db.Column(db.JSON, nullable=True, default=list)
    what_to_bring = db.Column(db.JSON, nullable=True, default=list)
    requirements = db.Column(db.Text)
    whatsapp_number = db.Column(db.String(30))
    whatsapp_message = db.Column(db.Text)
    status = db.Column(
        db.Enum(*EVENT_STATUSES, name="event_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="UPCOMING",
    )
    active = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        images = sorted(self.images or [], key=lambda image: image.get("position", 0))
        return {
            "id": self.event_id,
            "title": self.title,
            "slug": self.slug,
            "short_description": self.short_description,
            "description": self.description,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "location": self.location,
            "location_details": self.location_details,
            "event_type": self.event_type,
            "price": _money(self.price),
            "is_free": bool(self.is_free),
            "max_places": self.max_places,
            "available_places": self.available_places,
            "hero_image": self.hero_image,
            "images": images,
            "video_url": self.video_url,
            "includes": self.includes or [],
            "what_to_bring": self.what_to_bring or [],
            "requirements": self.requirements,
            "whatsapp_number": self.whatsapp_number,
            "whatsapp_message": self.whatsapp_message,
            "status": self.status,
            "active": bool(self.active),
            "order": self.display_order,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ProductCategory(db.Model):
    __tablename__ = "product_categories"

    product_category_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text)
    icon = db.Column(db.String(20), nullable=False, default="📦")
    active = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    products = db.relationship("Product", back_populates="category", lazy="dynamic")

    def to_dict(self, include_count: bool = False) -> dict[str, object]:
        data = {
            "id": self.product_category_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "icon": self.icon,
            "active": bool(self.active),
            "order": self.display_order,
        }
        if include_count:
            data["product_count"] = self.products.count()
        return data


class Product(db.Model):
    __tablename__ = "products"

    product_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(220), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False)
    short_description = db.Column(db.String(300))
    base_price = db.Column(db.Numeric(10, 2), nullable=False)
    category_id = db.Column(
        db.Integer, db.ForeignKey("product_categories.product_category_id"), nullable=False
    )
    images = db.Column(db.JSON, nullable=False, default=list)
    track_stock = db.Column(db.Boolean, nullable=False, default=False)
    stock = db.Column(db.Integer, nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)
    featured = db.Column(db.Boolean, nullable=False, default=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    meta_title = db.Column(db.String(200))
    meta_description = db.Column(db.String(300))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    category = db.relationship("ProductCategory", back_populates="products")
    sales = db.relationship("Sale", back_populates="product", lazy="dynamic")

    @property
    def in_stock(self) -> bool:
        if not self.track_stock or self.stock is None:
            return True
        return self.stock > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.product_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "short_description": self.short_description,
            "base_price": _money(self.base_price),
            "category_id": self.category_id,
            "category": self.category.to_dict() if self.category else None,
            "images": self.images or [],
            "track_stock": bool(self.track_stock),
            "stock": self.stock,
            "in_stock": self.in_stock,
            "active": bool(self.active),
            "featured": bool(self.featured),
            "order": self.display_order,
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Sale(db.Model):
    """Purchase request for a product, closed by staff over WhatsApp."""

    __tablename__ = "sales"

    sale_id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.product_id"), nullable=False)
    client_name = db.Column(db.String(150), nullable=False)
    client_email = db.Column(db.String(255), nullable=False)
    client_phone = db.Column(db.String(30), nullable=False)
    client_notes = db.Column(db.Text)
    accepts_newsletter = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(
        db.Enum(*SALE_STATUSES, name="sale_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="PENDING",
    )
    final_price = db.Column(db.Numeric(10, 2), nullable=True)
    admin_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)
    completed_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)

    product = db.relationship("Product", back_populates="sales")

    @property
    def effective_price(self) -> Decimal | None:
        if self.final_price is not None:
            return self.final_price
        return self.product.base_price if self.product else None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.sale_id,
            "product_id": self.product_id,
            "product": {
                "id": self.product.product_id,
                "name": self.product.name,
                "slug": self.product.slug,
                "base_price": _money(self.product.base_price),
            } if self.product else None,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "client_notes": self.client_notes,
            "accepts_newsletter": bool(self.accepts_newsletter),
            "status": self.status,
            "final_price": _money(self.final_price),
            "effective_price": _money(self.effective_price),
            "admin_notes": self.admin_notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "completed_at": _iso(self.completed_at),
            "cancelled_at": _iso(self.cancelled_at),
        }


class Testimonial(db.Model):
    __tablename__ = "testimonials"

    testimonial_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255))
    service = db.Column(db.String(150))
    rating = db.Column(db.Integer, nullable=False)
    text = db.Column(db.Text, nullable=False)
    status = db.Column(
        db.Enum(*TESTIMONIAL_STATUSES, name="testimonial_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="PENDING",
    )
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        db.CheckConstraint("rating BETWEEN 1 AND 5", name="rating"),
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.testimonial_id,
            "name": self.name,
            "email": self.email,
            "service": self.service,
            "rating": self.rating,
            "text": self.text,
            "status": self.status,
            "order": self.display_order,
            "created_at": _iso(self.created_at),
        }


class NewsletterSubscriber(db.Model):
    __tablename__ = "newsletter_subscribers"

    subscriber_id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(150))
    source = db.Column(
        db.Enum(*NEWSLETTER_SOURCES, name="newsletter_source", native_enum=False, validate_strings=True),
        nullable=False,
        default="manual",
    )
    # Unsubscribing flips this flag, rows are kept
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.subscriber_id,
            "email": self.email,
            "name": self.name,
            "source": self.source,
            "active": bool(self.active),
            "created_at": _iso(self.created_at),
        }


class Redirect(db.Model):
    __tablename__ = "redirects"

    redirect_id = db.Column(db.Integer, primary_key=True)
    source = db.Column(db.String(500), unique=True, nullable=False)
    destination = db.Column(db.String(500), nullable=False)
    permanent = db.Column(db.Boolean, nullable=False, default=True)
    active = db.Column(db.Boolean, nullable=False, default=True)
    hits = db.Column(db.Integer, nullable=False, default=0)
    last_hit_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    @property
    def status_code(self) -> int:
        return 301 if self.permanent else 302

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.redirect_id,
            "source": self.source,
            "destination": self.destination,
            "permanent": bool(self.permanent),
            "status_code": self.status_code,
            "active": bool(self.active),
            "hits": self.hits,
            "last_hit_at": _iso(self.last_hit_at),
            "created_at": _iso(self.created_at),
        }


class SiteSection(db.Model):
    """Stored overrides for one editable block of the public site."""

    __tablename__ = "site_sections"

    section_id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(50), unique=True, nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class ContentSection(db.Model):
    """Free-form page text (legal pages, long copy) addressed by a section key."""

    __tablename__ = "content_sections"

    content_section_id = db.Column(db.Integer, primary_key=True)
    section = db.Column(db.String(100), unique=True, nullable=False)
    title = db.Column(db.String(200))
    subtitle = db.Column(db.String(300))
    content = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.content_section_id,
            "section": self.section,
            "title": self.title,
            "subtitle": self.subtitle,
            "content": self.content,
            "updated_at": _iso(self.updated_at),
        }


class Certification(db.Model):
    __tablename__ = "certifications"

    certification_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(500))
    issuer = db.Column(db.String(200))
    year = db.Column(db.Integer)
    active = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.certification_id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "issuer": self.issuer,
            "year": self.year,
            "active": bool(self.active),
            "order": self.display_order,
            "created_at": _iso(self.created_at),
        }
