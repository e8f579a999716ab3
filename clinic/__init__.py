from __future__ import annotations

from collections.abc import Mapping

from flask import Flask, jsonify, redirect, request
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config)
    if isinstance(config_object, Mapping):
        app.config.from_mapping(config_object)
    elif config_object:
        app.config.from_object(config_object)
    else:
        app.config.from_envvar("APP_SETTINGS", silent=True)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)

    # Allow the dashboard and public site to talk to the backend
    origins = [origin.strip() for origin in str(app.config["CORS_ORIGINS"]).split(",") if origin.strip()]
    CORS(app,
         resources={r"/api/*": {"origins": origins or ["*"]}},
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    )

    register_routes(app)
    register_error_handlers(app)
    register_redirects(app)

    return app


def register_routes(app: Flask) -> None:
    from .routes import bp
    from .routes_extended import bp_ext

    app.register_blueprint(bp)
    app.register_blueprint(bp_ext)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def not_found(_exc):
        return jsonify({"error": "not_found", "message": "resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_exc):
        return jsonify({"error": "method_not_allowed", "message": "method not allowed"}), 405

    @app.errorhandler(Exception)
    def unexpected_error(exc):
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.name.lower().replace(" ", "_"), "message": exc.description}), exc.code
        app.logger.exception("Unhandled error on %s %s", request.method, request.path, exc_info=exc)
        return jsonify({"error": "internal_error", "message": "unexpected server error"}), 500


def register_redirects(app: Flask) -> None:
    """Answer GET requests for managed legacy paths with their redirect."""

    from .routes_extended import follow_redirect

    @app.before_request
    def apply_redirect():
        if request.method != "GET" or request.path.startswith("/api/"):
            return None
        if request.path in {"/health", "/db-health"}:
            return None
        try:
            rule = follow_redirect(request.path)
            if rule is None:
                return None
        except SQLAlchemyError as exc:
            db.session.rollback()
            app.logger.exception("Failed to apply redirect for %s", request.path, exc_info=exc)
            return None
        return redirect(rule.destination, code=rule.status_code)
