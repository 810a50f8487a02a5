"""
Governance Checklist API
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to APP_ENV, else "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from app.config import config
from app.models import db
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.timing import init_request_timing

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, applied per blueprint
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig validates required env vars in __init__
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    @app.before_request
    def _guard_request():
        from flask import abort
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.content_length and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import audit as _audit_models             # noqa: F401
    from app.models import governance as _governance_models   # noqa: F401
    from app.models import project as _project_models         # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        if app.config.get("SQLALCHEMY_DATABASE_URI", "").startswith("sqlite:///") and \
                ":memory:" not in app.config["SQLALCHEMY_DATABASE_URI"]:
            os.makedirs(app.instance_path, exist_ok=True)
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.checklist_bp import checklist_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.project_bp import project_bp
    from app.blueprints.template_bp import template_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(template_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(checklist_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
