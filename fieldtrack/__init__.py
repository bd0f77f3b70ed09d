"""
Field Operations Tracker
Flask Application Factory.

Usage:
    from fieldtrack import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from fieldtrack.auth import init_auth
from fieldtrack.config import config
from fieldtrack.core.exceptions import FieldtrackError
from fieldtrack.middleware.logging_config import configure_logging
from fieldtrack.middleware.rate_limiter import init_rate_limits
from fieldtrack.middleware.security_headers import init_security_headers
from fieldtrack.middleware.timing import init_request_timing
from fieldtrack.models import db

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


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
    default_limits=[],                     # no global limit; applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def _register_error_handlers(app):
    @app.errorhandler(FieldtrackError)
    def handle_service_error(exc):
        db.session.rollback()
        if exc.status_code >= 500:
            logger.error("Service error: %s", exc, exc_info=exc)
        else:
            logger.info("%s: %s", exc.kind, exc, extra={"status": exc.status_code})
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "NotFound", "message": "Not found", "details": {"path": request.path}}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "MethodNotAllowed", "message": "Method not allowed", "details": {}}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "PayloadTooLarge", "message": "Request body too large", "details": {}}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": "UnsupportedMediaType", "message": e.description, "details": {}}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "RateLimited", "message": str(e.description), "details": {}}, 429

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        original = getattr(e, "original_exception", None) or e
        logger.error("500 error: %s", original, exc_info=original)
        return {"error": "InternalError", "message": "Internal server error", "details": {}}, 500


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
    cfg = config[config_name]
    app.config.from_object(cfg() if config_name == "production" else cfg)
    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError as exc:
        app.logger.warning("Could not create instance folder %s: %s", app.instance_path, exc)

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

    # ── Caller identity (role, user id) ──────────────────────────────────
    init_auth(app)

    # ── Security headers (CSP, HSTS, X-Frame-Options, etc.) ─────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    @app.before_request
    def _guard_request():
        from flask import abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        # Mutations take JSON, or multipart when photos ride along
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct and "multipart/form-data" not in ct:
                abort(415, description="Content-Type must be application/json or multipart/form-data")
        return None

    # ── Import all models so Alembic can detect them ─────────────────────
    from fieldtrack.models import auth as _auth_models               # noqa: F401
    from fieldtrack.models import master_data as _master_data_models  # noqa: F401
    from fieldtrack.models import submission as _submission_models   # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ──
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from fieldtrack.blueprints.health_bp import health_bp
    from fieldtrack.blueprints.master_data_bp import master_data_bp
    from fieldtrack.blueprints.stats_bp import stats_bp
    from fieldtrack.blueprints.submission_bp import submission_bp
    from fieldtrack.blueprints.user_bp import user_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(master_data_bp)
    app.register_blueprint(submission_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(stats_bp)

    init_rate_limits(app, limiter)
    _register_error_handlers(app)

    # ── Uploaded evidence photos ─────────────────────────────────────────
    @app.route(f"{app.config['UPLOAD_URL_PREFIX']}/<path:name>")
    def uploaded_photo(name):
        return send_from_directory(app.config["UPLOAD_FOLDER"], name)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed the protected super-admin, demo users and one work order."""
        from fieldtrack.services.demo_seed import seed_demo_data
        counts = seed_demo_data()
        logger.info("Seeded demo data: %s", counts)

    return app
