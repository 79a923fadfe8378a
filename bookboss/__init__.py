import logging
import os
import secrets
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, jsonify, send_from_directory
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate, upgrade
from werkzeug.routing import IntegerConverter

from .config import config_by_name
from .forms import MAX_INT
from .models import db

login_manager = LoginManager()

# In-memory storage; counters reset on process restart. Acceptable for
# single-worker deployments. For multi-worker setups use Redis storage.
limiter = Limiter(key_func=get_remote_address)
migrate = Migrate()
cors = CORS()


class BoundedIntegerConverter(IntegerConverter):
    """`<int:...>` segments beyond the database integer range do not match the route."""

    def __init__(self, map, fixed_digits=0, min=None, max=MAX_INT, signed=False):
        super().__init__(map, fixed_digits=fixed_digits, min=min, max=max, signed=signed)


def create_app(config_name=None):
    # Load .env so gunicorn (production) picks up env vars too
    from dotenv import load_dotenv

    load_dotenv(Path(__file__).resolve().parent.parent / ".env")

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.url_map.converters["int"] = BoundedIntegerConverter
    config_cls = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_cls)
    if hasattr(config_cls, "init_app"):
        config_cls.init_app(app)

    if app.config.get("TRUST_PROXY"):
        from werkzeug.middleware.proxy_fix import ProxyFix

        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    _configure_logging(app)

    Path(app.config["UPLOAD_STORAGE"]).mkdir(parents=True, exist_ok=True)

    # Init extensions
    db.init_app(app)
    login_manager.init_app(app)
    limiter.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(
        app,
        resources={
            r"/api/*": {
                "origins": app.config["CORS_ORIGINS"],
                "allow_headers": ["Content-Type", "Authorization"],
                "methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            }
        },
    )

    from .auth.tokens import is_authenticated, token_from_header
    from .models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.request_loader
    def load_user_from_request(request):
        identity = is_authenticated(token_from_header(request.headers.get("Authorization")))
        if identity is None:
            return None
        # Deleted users lose access even while their token is still valid
        return db.session.get(User, identity["user_id"])

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401

    # Register blueprints
    from .auth import auth_bp
    from .books import books_bp
    from .lending import lending_bp
    from .metadata import metadata_bp
    from .photos import photos_bp
    from .progress import progress_bp
    from .reading_lists import reading_lists_bp
    from .reading_sessions import reading_sessions_bp
    from .settings import settings_bp
    from .shelves import shelves_bp
    from .users import users_bp

    for blueprint in (
        auth_bp,
        books_bp,
        metadata_bp,
        shelves_bp,
        lending_bp,
        progress_bp,
        reading_sessions_bp,
        reading_lists_bp,
        photos_bp,
        users_bp,
        settings_bp,
    ):
        app.register_blueprint(blueprint, url_prefix="/api")

    # Register error handlers
    from .errors import register_error_handlers

    register_error_handlers(app)

    # Security headers
    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Covers and photos are public so <img> tags can load them without a token
    @app.route("/uploads/<path:filename>")
    @limiter.exempt
    def uploads(filename):
        return send_from_directory(app.config["UPLOAD_STORAGE"], filename, max_age=86400)

    from .metadata.jobs import RefreshJob

    app.metadata_refresh = RefreshJob()

    # Scheduler runs the metadata refresh in the background
    if app.config.get("SCHEDULER_ENABLED"):
        from .metadata.jobs import init_scheduler

        init_scheduler(app)

    # Health check endpoints
    @app.route("/ping")
    @limiter.exempt
    def ping():
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
        }, 200

    @app.route("/health")
    @limiter.exempt
    def health():
        result = {"timestamp": datetime.now(UTC).isoformat()}

        scheduler = getattr(app, "scheduler", None)
        if scheduler is not None:
            jobs = [
                {"id": job.id, "next_run": job.next_run_time.isoformat() if job.next_run_time else None}
                for job in scheduler.get_jobs()
            ]
            result["scheduler"] = {"running": scheduler.running, "jobs": jobs}
        else:
            result["scheduler"] = {"running": False, "reason": "disabled"}
        result["metadata_refresh"] = app.metadata_refresh.snapshot()

        # Check database connectivity
        try:
            db.session.execute(db.text("SELECT 1"))
            result["database"] = {"status": "ok"}
        except Exception:
            app.logger.exception("Health check database query failed.")
            result["database"] = {"status": "error", "error": "unavailable"}

        scheduler_ok = scheduler is None or scheduler.running
        db_ok = result["database"]["status"] == "ok"
        all_ok = scheduler_ok and db_ok
        result["status"] = "ok" if all_ok else "degraded"
        return result, 200 if all_ok else 503

    # Apply pending Alembic migrations and seed admin on first run
    with app.app_context():
        upgrade()

        _seed_admin_if_needed(app)

    return app


def _configure_logging(app):
    """Set up file-based logging with rotation for production."""
    if app.debug or app.testing:
        return

    log_dir = Path(app.root_path).parent / "logs"
    log_dir.mkdir(exist_ok=True)

    file_handler = RotatingFileHandler(
        log_dir / "bookboss.log",
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=5,
    )
    file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    file_handler.setLevel(logging.INFO)
    app.logger.addHandler(file_handler)
    app.logger.setLevel(logging.INFO)
    # Service modules log under bookboss.*; route them to the same file
    package_logger = logging.getLogger(__name__)
    package_logger.addHandler(file_handler)
    package_logger.setLevel(logging.INFO)


def _seed_admin_if_needed(app):
    from .models import User

    admin = User.query.filter_by(is_admin=True).first()
    if admin is None:
        admin_username = os.environ.get("ADMIN_USERNAME", "admin")
        admin_password = os.environ.get("ADMIN_PASSWORD")
        generated = False
        if not admin_password:
            admin_password = secrets.token_urlsafe(16)
            generated = True
        admin = User.query.filter_by(username=admin_username).first()
        if admin is None:
            admin = User(username=admin_username)
            db.session.add(admin)
        admin.is_admin = True
        admin.set_password(admin_password)
        db.session.commit()
        app.logger.info("Default admin account created: %s", admin_username)
        if generated:
            app.logger.warning(
                "ADMIN_PASSWORD not set -- a random password was generated. "
                "Set ADMIN_PASSWORD env var before deploying."
            )
            # Write to a file instead of stdout
            pw_file = Path(app.instance_path) / ".admin_password"
            pw_file.parent.mkdir(parents=True, exist_ok=True)
            pw_file.write_text(f"Username: {admin_username}\nPassword: {admin_password}\n")
            pw_file.chmod(0o600)
            app.logger.info("Generated admin credentials written to %s", pw_file)
