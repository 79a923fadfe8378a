import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
STORAGE_DIR = BASE_DIR / "uploads"

_DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000,http://localhost:8080"


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY") or os.urandom(32).hex()
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'bookboss.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 50 * 1024 * 1024  # 50 MB
    MAX_IMAGE_FILE_SIZE = int(os.environ.get("MAX_IMAGE_FILE_SIZE_MB", "10")) * 1024 * 1024

    # Blob storage for covers and photos, served under /uploads
    UPLOAD_STORAGE = os.environ.get("UPLOAD_STORAGE", str(STORAGE_DIR))

    # Bearer tokens
    AUTH_TOKEN_MAX_AGE = int(os.environ.get("AUTH_TOKEN_MAX_AGE_SECONDS", str(24 * 3600)))

    # Registration gate used when the allow_registration setting is unset
    REGISTRATION_ENABLED = os.environ.get("REGISTRATION_ENABLED", "true").lower() == "true"
    TRUST_PROXY = os.environ.get("TRUST_PROXY", "false").lower() == "true"

    # Frontend origins allowed to call the API
    CORS_ORIGINS = [
        origin.strip() for origin in os.environ.get("CORS_ORIGINS", _DEFAULT_CORS_ORIGINS).split(",") if origin.strip()
    ]

    # Audit trail
    AUDIT_DETAIL_MAX_LENGTH = int(os.environ.get("AUDIT_DETAIL_MAX_LENGTH", "2000"))

    # Rate limiting
    RATELIMIT_DEFAULT = os.environ.get("RATELIMIT_DEFAULT", "200 per hour")
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")

    # External metadata providers
    GOOGLE_BOOKS_API_KEY = os.environ.get("GOOGLE_BOOKS_API_KEY", "")
    METADATA_REQUEST_TIMEOUT = int(os.environ.get("METADATA_REQUEST_TIMEOUT_SECONDS", "10"))

    # Scheduler (runs the metadata refresh job in the background)
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "true").lower() == "true"


class DevelopmentConfig(Config):
    DEBUG = True

    @classmethod
    def init_app(cls, app):
        if not os.environ.get("SECRET_KEY"):
            app.logger.warning("SECRET_KEY not set, using an ephemeral key. Issued tokens will not survive restarts.")


class ProductionConfig(Config):
    DEBUG = False
    TRUST_PROXY = os.environ.get("TRUST_PROXY", "true").lower() == "true"

    @classmethod
    def init_app(cls, app):
        secret_key = os.environ.get("SECRET_KEY", "").strip()
        if not secret_key:
            raise RuntimeError("SECRET_KEY environment variable must be set in production")
        if len(secret_key) < 32:
            raise RuntimeError(
                "SECRET_KEY is too short for production (minimum 32 characters). "
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        lowered_secret = secret_key.lower()
        weak_markers = ("changeme", "change-this", "replace", "secret", "example", "default")
        if any(marker in lowered_secret for marker in weak_markers):
            raise RuntimeError(
                "SECRET_KEY appears to be a placeholder and is not allowed in production. "
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )

        # The metadata refresh job and its status live in this process; a second
        # worker would not see them and could start a concurrent refresh.
        web_concurrency = os.environ.get("WEB_CONCURRENCY")
        if web_concurrency:
            try:
                worker_count = int(web_concurrency)
            except ValueError as exc:
                raise RuntimeError("WEB_CONCURRENCY must be an integer when set.") from exc
            if worker_count <= 0:
                raise RuntimeError("WEB_CONCURRENCY must be at least 1 when set.")
        else:
            worker_count = 1

        if worker_count > 1:
            raise RuntimeError(
                f"WEB_CONCURRENCY is set to {web_concurrency} but this application "
                "requires a single worker (in-process scheduler + in-memory rate limiting). "
                "Set WEB_CONCURRENCY=1 or remove it."
            )


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    SECRET_KEY = "testing-secret-key"
    GOOGLE_BOOKS_API_KEY = ""


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
