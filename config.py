"""Environment-aware configuration for the civic workflow service."""
import os
from datetime import timedelta


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class BaseConfig:
    def __init__(self) -> None:
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        db_url = os.getenv("DATABASE_URL")
        # Placeholder hosts (e.g. db_host from a sample .env) fall back to SQLite for local dev.
        if db_url and "db_host" not in db_url:
            self.SQLALCHEMY_DATABASE_URI = db_url
        else:
            self.SQLALCHEMY_DATABASE_URI = os.getenv(
                "SQLITE_URL",
                f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'civic.db')}",
            )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        if not self.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            self.SQLALCHEMY_ENGINE_OPTIONS = {
                "pool_size": int(os.getenv("DB_POOL_SIZE", 10)),
                "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 20)),
                "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", 30)),
                "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
                "pool_pre_ping": True,
            }
        self.SESSION_COOKIE_HTTPONLY = True
        self.REMEMBER_COOKIE_HTTPONLY = True
        self.SESSION_COOKIE_SAMESITE = "Lax"
        self.PERMANENT_SESSION_LIFETIME = timedelta(days=30)
        self.REMEMBER_COOKIE_DURATION = timedelta(days=30)
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.WTF_CSRF_TIME_LIMIT = 3600
        self.WTF_CSRF_ENABLED = True
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "")
        self.DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "")
        self.MIN_PASSWORD_LENGTH = int(os.getenv("MIN_PASSWORD_LENGTH", 8))

        # Media hosting for progress photos. "http" posts to a hosted upload endpoint,
        # "local" copies files under MEDIA_LOCAL_ROOT and serves them from MEDIA_PUBLIC_BASE_URL.
        self.MEDIA_STORE_BACKEND = os.getenv("MEDIA_STORE_BACKEND", "local").lower()
        self.MEDIA_UPLOAD_URL = os.getenv("MEDIA_UPLOAD_URL", "")
        self.MEDIA_UPLOAD_PRESET = os.getenv("MEDIA_UPLOAD_PRESET", "")
        self.MEDIA_UPLOAD_FOLDER = os.getenv("MEDIA_UPLOAD_FOLDER", "work-progress")
        self.MEDIA_UPLOAD_TIMEOUT = _float_env("MEDIA_UPLOAD_TIMEOUT", 30.0)
        self.MEDIA_UPLOAD_MAX_WORKERS = int(os.getenv("MEDIA_UPLOAD_MAX_WORKERS", 4))
        self.MEDIA_LOCAL_ROOT = os.getenv(
            "MEDIA_LOCAL_ROOT",
            os.path.join(os.getcwd(), "instance", "media"),
        )
        self.MEDIA_PUBLIC_BASE_URL = os.getenv("MEDIA_PUBLIC_BASE_URL", "/media")
        self.PROGRESS_STAGING_FOLDER = os.getenv(
            "PROGRESS_STAGING_FOLDER",
            os.path.join(os.getcwd(), "instance", "progress_staging"),
        )
        self.MAX_IMAGE_UPLOAD_BYTES = int(os.getenv("MAX_IMAGE_UPLOAD_BYTES", 8 * 1024 * 1024))
        self.MAX_CONTENT_LENGTH = int(os.getenv("MAX_REQUEST_BYTES", 48 * 1024 * 1024))
        self.MAX_PROGRESS_IMAGES = int(os.getenv("MAX_PROGRESS_IMAGES", 10))

        self.TENDER_SCORE_WEIGHTS = {
            "technical_score": _float_env("TENDER_WEIGHT_TECHNICAL", 0.4),
            "financial_score": _float_env("TENDER_WEIGHT_FINANCIAL", 0.3),
            "experience_score": _float_env("TENDER_WEIGHT_EXPERIENCE", 0.2),
            "timeline_score": _float_env("TENDER_WEIGHT_TIMELINE", 0.1),
        }
        self.DASHBOARD_RECENT_PROGRESS = int(os.getenv("DASHBOARD_RECENT_PROGRESS", 10))


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"
        self.SESSION_COOKIE_SECURE = False
        self.REMEMBER_COOKIE_SECURE = False


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.ENV = "production"
        self.SESSION_COOKIE_SECURE = True
        self.REMEMBER_COOKIE_SECURE = True


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.TESTING = True
        self.DEBUG = False
        self.ENV = "testing"
        self.SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite://")
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.WTF_CSRF_ENABLED = False
        self.SESSION_COOKIE_SECURE = False
        self.REMEMBER_COOKIE_SECURE = False
        self.PREFERRED_URL_SCHEME = "http"
        self.MEDIA_STORE_BACKEND = "local"
        self.DEFAULT_ADMIN_EMAIL = ""
        self.DEFAULT_ADMIN_PASSWORD = ""
