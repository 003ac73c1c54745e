"""Flask application factory for the civic issue workflow service."""
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from extensions import csrf, db, login_manager, migrate
from utils.errors import CivicError
from utils.logger import init_logging
from utils.security import apply_security_headers


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CivicError)
    def civic_error(error: CivicError):
        db.session.rollback()
        log = app.logger.warning if error.status_code < 500 else app.logger.error
        log(
            error.message,
            extra={"path": request.path, "method": request.method, "error": error.error_code},
        )
        return jsonify(error.to_payload()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        app.logger.warning(
            f"{error.code} {error.name}", extra={"path": request.path, "method": request.method}
        )
        payload = {"error": error.name.lower().replace(" ", "_"), "message": error.description}
        return jsonify(payload), error.code

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.exception("500 Internal Server Error")
        return jsonify({"error": "internal_server_error", "message": "Unexpected server error"}), 500


def ensure_default_admin(app: Flask) -> None:
    """Create or promote the configured admin identity so a fresh deployment can be administered."""
    from models import Profile, User  # Local import to avoid circular dependency

    admin_email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").lower().strip()
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        return

    admin_user = User.query.filter_by(email=admin_email).first()
    if admin_user is None:
        admin_user = User(email=admin_email, raw_metadata={"full_name": "System Administrator"}, is_active=True)
        admin_user.set_password(admin_password)
        db.session.add(admin_user)
        db.session.flush()

    profile = admin_user.profile
    if profile is None:
        profile = Profile(id=admin_user.id, email=admin_email, full_name="System Administrator")
        db.session.add(profile)
    if profile.user_type != "admin" or not profile.is_verified or not admin_user.is_active:
        profile.user_type = "admin"
        profile.is_verified = True
        admin_user.is_active = True
    db.session.commit()


def ensure_database_exists(database_uri: str) -> None:
    """Create the target database if it does not exist (PostgreSQL + SQLite support)."""
    url = make_url(database_uri)

    if url.drivername.startswith("sqlite"):
        if url.database and url.database != ":memory:":
            os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        return

    if url.drivername.startswith("postgres"):
        db_name = url.database
        admin_url = url.set(database=os.getenv("POSTGRES_DB_ADMIN", "postgres"))
        engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")
        try:
            with engine.connect() as conn:
                exists = conn.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": db_name}
                ).scalar()
                if not exists:
                    conn.execute(text(f'CREATE DATABASE "{db_name}"'))
        except OperationalError as exc:
            logging.getLogger(__name__).warning("Could not verify database %s: %s", db_name, exc)
        finally:
            engine.dispose()


def create_app(config_name: Optional[str] = None, overrides: Optional[dict] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())
    if config_class is not TestingConfig:
        app.config.from_pyfile("config.py", silent=True)
    if overrides:
        app.config.update(overrides)

    ensure_database_exists(app.config["SQLALCHEMY_DATABASE_URI"])
    os.makedirs(app.instance_path, exist_ok=True)
    os.makedirs(app.config["PROGRESS_STAGING_FOLDER"], exist_ok=True)

    logger = init_logging(app)
    app.logger = logger

    csrf.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.session_protection = "strong"

    @login_manager.user_loader
    def load_user(user_id):
        from models import User  # Local import to avoid circular dependency

        if not user_id:
            return None
        return db.session.get(User, str(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        app.logger.info("Unauthenticated request", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "unauthorized", "message": "Authentication required"}), 401

    from routes import auth_bp, issues_bp, main_bp, progress_bp, reference_bp, tenders_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    for blueprint in (reference_bp, issues_bp, tenders_bp, progress_bp):
        app.register_blueprint(blueprint, url_prefix="/api")
    # JSON clients authenticate with the session cookie; browser form posts do not exist here.
    for blueprint in (auth_bp, reference_bp, issues_bp, tenders_bp, progress_bp):
        csrf.exempt(blueprint)

    @app.cli.command("seed-reference-data")
    def seed_reference_data_command():
        """Insert the sample areas and departments (idempotent)."""
        from utils.reference_data import seed_reference_data

        areas_added, departments_added = seed_reference_data()
        print(f"Seeded {areas_added} area(s) and {departments_added} department(s).")

    register_error_handlers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    with app.app_context():
        db.create_all()
        ensure_default_admin(app)

    return app
