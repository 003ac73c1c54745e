"""Blueprint registration and service health."""
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from .auth import auth_bp
from .issues import issues_bp
from .progress import progress_bp
from .reference import reference_bp
from .tenders import tenders_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/health", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("Health check database probe failed")
        db.session.rollback()
        return jsonify({"status": "degraded", "database": "unavailable"}), 503
    return jsonify({"status": "ok", "database": "ok"})


__all__ = ["main_bp", "auth_bp", "issues_bp", "progress_bp", "reference_bp", "tenders_bp"]
