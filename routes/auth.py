"""Authentication blueprint: identity registration, session login, and the caller's profile."""
from datetime import datetime, timedelta

from flask import Blueprint, current_app, jsonify, session
from flask_login import current_user, login_required, login_user, logout_user
from wtforms import BooleanField, PasswordField, SelectField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional

from extensions import db
from models import SELF_SERVICE_USER_TYPES, User
from utils.decorators import current_profile
from utils.errors import AuthorizationError, ValidationError
from utils.forms import JsonForm, validate_form
from utils.security import password_meets_policy
from utils.workflow import audit, register_identity

auth_bp = Blueprint("auth", __name__)


class RegistrationForm(JsonForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    full_name = StringField("Full Name", validators=[Optional(), Length(max=150)])
    first_name = StringField("First Name", validators=[Optional(), Length(max=100)])
    last_name = StringField("Last Name", validators=[Optional(), Length(max=100)])
    # Anything outside the self-service types is coerced to "user" when the profile is created.
    user_type = SelectField(
        "Account Type",
        choices=[(value, value) for value in SELF_SERVICE_USER_TYPES],
        default="user",
        validate_choice=False,
    )


class LoginForm(JsonForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember me")


@auth_bp.route("/register", methods=["POST"])
def register():
    form = validate_form(RegistrationForm())
    password_ok, reason = password_meets_policy(
        form.password.data, min_length=current_app.config.get("MIN_PASSWORD_LENGTH", 8)
    )
    if not password_ok:
        raise ValidationError(reason, details={"field": "password"})

    metadata = {
        "full_name": (form.full_name.data or "").strip(),
        "first_name": (form.first_name.data or "").strip(),
        "last_name": (form.last_name.data or "").strip(),
        "user_type": form.user_type.data or "user",
    }
    user = register_identity(form.email.data.strip(), form.password.data, metadata)
    return jsonify({"user_id": user.id, "profile": user.profile.to_dict()}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    form = validate_form(LoginForm())
    user = User.query.filter_by(email=form.email.data.lower().strip()).first()
    if not user or not user.check_password(form.password.data):
        audit("LOGIN_FAILED", user.profile if user else None, context=form.email.data.lower().strip()[:120])
        db.session.commit()
        current_app.logger.warning("Failed login", extra={"email": form.email.data.lower().strip()})
        return jsonify({"error": "invalid_credentials", "message": "Invalid credentials provided."}), 401

    if not user.is_active:
        raise AuthorizationError("Your account is inactive. Please contact support.")

    login_user(user, remember=bool(form.remember_me.data), duration=timedelta(days=30))
    session.permanent = True
    user.last_login_at = datetime.utcnow()
    audit("LOGIN", user.profile)
    db.session.commit()
    return jsonify({"user_id": user.id, "profile": user.profile.to_dict() if user.profile else None})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    profile = current_profile()
    logout_user()
    session.clear()
    audit("LOGOUT", profile)
    db.session.commit()
    return jsonify({"status": "logged_out"})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    profile = current_profile()
    return jsonify(
        {
            "user_id": current_user.id,
            "email": current_user.email,
            "profile": profile.to_dict() if profile else None,
        }
    )
