"""Areas, departments, and admin profile management."""
from flask import Blueprint, current_app, jsonify
from wtforms import BooleanField, DecimalField, IntegerField, SelectField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from extensions import db
from models import DEPARTMENT_CATEGORIES, USER_TYPES, Area, Department, Profile
from utils.decorators import current_profile, profile_required
from utils.forms import JsonForm, provided, validate_form
from utils.policy import authorize, is_allowed
from utils.workflow import audit, commit_or_raise, get_or_404, validate_choice

reference_bp = Blueprint("reference", __name__)


class AreaForm(JsonForm):
    name = StringField("Name", validators=[DataRequired(), Length(max=255)])
    code = StringField("Code", validators=[DataRequired(), Length(max=40)])
    description = StringField("Description", validators=[Optional()])
    state_id = StringField("State", validators=[Optional(), Length(max=40)])
    district_id = StringField("District", validators=[Optional(), Length(max=40)])
    population = IntegerField("Population", validators=[Optional(), NumberRange(min=0)])
    area_size_km2 = DecimalField("Area (km2)", validators=[Optional(), NumberRange(min=0)])
    is_active = BooleanField("Active", default=True)


class AreaUpdateForm(AreaForm):
    name = StringField("Name", validators=[Optional(), Length(max=255)])
    code = StringField("Code", validators=[Optional(), Length(max=40)])


class DepartmentForm(JsonForm):
    name = StringField("Name", validators=[DataRequired(), Length(max=255)])
    code = StringField("Code", validators=[DataRequired(), Length(max=40)])
    category = SelectField("Category", choices=[(c, c) for c in DEPARTMENT_CATEGORIES], validators=[DataRequired()])
    description = StringField("Description", validators=[Optional()])
    contact_email = StringField("Contact Email", validators=[Optional(), Length(max=255)])
    contact_phone = StringField("Contact Phone", validators=[Optional(), Length(max=50)])
    office_address = StringField("Office Address", validators=[Optional(), Length(max=500)])
    budget_allocation = DecimalField("Budget", validators=[Optional(), NumberRange(min=0)])
    is_active = BooleanField("Active", default=True)


class DepartmentUpdateForm(DepartmentForm):
    name = StringField("Name", validators=[Optional(), Length(max=255)])
    code = StringField("Code", validators=[Optional(), Length(max=40)])
    category = SelectField(
        "Category", choices=[(c, c) for c in DEPARTMENT_CATEGORIES], validators=[Optional()], validate_choice=False
    )


class ProfileUpdateForm(JsonForm):
    user_type = SelectField(
        "User Type", choices=[(t, t) for t in USER_TYPES], validators=[Optional()], validate_choice=False
    )
    assigned_area_id = StringField("Area", validators=[Optional(), Length(max=36)])
    assigned_department_id = StringField("Department", validators=[Optional(), Length(max=36)])
    is_verified = BooleanField("Verified")
    full_name = StringField("Full Name", validators=[Optional(), Length(max=150)])


def _apply(record, changes: dict) -> None:
    columns = record.__table__.columns
    for key, value in changes.items():
        if isinstance(value, str):
            value = value.strip()
            if not value and columns[key].nullable:
                value = None
        setattr(record, key, value)


def _list_reference(model, resource: str):
    caller = current_profile()
    rows = model.query.order_by(model.name).all()
    return jsonify([row.to_dict() for row in rows if is_allowed(caller, resource, "read", row)])


def _create_reference(model, form, resource: str):
    caller = current_profile()
    authorize(caller, resource, "create")
    form = validate_form(form)
    values = {field.name: field.data for field in form}
    if "is_active" not in provided(form):
        values["is_active"] = True
    record = model()
    _apply(record, values)
    record.code = record.code.upper()
    db.session.add(record)
    audit(f"{resource.upper()}_CREATED", caller, context=record.code)
    commit_or_raise(f"create_{resource}")
    current_app.logger.info(f"{model.__name__} created", extra={"id": record.id, "code": record.code})
    return jsonify(record.to_dict()), 201


def _update_reference(model, record_id: str, form, resource: str):
    caller = current_profile()
    record = get_or_404(model, record_id)
    authorize(caller, resource, "update", record)
    changes = provided(validate_form(form))
    if "category" in changes:
        validate_choice(changes["category"], DEPARTMENT_CATEGORIES, "category")
    if changes.get("code"):
        changes["code"] = changes["code"].strip().upper()
    _apply(record, changes)
    audit(f"{resource.upper()}_UPDATED", caller, context=record.code)
    commit_or_raise(f"update_{resource}")
    return jsonify(record.to_dict())


@reference_bp.route("/areas", methods=["GET"])
@profile_required
def list_areas():
    return _list_reference(Area, "area")


@reference_bp.route("/areas", methods=["POST"])
@profile_required
def create_area():
    return _create_reference(Area, AreaForm(), "area")


@reference_bp.route("/areas/<area_id>", methods=["PATCH"])
@profile_required
def update_area(area_id):
    return _update_reference(Area, area_id, AreaUpdateForm(), "area")


@reference_bp.route("/departments", methods=["GET"])
@profile_required
def list_departments():
    return _list_reference(Department, "department")


@reference_bp.route("/departments", methods=["POST"])
@profile_required
def create_department():
    return _create_reference(Department, DepartmentForm(), "department")


@reference_bp.route("/departments/<department_id>", methods=["PATCH"])
@profile_required
def update_department(department_id):
    return _update_reference(Department, department_id, DepartmentUpdateForm(), "department")


@reference_bp.route("/profiles/<profile_id>", methods=["GET"])
@profile_required
def get_profile(profile_id):
    profile = get_or_404(Profile, profile_id, label="Profile")
    authorize(current_profile(), "profile", "read", profile)
    return jsonify(profile.to_dict())


@reference_bp.route("/profiles/<profile_id>", methods=["PATCH"])
@profile_required
def update_profile(profile_id):
    """Admin-only: role, area/department binding, verification."""
    caller = current_profile()
    profile = get_or_404(Profile, profile_id, label="Profile")
    authorize(caller, "profile", "update", profile)
    changes = provided(validate_form(ProfileUpdateForm()))
    if "user_type" in changes:
        validate_choice(changes["user_type"], USER_TYPES, "user_type")
    if changes.get("assigned_area_id"):
        get_or_404(Area, changes["assigned_area_id"])
    if changes.get("assigned_department_id"):
        get_or_404(Department, changes["assigned_department_id"])
    if "is_verified" in changes:
        changes["is_verified"] = bool(changes["is_verified"])
    _apply(profile, changes)
    audit("PROFILE_UPDATED", caller, context=f"profile:{profile.id}")
    commit_or_raise("update_profile")
    current_app.logger.info(
        "Profile updated", extra={"profile_id": profile.id, "fields": sorted(changes), "actor": caller.id}
    )
    return jsonify(profile.to_dict())
