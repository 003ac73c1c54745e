"""Contractor work-progress submission, review, and dashboard routes."""
from flask import Blueprint, current_app, jsonify, request
from wtforms import IntegerField, TextAreaField
from wtforms.validators import NumberRange, Optional

from models import PRIVILEGED_USER_TYPES, WorkProgress
from utils.contractor_dashboard import contractor_dashboard
from utils.decorators import current_profile, profile_required, user_types_required
from utils.errors import ValidationError
from utils.forms import JsonForm, json_body, validate_form
from utils.image_utils import discard_staged, stage_uploads
from utils.progress_flow import INITIAL_FORM, ProgressSubmission, annotate_progress, list_work_progress
from utils.workflow import get_or_404

progress_bp = Blueprint("progress", __name__)


class AnnotationForm(JsonForm):
    supervisor_notes = TextAreaField("Supervisor Notes", validators=[Optional()])
    quality_rating = IntegerField("Quality Rating", validators=[Optional(), NumberRange(min=1, max=5)])


def _submitted_fields() -> tuple[dict, dict]:
    """Split the request body into (form fields, target ids) for JSON and multipart bodies alike."""
    if request.is_json:
        body = json_body()
        fields = {key: body[key] for key in INITIAL_FORM if key in body}
        return fields, {"issue_id": body.get("issue_id"), "tender_id": body.get("tender_id")}

    form = request.form
    fields = {key: form.get(key) for key in INITIAL_FORM if key in form}
    if "materials_used" in form:
        fields["materials_used"] = form.getlist("materials_used")
    return fields, {"issue_id": form.get("issue_id"), "tender_id": form.get("tender_id")}


@progress_bp.route("/work-progress", methods=["POST"])
@user_types_required("tender", *PRIVILEGED_USER_TYPES)
def submit_progress():
    fields, targets = _submitted_fields()
    files = [f for f in request.files.getlist("images") if f and f.filename]
    max_images = current_app.config.get("MAX_PROGRESS_IMAGES", 10)
    if len(files) > max_images:
        raise ValidationError(f"At most {max_images} images per update", details={"field": "images"})

    submission = ProgressSubmission(current_profile(), **targets)
    submission.update(**fields)
    # Reject a blank form before any file touches the disk.
    submission.validate()
    try:
        staged = stage_uploads(
            files,
            current_app.config["PROGRESS_STAGING_FOLDER"],
            max_bytes=current_app.config["MAX_IMAGE_UPLOAD_BYTES"],
        )
    except ValueError as exc:
        raise ValidationError(str(exc), details={"field": "images"}) from exc

    try:
        submission.attach_images(staged, labels=[f.filename for f in files])
        record = submission.submit()
    finally:
        discard_staged(staged)

    return (
        jsonify(
            {
                "progress": record.to_dict(),
                "warnings": [warning.to_payload() for warning in submission.warnings],
            }
        ),
        201,
    )


@progress_bp.route("/work-progress", methods=["GET"])
@profile_required
def list_progress():
    rows = list_work_progress(
        current_profile(),
        contractor_id=request.args.get("contractor_id"),
        issue_id=request.args.get("issue_id"),
        tender_id=request.args.get("tender_id"),
        limit=request.args.get("limit", 50, type=int) or 50,
    )
    return jsonify([row.to_dict() for row in rows])


@progress_bp.route("/work-progress/<progress_id>/annotation", methods=["PATCH"])
@profile_required
def annotate(progress_id):
    progress = get_or_404(WorkProgress, progress_id, label="Work progress")
    form = validate_form(AnnotationForm())
    body = json_body()
    annotate_progress(
        progress,
        current_profile(),
        supervisor_notes=form.supervisor_notes.data if "supervisor_notes" in body else None,
        quality_rating=form.quality_rating.data,
    )
    return jsonify(progress.to_dict())


@progress_bp.route("/contractor/dashboard", methods=["GET"])
@user_types_required("tender")
def dashboard():
    return jsonify(contractor_dashboard(current_profile()))
