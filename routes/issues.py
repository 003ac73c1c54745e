"""Issue reporting, voting, triage, and assignment routes."""
from flask import Blueprint, jsonify, request
from wtforms import DateTimeField, DecimalField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from models import (
    ASSIGNMENT_TYPES,
    ISSUE_CATEGORIES,
    ISSUE_PRIORITIES,
    ISSUE_STATUSES,
    VOTE_TYPES,
    WORKFLOW_STAGES,
    Issue,
    IssueAssignment,
)
from utils.decorators import current_profile, profile_required
from utils.errors import ValidationError
from utils.forms import JsonForm, json_body, validate_form
from utils.policy import authorize
from utils.workflow import (
    assign_issue,
    cast_vote,
    create_issue,
    get_or_404,
    retract_vote,
    set_workflow_stage,
    validate_choice,
)

issues_bp = Blueprint("issues", __name__)


class IssueForm(JsonForm):
    title = StringField("Title", validators=[DataRequired(), Length(max=255)])
    description = TextAreaField("Description", validators=[DataRequired()])
    category = SelectField("Category", choices=[(c, c) for c in ISSUE_CATEGORIES], default="other")
    priority = SelectField("Priority", choices=[(p, p) for p in ISSUE_PRIORITIES], default="medium")
    area = StringField("Area", validators=[Optional(), Length(max=255)])
    location = StringField("Location", validators=[Optional(), Length(max=500)])
    latitude = DecimalField("Latitude", places=6, validators=[Optional(), NumberRange(min=-90, max=90)])
    longitude = DecimalField("Longitude", places=6, validators=[Optional(), NumberRange(min=-180, max=180)])


class VoteForm(JsonForm):
    vote_type = SelectField("Vote", choices=[(v, v) for v in VOTE_TYPES], validators=[DataRequired()])


class AssignmentForm(JsonForm):
    assignment_type = SelectField(
        "Assignment Type", choices=[(a, a) for a in ASSIGNMENT_TYPES], validators=[DataRequired()]
    )
    assigned_to = StringField("Assignee", validators=[Optional(), Length(max=36)])
    department_id = StringField("Department", validators=[Optional(), Length(max=36)])
    area_id = StringField("Area", validators=[Optional(), Length(max=36)])
    notes = TextAreaField("Notes", validators=[Optional()])
    due_date = DateTimeField("Due", format=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"], validators=[Optional()])


class StageForm(JsonForm):
    workflow_stage = SelectField("Stage", choices=[(s, s) for s in WORKFLOW_STAGES], validators=[DataRequired()])


def _image_urls(payload) -> list:
    images = payload.get("images") or []
    if not isinstance(images, list) or not all(isinstance(url, str) for url in images):
        raise ValidationError("images must be a list of URLs", details={"field": "images"})
    return [url.strip() for url in images if url.strip()]


@issues_bp.route("/issues", methods=["POST"])
@profile_required
def report_issue():
    form = validate_form(IssueForm())
    issue = create_issue(
        current_profile(),
        title=form.title.data,
        description=form.description.data,
        category=form.category.data or "other",
        priority=form.priority.data or "medium",
        area=form.area.data,
        location=form.location.data,
        latitude=form.latitude.data,
        longitude=form.longitude.data,
        images=_image_urls(json_body()),
    )
    return jsonify(issue.to_dict()), 201


@issues_bp.route("/issues", methods=["GET"])
@profile_required
def list_issues():
    authorize(current_profile(), "issue", "read")
    query = Issue.query
    status = request.args.get("status")
    if status:
        query = query.filter(Issue.status == validate_choice(status, ISSUE_STATUSES, "status"))
    area = request.args.get("area")
    if area:
        query = query.filter(Issue.area == area)
    limit = max(1, min(request.args.get("limit", 50, type=int) or 50, 200))
    issues = query.order_by(Issue.created_at.desc()).limit(limit).all()
    return jsonify([issue.to_dict() for issue in issues])


@issues_bp.route("/issues/<issue_id>", methods=["GET"])
@profile_required
def get_issue(issue_id):
    issue = get_or_404(Issue, issue_id, label="Issue")
    authorize(current_profile(), "issue", "read", issue)
    return jsonify(issue.to_dict())


@issues_bp.route("/issues/<issue_id>/votes", methods=["POST"])
@profile_required
def vote(issue_id):
    issue = get_or_404(Issue, issue_id, label="Issue")
    form = validate_form(VoteForm())
    cast = cast_vote(issue, current_profile(), form.vote_type.data)
    return jsonify({"vote": cast.to_dict(), "issue": issue.to_dict()})


@issues_bp.route("/issues/<issue_id>/votes", methods=["DELETE"])
@profile_required
def unvote(issue_id):
    issue = get_or_404(Issue, issue_id, label="Issue")
    removed = retract_vote(issue, current_profile())
    return jsonify({"removed": removed, "issue": issue.to_dict()})


@issues_bp.route("/issues/<issue_id>/assignments", methods=["POST"])
@profile_required
def create_assignment(issue_id):
    issue = get_or_404(Issue, issue_id, label="Issue")
    form = validate_form(AssignmentForm())
    assignment = assign_issue(
        issue,
        current_profile(),
        form.assignment_type.data,
        assigned_to=form.assigned_to.data,
        department_id=form.department_id.data,
        area_id=form.area_id.data,
        notes=form.notes.data,
        due_date=form.due_date.data,
    )
    return jsonify({"assignment": assignment.to_dict(), "issue": issue.to_dict()}), 201


@issues_bp.route("/issues/<issue_id>/assignments", methods=["GET"])
@profile_required
def list_assignments(issue_id):
    """Full assignment history; participants without a privileged role use /assignments/mine."""
    issue = get_or_404(Issue, issue_id, label="Issue")
    authorize(current_profile(), "issue", "list_assignments", issue)
    return jsonify([assignment.to_dict() for assignment in issue.assignments])


@issues_bp.route("/issues/<issue_id>/stage", methods=["PATCH"])
@profile_required
def update_stage(issue_id):
    issue = get_or_404(Issue, issue_id, label="Issue")
    form = validate_form(StageForm())
    set_workflow_stage(issue, form.workflow_stage.data, current_profile())
    return jsonify(issue.to_dict())


@issues_bp.route("/assignments/mine", methods=["GET"])
@profile_required
def my_assignments():
    profile = current_profile()
    query = IssueAssignment.query.filter(
        (IssueAssignment.assigned_to == profile.id) | (IssueAssignment.assigned_by == profile.id)
    )
    status = request.args.get("status")
    if status:
        query = query.filter(IssueAssignment.status == status)
    rows = query.order_by(IssueAssignment.created_at.desc()).all()
    return jsonify([row.to_dict() for row in rows])
