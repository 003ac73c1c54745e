"""Issue workflow engine: each write path performs its derived updates in the same transaction.

Operations here replace the database triggers of the hosted backend:

* new issue -> area review, with best-effort auto-assignment to the area's admin
* tender awarded -> source issue handed to the contractor plus an assignment row
* vote insert/delete/change -> issue counters, floored at zero
* identity registration -> profile bootstrap

Derived updates that match nothing are logged no-ops; they never fail the primary write.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from flask import current_app, has_request_context, request
from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import (
    ASSIGNMENT_TYPES,
    ISSUE_CATEGORIES,
    ISSUE_PRIORITIES,
    SELF_SERVICE_USER_TYPES,
    TENDER_STATUSES,
    VOTE_TYPES,
    WORKFLOW_STAGES,
    Area,
    AuditLog,
    Bid,
    Department,
    Issue,
    IssueAssignment,
    IssueVote,
    Profile,
    Tender,
    User,
)
from utils.errors import NotFoundError, PersistenceError, ValidationError
from utils.policy import authorize

TENDER_AWARD_NOTE = "Tender awarded - contractor assigned"

STAGE_FOR_ASSIGNMENT: Dict[str, str] = {
    "admin_to_area": "area_review",
    "area_to_department": "department_assigned",
    "department_to_contractor": "contractor_assigned",
}


def get_or_404(model, record_id: Any, label: Optional[str] = None):
    record = db.session.get(model, str(record_id)) if record_id else None
    if record is None:
        raise NotFoundError(f"{label or model.__name__} not found", details={"id": record_id})
    return record


def validate_choice(value: Any, allowed: Iterable[str], field: str) -> str:
    allowed = tuple(allowed)
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field}",
            details={"field": field, "value": value, "allowed": list(allowed)},
        )
    return value


def require_text(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required", details={"field": field})
    return cleaned


def parse_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    """Parse user-entered numbers; anything unparseable becomes ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    if not parsed.is_finite():
        return default
    return parsed


def audit(action: str, actor: Optional[Profile], context: Optional[str] = None) -> None:
    entry = AuditLog(
        user_id=actor.id if actor else None,
        action_type=action,
        ip_address=request.remote_addr if has_request_context() else None,
        user_agent=request.headers.get("User-Agent", "unknown") if has_request_context() else "system",
        context_entity=context,
    )
    db.session.add(entry)


def commit_or_raise(operation: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        message = str(getattr(exc, "orig", None) or exc)
        current_app.logger.warning(
            "Persistence rejected", extra={"operation": operation, "error": message}
        )
        raise PersistenceError(message, details={"operation": operation}) from exc


# ---------------------------------------------------------------------------
# Issue creation and triage
# ---------------------------------------------------------------------------


def resolve_area_assignment(area_name: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Return (area_id, area admin profile id) for an area name; first match wins, either may be None."""
    if not area_name:
        return None, None
    area_id = (
        db.session.query(Area.id)
        .filter(Area.name == area_name, Area.is_active.is_(True))
        .limit(1)
        .scalar()
    )
    assignee_id = (
        db.session.query(Profile.id)
        .join(Area, Profile.assigned_area_id == Area.id)
        .filter(
            Area.name == area_name,
            Profile.user_type == "area_super_admin",
            Profile.is_verified.is_(True),
        )
        .limit(1)
        .scalar()
    )
    return area_id, assignee_id


def create_issue(
    reporter: Profile,
    *,
    title: str,
    description: str,
    category: str = "other",
    area: Optional[str] = None,
    location: Optional[str] = None,
    latitude: Any = None,
    longitude: Any = None,
    images: Optional[list] = None,
    priority: str = "medium",
) -> Issue:
    authorize(reporter, "issue", "create")
    title = require_text(title, "title")
    description = require_text(description, "description")
    validate_choice(category, ISSUE_CATEGORIES, "category")
    validate_choice(priority, ISSUE_PRIORITIES, "priority")
    area_name = (area or "").strip() or None

    area_id, assignee_id = resolve_area_assignment(area_name)

    issue = Issue(
        reporter_id=reporter.id,
        title=title,
        description=description,
        category=category,
        area=area_name,
        location=(location or "").strip() or None,
        latitude=latitude,
        longitude=longitude,
        images=[url for url in (images or []) if url],
        priority=priority,
        status="pending",
        workflow_stage="area_review",
        assigned_area_id=area_id,
        current_assignee_id=assignee_id,
        upvotes=0,
        downvotes=0,
    )
    db.session.add(issue)
    audit("ISSUE_CREATED", reporter, context=f"area:{area_name}" if area_name else None)
    commit_or_raise("create_issue")

    if area_name and not assignee_id:
        current_app.logger.info(
            "Issue left pending manual triage",
            extra={"issue_id": issue.id, "area": area_name, "area_matched": bool(area_id)},
        )
    else:
        current_app.logger.info(
            "Issue created",
            extra={"issue_id": issue.id, "assigned_area_id": area_id, "current_assignee_id": assignee_id},
        )
    return issue


def assign_issue(
    issue: Issue,
    actor: Profile,
    assignment_type: str,
    *,
    assigned_to: Optional[str] = None,
    department_id: Optional[str] = None,
    area_id: Optional[str] = None,
    notes: Optional[str] = None,
    due_date: Optional[datetime] = None,
) -> IssueAssignment:
    """Hand an issue to the next actor, superseding its active assignments."""
    validate_choice(assignment_type, ASSIGNMENT_TYPES, "assignment_type")
    assignment = IssueAssignment(
        issue_id=issue.id,
        assigned_by=actor.id,
        assigned_to=assigned_to or None,
        assigned_department_id=department_id or None,
        assigned_area_id=area_id or None,
        assignment_type=assignment_type,
        assignment_notes=(notes or "").strip() or None,
        status="active",
        due_date=due_date,
    )
    authorize(actor, "issue_assignment", "create", assignment)

    if assignment_type == "admin_to_area" and not area_id:
        raise ValidationError("area_id is required for admin_to_area", details={"field": "area_id"})
    if assignment_type == "area_to_department" and not department_id:
        raise ValidationError("department_id is required for area_to_department", details={"field": "department_id"})
    if assignment_type == "department_to_contractor" and not assigned_to:
        raise ValidationError("assigned_to is required for department_to_contractor", details={"field": "assigned_to"})
    if area_id:
        get_or_404(Area, area_id)
    if department_id:
        get_or_404(Department, department_id)
    if assigned_to:
        get_or_404(Profile, assigned_to, label="Assignee")

    for previous in issue.assignments:
        if previous.status == "active":
            previous.status = "reassigned"

    db.session.add(assignment)
    issue.workflow_stage = STAGE_FOR_ASSIGNMENT[assignment_type]
    if area_id:
        issue.assigned_area_id = area_id
    if department_id:
        issue.assigned_department_id = department_id
    if assigned_to:
        issue.current_assignee_id = assigned_to
    audit("ISSUE_ASSIGNED", actor, context=f"{assignment_type}:{issue.id}")
    commit_or_raise("assign_issue")
    current_app.logger.info(
        "Issue reassigned",
        extra={
            "issue_id": issue.id,
            "assignment_type": assignment_type,
            "assigned_to": assigned_to,
            "workflow_stage": issue.workflow_stage,
        },
    )
    return assignment


def set_workflow_stage(issue: Issue, stage: str, actor: Profile) -> Issue:
    authorize(actor, "issue", "update_stage", issue)
    validate_choice(stage, WORKFLOW_STAGES, "workflow_stage")
    previous = issue.workflow_stage
    if previous in WORKFLOW_STAGES and WORKFLOW_STAGES.index(stage) < WORKFLOW_STAGES.index(previous):
        current_app.logger.warning(
            "Workflow stage moved backwards",
            extra={"issue_id": issue.id, "from": previous, "to": stage, "actor": actor.id},
        )
    issue.workflow_stage = stage
    if stage == "in_progress":
        issue.status = "in_progress"
    if stage == "resolved":
        issue.status = "resolved"
        now = datetime.utcnow()
        for assignment in issue.assignments:
            if assignment.status == "active":
                assignment.status = "completed"
                assignment.completed_at = now
    audit("ISSUE_STAGE_CHANGED", actor, context=f"{previous}->{stage}")
    commit_or_raise("set_workflow_stage")
    return issue


# ---------------------------------------------------------------------------
# Tender award propagation
# ---------------------------------------------------------------------------


def _propagate_award(previous_status: Optional[str], tender: Tender, actor: Profile) -> Optional[IssueAssignment]:
    """Hand the tender's source issue to the awarded contractor on a transition into 'awarded'."""
    if tender.status != "awarded" or previous_status == "awarded":
        return None
    if not tender.source_issue_id:
        current_app.logger.info("Awarded tender has no source issue", extra={"tender_id": tender.id})
        return None
    issue = db.session.get(Issue, tender.source_issue_id)
    if issue is None:
        current_app.logger.info(
            "Awarded tender's source issue no longer exists",
            extra={"tender_id": tender.id, "issue_id": tender.source_issue_id},
        )
        return None

    issue.workflow_stage = "contractor_assigned"
    issue.status = "in_progress"
    issue.current_assignee_id = tender.awarded_to
    issue.updated_at = datetime.utcnow()

    assignment = IssueAssignment(
        issue_id=issue.id,
        assigned_by=actor.id,
        assigned_to=tender.awarded_to,
        assignment_type="department_to_contractor",
        assignment_notes=TENDER_AWARD_NOTE,
        status="active",
    )
    db.session.add(assignment)
    return assignment


def update_tender_status(
    tender: Tender,
    new_status: str,
    actor: Profile,
    *,
    awarded_to: Optional[str] = None,
    awarded_amount: Any = None,
) -> Optional[IssueAssignment]:
    """Save a tender status change; returns the assignment created by an award, if any."""
    authorize(actor, "tender", "award" if new_status == "awarded" else "update", tender)
    validate_choice(new_status, TENDER_STATUSES, "status")
    previous_status = tender.status

    if new_status == "awarded" and previous_status == "awarded":
        # Already awarded: only an identical re-save is accepted.
        if awarded_to and awarded_to != tender.awarded_to:
            raise ValidationError("Tender is already awarded to another contractor", details={"field": "awarded_to"})
        if awarded_amount is not None and parse_decimal(awarded_amount, default=None) != tender.awarded_amount:
            raise ValidationError("Awarded amount cannot change after award", details={"field": "awarded_amount"})
    elif new_status == "awarded":
        contractor_id = awarded_to or tender.awarded_to
        if not contractor_id:
            raise ValidationError("awarded_to is required to award a tender", details={"field": "awarded_to"})
        contractor = get_or_404(Profile, contractor_id, label="Contractor")
        tender.awarded_to = contractor.id
        if awarded_amount is not None:
            tender.awarded_amount = parse_decimal(awarded_amount)

    tender.status = new_status
    assignment = _propagate_award(previous_status, tender, actor)
    audit("TENDER_STATUS_CHANGED", actor, context=f"{tender.id}:{previous_status}->{new_status}")
    commit_or_raise("update_tender_status")
    if assignment is not None:
        current_app.logger.info(
            "Tender award propagated to issue",
            extra={"tender_id": tender.id, "issue_id": tender.source_issue_id, "contractor_id": tender.awarded_to},
        )
    return assignment


def create_tender(
    actor: Profile,
    *,
    title: str,
    description: Optional[str] = None,
    department_id: Optional[str] = None,
    source_issue_id: Optional[str] = None,
    estimated_budget: Any = None,
    deadline: Optional[datetime] = None,
    status: str = "open",
) -> Tender:
    authorize(actor, "tender", "create")
    title = require_text(title, "title")
    if status not in ("draft", "open"):
        raise ValidationError("New tenders start as draft or open", details={"field": "status", "value": status})
    if department_id:
        get_or_404(Department, department_id)
    if source_issue_id:
        get_or_404(Issue, source_issue_id, label="Issue")
    tender = Tender(
        title=title,
        description=(description or "").strip() or None,
        department_id=department_id or None,
        source_issue_id=source_issue_id or None,
        created_by=actor.id,
        estimated_budget=parse_decimal(estimated_budget, default=None),
        deadline=deadline,
        status=status,
    )
    db.session.add(tender)
    audit("TENDER_CREATED", actor, context=f"issue:{source_issue_id}" if source_issue_id else None)
    commit_or_raise("create_tender")
    current_app.logger.info("Tender created", extra={"tender_id": tender.id, "source_issue_id": source_issue_id})
    return tender


def submit_bid(
    tender: Tender,
    contractor: Profile,
    *,
    amount: Any,
    proposal: Optional[str] = None,
    timeline_days: Optional[int] = None,
) -> Bid:
    bid = Bid(tender_id=tender.id, contractor_id=contractor.id, status="submitted")
    authorize(contractor, "bid", "create", bid)
    if tender.status != "open":
        raise ValidationError("Tender is not open for bids", details={"tender_status": tender.status})
    parsed = parse_decimal(amount, default=None)
    if parsed is None or parsed < 0:
        raise ValidationError("Bid amount must be a non-negative number", details={"field": "amount"})
    bid.amount = parsed
    bid.proposal = (proposal or "").strip() or None
    bid.timeline_days = timeline_days
    db.session.add(bid)
    audit("BID_SUBMITTED", contractor, context=f"tender:{tender.id}")
    commit_or_raise("submit_bid")
    return bid


def award_bid(bid: Bid, actor: Profile) -> Optional[IssueAssignment]:
    tender = bid.tender
    authorize(actor, "tender", "award", tender)
    if tender.status == "awarded":
        raise ValidationError("Tender has already been awarded", details={"tender_id": tender.id})
    if tender.status in ("cancelled", "completed"):
        raise ValidationError(f"Cannot award a {tender.status} tender", details={"tender_id": tender.id})
    if bid.status != "submitted":
        raise ValidationError("Only submitted bids can be awarded", details={"bid_status": bid.status})

    previous_status = tender.status
    for other in tender.bids:
        if other.id != bid.id and other.status == "submitted":
            other.status = "rejected"
    bid.status = "accepted"
    tender.awarded_to = bid.contractor_id
    tender.awarded_amount = bid.amount
    tender.status = "awarded"
    assignment = _propagate_award(previous_status, tender, actor)
    audit("BID_AWARDED", actor, context=f"{tender.id}:{bid.id}")
    commit_or_raise("award_bid")
    current_app.logger.info(
        "Bid awarded",
        extra={"tender_id": tender.id, "bid_id": bid.id, "propagated": assignment is not None},
    )
    return assignment


# ---------------------------------------------------------------------------
# Vote counters
# ---------------------------------------------------------------------------


def _counter(vote_type: str):
    return Issue.upvotes if vote_type == "upvote" else Issue.downvotes


def _apply_vote_delta(issue_id: str, *, increment: Optional[str] = None, decrement: Optional[str] = None) -> int:
    """Adjust counters in one UPDATE; decrements are floored at zero."""
    values = {}
    if decrement:
        column = _counter(decrement)
        values[column] = case((column > 0, column - 1), else_=0)
    if increment:
        column = _counter(increment)
        values[column] = column + 1
    if not values:
        return 0
    result = db.session.execute(
        update(Issue)
        .where(Issue.id == issue_id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def cast_vote(issue: Issue, voter: Profile, vote_type: str) -> IssueVote:
    authorize(voter, "issue", "vote", issue)
    validate_choice(vote_type, VOTE_TYPES, "vote_type")
    existing = IssueVote.query.filter_by(issue_id=issue.id, user_id=voter.id).first()
    if existing and existing.vote_type == vote_type:
        return existing

    if existing:
        previous = existing.vote_type
        existing.vote_type = vote_type
        vote = existing
        db.session.flush()
        _apply_vote_delta(issue.id, increment=vote_type, decrement=previous)
    else:
        vote = IssueVote(issue_id=issue.id, user_id=voter.id, vote_type=vote_type)
        db.session.add(vote)
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            raise PersistenceError(str(exc.orig), details={"operation": "cast_vote"}) from exc
        _apply_vote_delta(issue.id, increment=vote_type)
    commit_or_raise("cast_vote")
    db.session.refresh(issue)
    return vote


def retract_vote(issue: Issue, voter: Profile) -> bool:
    authorize(voter, "issue", "vote", issue)
    existing = IssueVote.query.filter_by(issue_id=issue.id, user_id=voter.id).first()
    if existing is None:
        return False
    vote_type = existing.vote_type
    db.session.delete(existing)
    db.session.flush()
    _apply_vote_delta(issue.id, decrement=vote_type)
    commit_or_raise("retract_vote")
    db.session.refresh(issue)
    return True


# ---------------------------------------------------------------------------
# Identity registration
# ---------------------------------------------------------------------------


def bootstrap_profile(user: User) -> Profile:
    """Create the profile for a new identity. Runs without a policy check: the caller has no profile yet."""
    metadata = user.raw_metadata or {}
    requested_type = metadata.get("user_type")
    user_type = requested_type if requested_type in SELF_SERVICE_USER_TYPES else "user"
    profile = Profile(
        id=user.id,
        email=user.email,
        user_type=user_type,
        full_name=str(metadata.get("full_name") or ""),
        first_name=str(metadata.get("first_name") or ""),
        last_name=str(metadata.get("last_name") or ""),
        is_verified=False,
    )
    db.session.add(profile)
    return profile


def register_identity(email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> User:
    email = require_text(email, "email").lower()
    if not password:
        raise ValidationError("Password is required", details={"field": "password"})
    if User.query.filter_by(email=email).first():
        raise ValidationError("An account with this email already exists", details={"field": "email"})

    user = User(email=email, raw_metadata=dict(metadata or {}), is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    profile = bootstrap_profile(user)
    db.session.flush()
    audit("REGISTER", profile, context=f"user_type:{profile.user_type}")
    commit_or_raise("register_identity")
    current_app.logger.info("Identity registered", extra={"user_id": user.id, "user_type": profile.user_type})
    return user
