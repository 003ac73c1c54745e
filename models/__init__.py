"""Core data models for identities, civic issues, tenders, and the assignment workflow."""
import uuid
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


def generate_uuid() -> str:
	return str(uuid.uuid4())


def _in_check(column: str, values: tuple[str, ...], nullable: bool = False) -> str:
	allowed = ",".join(f"'{value}'" for value in values)
	clause = f"{column} IN ({allowed})"
	return f"{column} IS NULL OR {clause}" if nullable else clause


USER_TYPES: tuple[str, ...] = (
	"user",
	"admin",
	"area_super_admin",
	"department_admin",
	"tender",
)

PRIVILEGED_USER_TYPES: tuple[str, ...] = (
	"admin",
	"area_super_admin",
	"department_admin",
)

SELF_SERVICE_USER_TYPES: tuple[str, ...] = (
	"user",
	"tender",
)

DEPARTMENT_CATEGORIES: tuple[str, ...] = (
	"public_works",
	"utilities",
	"environment",
	"safety",
	"parks",
	"administration",
)

WORKFLOW_STAGES: tuple[str, ...] = (
	"reported",
	"area_review",
	"department_assigned",
	"contractor_assigned",
	"in_progress",
	"department_review",
	"resolved",
)

ISSUE_STATUSES: tuple[str, ...] = (
	"pending",
	"acknowledged",
	"in_progress",
	"resolved",
	"closed",
)

ISSUE_PRIORITIES: tuple[str, ...] = (
	"low",
	"medium",
	"high",
	"urgent",
)

ISSUE_CATEGORIES: tuple[str, ...] = (
	"roads",
	"sanitation",
	"water",
	"electricity",
	"parks",
	"safety",
	"other",
)

VOTE_TYPES: tuple[str, ...] = (
	"upvote",
	"downvote",
)

TENDER_STATUSES: tuple[str, ...] = (
	"draft",
	"open",
	"closed",
	"awarded",
	"completed",
	"cancelled",
)

BID_STATUSES: tuple[str, ...] = (
	"submitted",
	"accepted",
	"rejected",
	"withdrawn",
)

ASSIGNMENT_TYPES: tuple[str, ...] = (
	"admin_to_area",
	"area_to_department",
	"department_to_contractor",
)

ASSIGNMENT_STATUSES: tuple[str, ...] = (
	"active",
	"completed",
	"reassigned",
	"cancelled",
)

PROGRESS_STATUSES: tuple[str, ...] = (
	"not_started",
	"in_progress",
	"completed",
	"on_hold",
	"cancelled",
)

RECOMMENDATIONS: tuple[str, ...] = (
	"accept",
	"reject",
	"request_clarification",
)


class TimestampMixin:
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(
		db.DateTime,
		default=datetime.utcnow,
		onupdate=datetime.utcnow,
		nullable=False,
	)


class Area(TimestampMixin, db.Model):
	__tablename__ = "areas"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	name = db.Column(db.String(255), nullable=False, index=True)
	code = db.Column(db.String(40), unique=True, nullable=False, index=True)
	description = db.Column(db.Text, nullable=True)
	state_id = db.Column(db.String(40), nullable=True)
	district_id = db.Column(db.String(40), nullable=True)
	boundaries = db.Column(db.JSON, nullable=True)
	population = db.Column(db.Integer, nullable=True)
	area_size_km2 = db.Column(db.Numeric(10, 2), nullable=True)
	is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

	profiles = db.relationship("Profile", back_populates="assigned_area", lazy="dynamic")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"code": self.code,
			"description": self.description,
			"state_id": self.state_id,
			"district_id": self.district_id,
			"boundaries": self.boundaries,
			"population": self.population,
			"area_size_km2": float(self.area_size_km2) if self.area_size_km2 is not None else None,
			"is_active": self.is_active,
		}


class Department(TimestampMixin, db.Model):
	__tablename__ = "departments"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	name = db.Column(db.String(255), nullable=False)
	code = db.Column(db.String(40), unique=True, nullable=False, index=True)
	category = db.Column(db.String(40), nullable=False, index=True)
	description = db.Column(db.Text, nullable=True)
	contact_email = db.Column(db.String(255), nullable=True)
	contact_phone = db.Column(db.String(50), nullable=True)
	office_address = db.Column(db.String(500), nullable=True)
	budget_allocation = db.Column(db.Numeric(15, 2), nullable=True)
	is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_in_check("category", DEPARTMENT_CATEGORIES), name="ck_department_category"),
	)

	profiles = db.relationship("Profile", back_populates="assigned_department", lazy="dynamic")
	tenders = db.relationship("Tender", back_populates="department", lazy="dynamic")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"code": self.code,
			"category": self.category,
			"description": self.description,
			"contact_email": self.contact_email,
			"contact_phone": self.contact_phone,
			"office_address": self.office_address,
			"budget_allocation": float(self.budget_allocation) if self.budget_allocation is not None else None,
			"is_active": self.is_active,
		}


class User(UserMixin, db.Model):
	"""Authentication identity. Its Profile is created alongside it."""

	__tablename__ = "users"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	password_hash = db.Column(db.String(255), nullable=False)
	raw_metadata = db.Column(db.JSON, nullable=True)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
	last_login_at = db.Column(db.DateTime, nullable=True)

	profile = db.relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
	audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic")

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		return check_password_hash(self.password_hash, password)

	@property
	def active(self) -> bool:  # Flask-Login compatibility alias
		return self.is_active


class Profile(TimestampMixin, db.Model):
	__tablename__ = "profiles"

	id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
	email = db.Column(db.String(255), nullable=True, index=True)
	user_type = db.Column(db.String(30), nullable=False, default="user", index=True)
	full_name = db.Column(db.String(150), nullable=False, default="")
	first_name = db.Column(db.String(100), nullable=False, default="")
	last_name = db.Column(db.String(100), nullable=False, default="")
	is_verified = db.Column(db.Boolean, nullable=False, default=False, index=True)
	assigned_area_id = db.Column(db.String(36), db.ForeignKey("areas.id", ondelete="SET NULL"), nullable=True, index=True)
	assigned_department_id = db.Column(
		db.String(36), db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
	)

	__table_args__ = (
		db.CheckConstraint(_in_check("user_type", USER_TYPES), name="ck_profile_user_type"),
	)

	user = db.relationship("User", back_populates="profile")
	assigned_area = db.relationship("Area", back_populates="profiles")
	assigned_department = db.relationship("Department", back_populates="profiles")

	@property
	def is_privileged(self) -> bool:
		return self.user_type in PRIVILEGED_USER_TYPES

	@property
	def is_admin(self) -> bool:
		return self.user_type == "admin"

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"email": self.email,
			"user_type": self.user_type,
			"full_name": self.full_name,
			"first_name": self.first_name,
			"last_name": self.last_name,
			"is_verified": self.is_verified,
			"assigned_area_id": self.assigned_area_id,
			"assigned_department_id": self.assigned_department_id,
		}


class AuditLog(db.Model):
	__tablename__ = "audit_logs"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	action_type = db.Column(db.String(50), nullable=False, index=True)
	ip_address = db.Column(db.String(64), nullable=True)
	user_agent = db.Column(db.String(255), nullable=True)
	context_entity = db.Column(db.String(120), nullable=True)
	timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	user = db.relationship("User", back_populates="audit_logs")


class Issue(TimestampMixin, db.Model):
	__tablename__ = "issues"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	reporter_id = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
	title = db.Column(db.String(255), nullable=False)
	description = db.Column(db.Text, nullable=False)
	category = db.Column(db.String(40), nullable=False, default="other", index=True)
	area = db.Column(db.String(255), nullable=True, index=True)
	location = db.Column(db.String(500), nullable=True)
	latitude = db.Column(db.Numeric(9, 6), nullable=True)
	longitude = db.Column(db.Numeric(9, 6), nullable=True)
	images = db.Column(db.JSON, nullable=False, default=list)
	priority = db.Column(db.String(20), nullable=False, default="medium", index=True)
	status = db.Column(db.String(20), nullable=False, default="pending", index=True)
	workflow_stage = db.Column(db.String(30), nullable=False, default="reported", index=True)
	assigned_area_id = db.Column(db.String(36), db.ForeignKey("areas.id", ondelete="SET NULL"), nullable=True, index=True)
	assigned_department_id = db.Column(
		db.String(36), db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
	)
	current_assignee_id = db.Column(
		db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True
	)
	upvotes = db.Column(db.Integer, nullable=False, default=0)
	downvotes = db.Column(db.Integer, nullable=False, default=0)

	__table_args__ = (
		db.CheckConstraint(_in_check("category", ISSUE_CATEGORIES), name="ck_issue_category"),
		db.CheckConstraint(_in_check("priority", ISSUE_PRIORITIES), name="ck_issue_priority"),
		db.CheckConstraint(_in_check("status", ISSUE_STATUSES), name="ck_issue_status"),
		db.CheckConstraint(_in_check("workflow_stage", WORKFLOW_STAGES), name="ck_issue_workflow_stage"),
		db.CheckConstraint("upvotes >= 0 AND downvotes >= 0", name="ck_issue_vote_counts"),
	)

	reporter = db.relationship("Profile", foreign_keys=[reporter_id])
	current_assignee = db.relationship("Profile", foreign_keys=[current_assignee_id])
	assigned_area = db.relationship("Area", foreign_keys=[assigned_area_id])
	assigned_department = db.relationship("Department", foreign_keys=[assigned_department_id])
	assignments = db.relationship(
		"IssueAssignment",
		back_populates="issue",
		order_by="IssueAssignment.created_at",
		cascade="all, delete-orphan",
	)
	votes = db.relationship("IssueVote", back_populates="issue", cascade="all, delete-orphan")
	progress_updates = db.relationship(
		"WorkProgress",
		back_populates="issue",
		order_by="WorkProgress.created_at",
		cascade="all, delete-orphan",
	)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"reporter_id": self.reporter_id,
			"title": self.title,
			"description": self.description,
			"category": self.category,
			"area": self.area,
			"location": self.location,
			"latitude": float(self.latitude) if self.latitude is not None else None,
			"longitude": float(self.longitude) if self.longitude is not None else None,
			"images": list(self.images or []),
			"priority": self.priority,
			"status": self.status,
			"workflow_stage": self.workflow_stage,
			"assigned_area_id": self.assigned_area_id,
			"assigned_department_id": self.assigned_department_id,
			"current_assignee_id": self.current_assignee_id,
			"upvotes": self.upvotes,
			"downvotes": self.downvotes,
			"created_at": self.created_at.isoformat() if self.created_at else None,
			"updated_at": self.updated_at.isoformat() if self.updated_at else None,
		}


class IssueVote(db.Model):
	__tablename__ = "issue_votes"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	issue_id = db.Column(db.String(36), db.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
	user_id = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
	vote_type = db.Column(db.String(10), nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.UniqueConstraint("issue_id", "user_id", name="uq_issue_vote_user"),
		db.CheckConstraint(_in_check("vote_type", VOTE_TYPES), name="ck_issue_vote_type"),
	)

	issue = db.relationship("Issue", back_populates="votes")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"issue_id": self.issue_id,
			"user_id": self.user_id,
			"vote_type": self.vote_type,
		}


class Tender(TimestampMixin, db.Model):
	__tablename__ = "tenders"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	title = db.Column(db.String(255), nullable=False)
	description = db.Column(db.Text, nullable=True)
	department_id = db.Column(db.String(36), db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True)
	source_issue_id = db.Column(db.String(36), db.ForeignKey("issues.id", ondelete="SET NULL"), nullable=True, index=True)
	created_by = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
	estimated_budget = db.Column(db.Numeric(15, 2), nullable=True)
	deadline = db.Column(db.DateTime, nullable=True)
	status = db.Column(db.String(20), nullable=False, default="open", index=True)
	awarded_to = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
	awarded_amount = db.Column(db.Numeric(15, 2), nullable=True)

	__table_args__ = (
		db.CheckConstraint(_in_check("status", TENDER_STATUSES), name="ck_tender_status"),
	)

	department = db.relationship("Department", back_populates="tenders")
	source_issue = db.relationship("Issue", foreign_keys=[source_issue_id])
	awarded_contractor = db.relationship("Profile", foreign_keys=[awarded_to])
	bids = db.relationship("Bid", back_populates="tender", cascade="all, delete-orphan", order_by="Bid.created_at")
	evaluations = db.relationship("TenderEvaluation", back_populates="tender", cascade="all, delete-orphan")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"title": self.title,
			"description": self.description,
			"department_id": self.department_id,
			"source_issue_id": self.source_issue_id,
			"created_by": self.created_by,
			"estimated_budget": float(self.estimated_budget) if self.estimated_budget is not None else None,
			"deadline": self.deadline.isoformat() if self.deadline else None,
			"status": self.status,
			"awarded_to": self.awarded_to,
			"awarded_amount": float(self.awarded_amount) if self.awarded_amount is not None else None,
		}


class Bid(db.Model):
	__tablename__ = "bids"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	tender_id = db.Column(db.String(36), db.ForeignKey("tenders.id", ondelete="CASCADE"), nullable=False, index=True)
	contractor_id = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
	amount = db.Column(db.Numeric(15, 2), nullable=False)
	proposal = db.Column(db.Text, nullable=True)
	timeline_days = db.Column(db.Integer, nullable=True)
	status = db.Column(db.String(20), nullable=False, default="submitted", index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.UniqueConstraint("tender_id", "contractor_id", name="uq_bid_tender_contractor"),
		db.CheckConstraint(_in_check("status", BID_STATUSES), name="ck_bid_status"),
		db.CheckConstraint("amount >= 0", name="ck_bid_amount"),
	)

	tender = db.relationship("Tender", back_populates="bids")
	contractor = db.relationship("Profile")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"tender_id": self.tender_id,
			"contractor_id": self.contractor_id,
			"amount": float(self.amount) if self.amount is not None else None,
			"proposal": self.proposal,
			"timeline_days": self.timeline_days,
			"status": self.status,
		}


class IssueAssignment(TimestampMixin, db.Model):
	__tablename__ = "issue_assignments"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	issue_id = db.Column(db.String(36), db.ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
	assigned_by = db.Column(db.String(36), db.ForeignKey("profiles.id"), nullable=False, index=True)
	assigned_to = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
	assigned_department_id = db.Column(db.String(36), db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
	assigned_area_id = db.Column(db.String(36), db.ForeignKey("areas.id", ondelete="SET NULL"), nullable=True)
	assignment_type = db.Column(db.String(40), nullable=False)
	assignment_notes = db.Column(db.Text, nullable=True)
	status = db.Column(db.String(20), nullable=False, default="active", index=True)
	due_date = db.Column(db.DateTime, nullable=True)
	completed_at = db.Column(db.DateTime, nullable=True)

	__table_args__ = (
		db.CheckConstraint(_in_check("assignment_type", ASSIGNMENT_TYPES), name="ck_assignment_type"),
		db.CheckConstraint(_in_check("status", ASSIGNMENT_STATUSES), name="ck_assignment_status"),
	)

	issue = db.relationship("Issue", back_populates="assignments")
	author = db.relationship("Profile", foreign_keys=[assigned_by])
	assignee = db.relationship("Profile", foreign_keys=[assigned_to])

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"issue_id": self.issue_id,
			"assigned_by": self.assigned_by,
			"assigned_to": self.assigned_to,
			"assigned_department_id": self.assigned_department_id,
			"assigned_area_id": self.assigned_area_id,
			"assignment_type": self.assignment_type,
			"assignment_notes": self.assignment_notes,
			"status": self.status,
			"due_date": self.due_date.isoformat() if self.due_date else None,
			"completed_at": self.completed_at.isoformat() if self.completed_at else None,
			"created_at": self.created_at.isoformat() if self.created_at else None,
		}


class WorkProgress(TimestampMixin, db.Model):
	__tablename__ = "work_progress"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	issue_id = db.Column(db.String(36), db.ForeignKey("issues.id", ondelete="CASCADE"), nullable=True, index=True)
	tender_id = db.Column(db.String(36), db.ForeignKey("tenders.id", ondelete="CASCADE"), nullable=True, index=True)
	contractor_id = db.Column(db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
	title = db.Column(db.String(255), nullable=False)
	description = db.Column(db.Text, nullable=False)
	progress_percentage = db.Column(db.Integer, nullable=False, default=0)
	status = db.Column(db.String(20), nullable=False, default="in_progress", index=True)
	images = db.Column(db.JSON, nullable=False, default=list)
	documents = db.Column(db.JSON, nullable=False, default=list)
	materials_used = db.Column(db.JSON, nullable=False, default=list)
	labor_hours = db.Column(db.Numeric(8, 2), nullable=True)
	expenses_incurred = db.Column(db.Numeric(15, 2), nullable=True)
	quality_rating = db.Column(db.Integer, nullable=True)
	supervisor_notes = db.Column(db.Text, nullable=True)
	contractor_notes = db.Column(db.Text, nullable=True)
	milestone_reached = db.Column(db.String(255), nullable=True)
	next_milestone = db.Column(db.String(255), nullable=True)
	estimated_completion_date = db.Column(db.Date, nullable=True)
	actual_completion_date = db.Column(db.Date, nullable=True)

	__table_args__ = (
		db.CheckConstraint(
			"progress_percentage >= 0 AND progress_percentage <= 100",
			name="ck_progress_percentage",
		),
		db.CheckConstraint(_in_check("status", PROGRESS_STATUSES), name="ck_progress_status"),
		db.CheckConstraint(
			"quality_rating IS NULL OR (quality_rating >= 1 AND quality_rating <= 5)",
			name="ck_progress_quality_rating",
		),
	)

	issue = db.relationship("Issue", back_populates="progress_updates")
	tender = db.relationship("Tender")
	contractor = db.relationship("Profile")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"issue_id": self.issue_id,
			"tender_id": self.tender_id,
			"contractor_id": self.contractor_id,
			"title": self.title,
			"description": self.description,
			"progress_percentage": self.progress_percentage,
			"status": self.status,
			"images": list(self.images or []),
			"documents": list(self.documents or []),
			"materials_used": list(self.materials_used or []),
			"labor_hours": float(self.labor_hours) if self.labor_hours is not None else 0.0,
			"expenses_incurred": float(self.expenses_incurred) if self.expenses_incurred is not None else 0.0,
			"quality_rating": self.quality_rating,
			"supervisor_notes": self.supervisor_notes,
			"contractor_notes": self.contractor_notes,
			"milestone_reached": self.milestone_reached,
			"next_milestone": self.next_milestone,
			"estimated_completion_date": self.estimated_completion_date.isoformat()
			if self.estimated_completion_date
			else None,
			"actual_completion_date": self.actual_completion_date.isoformat() if self.actual_completion_date else None,
			"created_at": self.created_at.isoformat() if self.created_at else None,
		}


class TenderEvaluation(TimestampMixin, db.Model):
	__tablename__ = "tender_evaluations"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	tender_id = db.Column(db.String(36), db.ForeignKey("tenders.id", ondelete="CASCADE"), nullable=False, index=True)
	bid_id = db.Column(db.String(36), db.ForeignKey("bids.id", ondelete="CASCADE"), nullable=False, index=True)
	evaluator_id = db.Column(db.String(36), db.ForeignKey("profiles.id"), nullable=False, index=True)
	technical_score = db.Column(db.Numeric(5, 2), nullable=True)
	financial_score = db.Column(db.Numeric(5, 2), nullable=True)
	experience_score = db.Column(db.Numeric(5, 2), nullable=True)
	timeline_score = db.Column(db.Numeric(5, 2), nullable=True)
	total_score = db.Column(db.Numeric(5, 2), nullable=True)
	evaluation_notes = db.Column(db.Text, nullable=True)
	recommendation = db.Column(db.String(30), nullable=True)

	__table_args__ = (
		db.UniqueConstraint("tender_id", "bid_id", "evaluator_id", name="uq_tender_evaluation_evaluator"),
		db.CheckConstraint(
			"technical_score IS NULL OR (technical_score >= 0 AND technical_score <= 100)",
			name="ck_evaluation_technical",
		),
		db.CheckConstraint(
			"financial_score IS NULL OR (financial_score >= 0 AND financial_score <= 100)",
			name="ck_evaluation_financial",
		),
		db.CheckConstraint(
			"experience_score IS NULL OR (experience_score >= 0 AND experience_score <= 100)",
			name="ck_evaluation_experience",
		),
		db.CheckConstraint(
			"timeline_score IS NULL OR (timeline_score >= 0 AND timeline_score <= 100)",
			name="ck_evaluation_timeline",
		),
		db.CheckConstraint(
			"total_score IS NULL OR (total_score >= 0 AND total_score <= 100)",
			name="ck_evaluation_total",
		),
		db.CheckConstraint(_in_check("recommendation", RECOMMENDATIONS, nullable=True), name="ck_evaluation_recommendation"),
	)

	tender = db.relationship("Tender", back_populates="evaluations")
	bid = db.relationship("Bid")
	evaluator = db.relationship("Profile")

	def to_dict(self) -> dict:
		def _score(value):
			return float(value) if value is not None else None

		return {
			"id": self.id,
			"tender_id": self.tender_id,
			"bid_id": self.bid_id,
			"evaluator_id": self.evaluator_id,
			"technical_score": _score(self.technical_score),
			"financial_score": _score(self.financial_score),
			"experience_score": _score(self.experience_score),
			"timeline_score": _score(self.timeline_score),
			"total_score": _score(self.total_score),
			"evaluation_notes": self.evaluation_notes,
			"recommendation": self.recommendation,
		}
