"""Tender lifecycle: publication, bidding, award, and evaluation."""
from flask import Blueprint, jsonify, request
from wtforms import DateTimeField, DecimalField, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional

from models import RECOMMENDATIONS, TENDER_STATUSES, Bid, Tender, TenderEvaluation
from utils.decorators import current_profile, profile_required
from utils.evaluations import SCORE_FIELDS, submit_evaluation, update_evaluation
from utils.forms import JsonForm, json_body, validate_form
from utils.policy import authorize
from utils.workflow import award_bid, create_tender, get_or_404, submit_bid, update_tender_status, validate_choice

tenders_bp = Blueprint("tenders", __name__)


class TenderForm(JsonForm):
    title = StringField("Title", validators=[DataRequired(), Length(max=255)])
    description = TextAreaField("Description", validators=[Optional()])
    department_id = StringField("Department", validators=[Optional(), Length(max=36)])
    source_issue_id = StringField("Source Issue", validators=[Optional(), Length(max=36)])
    estimated_budget = DecimalField("Estimated Budget", validators=[Optional(), NumberRange(min=0)])
    deadline = DateTimeField("Deadline", format=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"], validators=[Optional()])
    status = SelectField("Status", choices=[("open", "open"), ("draft", "draft")], default="open")


class TenderStatusForm(JsonForm):
    status = SelectField("Status", choices=[(s, s) for s in TENDER_STATUSES], validators=[DataRequired()])
    awarded_to = StringField("Awarded To", validators=[Optional(), Length(max=36)])
    awarded_amount = DecimalField("Awarded Amount", validators=[Optional(), NumberRange(min=0)])


class BidForm(JsonForm):
    amount = DecimalField("Amount", validators=[InputRequired(), NumberRange(min=0)])
    proposal = TextAreaField("Proposal", validators=[Optional()])
    timeline_days = IntegerField("Timeline (days)", validators=[Optional(), NumberRange(min=1)])


class EvaluationForm(JsonForm):
    bid_id = StringField("Bid", validators=[DataRequired(), Length(max=36)])
    recommendation = StringField("Recommendation", validators=[Optional()])
    notes = TextAreaField("Notes", validators=[Optional()])


def _scores(payload) -> dict:
    return {field: payload[field] for field in SCORE_FIELDS if field in payload}


def _recommendation(value):
    return validate_choice(value, RECOMMENDATIONS, "recommendation") if value else None


@tenders_bp.route("/tenders", methods=["GET"])
@profile_required
def list_tenders():
    authorize(current_profile(), "tender", "read")
    query = Tender.query
    status = request.args.get("status")
    if status:
        query = query.filter(Tender.status == validate_choice(status, TENDER_STATUSES, "status"))
    return jsonify([tender.to_dict() for tender in query.order_by(Tender.created_at.desc()).all()])


@tenders_bp.route("/tenders", methods=["POST"])
@profile_required
def publish_tender():
    form = validate_form(TenderForm())
    tender = create_tender(
        current_profile(),
        title=form.title.data,
        description=form.description.data,
        department_id=form.department_id.data,
        source_issue_id=form.source_issue_id.data,
        estimated_budget=form.estimated_budget.data,
        deadline=form.deadline.data,
        status=form.status.data or "open",
    )
    return jsonify(tender.to_dict()), 201


@tenders_bp.route("/tenders/<tender_id>/status", methods=["PATCH"])
@profile_required
def change_tender_status(tender_id):
    tender = get_or_404(Tender, tender_id, label="Tender")
    form = validate_form(TenderStatusForm())
    assignment = update_tender_status(
        tender,
        form.status.data,
        current_profile(),
        awarded_to=form.awarded_to.data,
        awarded_amount=form.awarded_amount.data,
    )
    return jsonify(
        {
            "tender": tender.to_dict(),
            "assignment": assignment.to_dict() if assignment is not None else None,
        }
    )


@tenders_bp.route("/tenders/<tender_id>/bids", methods=["POST"])
@profile_required
def place_bid(tender_id):
    tender = get_or_404(Tender, tender_id, label="Tender")
    form = validate_form(BidForm())
    bid = submit_bid(
        tender,
        current_profile(),
        amount=form.amount.data,
        proposal=form.proposal.data,
        timeline_days=form.timeline_days.data,
    )
    return jsonify(bid.to_dict()), 201


@tenders_bp.route("/tenders/<tender_id>/bids", methods=["GET"])
@profile_required
def list_bids(tender_id):
    tender = get_or_404(Tender, tender_id, label="Tender")
    authorize(current_profile(), "tender", "update", tender)
    return jsonify([bid.to_dict() for bid in tender.bids])


@tenders_bp.route("/bids/<bid_id>/award", methods=["POST"])
@profile_required
def award(bid_id):
    bid = get_or_404(Bid, bid_id, label="Bid")
    assignment = award_bid(bid, current_profile())
    return jsonify(
        {
            "tender": bid.tender.to_dict(),
            "bid": bid.to_dict(),
            "assignment": assignment.to_dict() if assignment is not None else None,
        }
    )


@tenders_bp.route("/tenders/<tender_id>/evaluations", methods=["POST"])
@profile_required
def evaluate_bid(tender_id):
    tender = get_or_404(Tender, tender_id, label="Tender")
    form = validate_form(EvaluationForm())
    bid = get_or_404(Bid, form.bid_id.data, label="Bid")
    evaluation = submit_evaluation(
        tender,
        bid,
        current_profile(),
        _scores(json_body()),
        recommendation=_recommendation(form.recommendation.data),
        notes=form.notes.data,
    )
    return jsonify(evaluation.to_dict()), 201


@tenders_bp.route("/evaluations/<evaluation_id>", methods=["PATCH"])
@profile_required
def revise_evaluation(evaluation_id):
    evaluation = get_or_404(TenderEvaluation, evaluation_id, label="Evaluation")
    payload = json_body()
    update_evaluation(
        evaluation,
        current_profile(),
        _scores(payload),
        recommendation=_recommendation(payload.get("recommendation")),
        notes=payload.get("notes"),
    )
    return jsonify(evaluation.to_dict())
