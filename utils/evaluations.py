"""Weighted tender evaluation scoring."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from flask import current_app

from extensions import db
from models import RECOMMENDATIONS, Bid, Profile, Tender, TenderEvaluation
from utils.errors import PersistenceError, ValidationError
from utils.policy import authorize
from utils.workflow import audit, commit_or_raise, validate_choice

SCORE_FIELDS: tuple[str, ...] = (
    "technical_score",
    "financial_score",
    "experience_score",
    "timeline_score",
)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "technical_score": 0.4,
    "financial_score": 0.3,
    "experience_score": 0.2,
    "timeline_score": 0.1,
}

TWO_PLACES = Decimal("0.01")


def _weights() -> Dict[str, Decimal]:
    configured = current_app.config.get("TENDER_SCORE_WEIGHTS") or DEFAULT_WEIGHTS
    weights = {field: Decimal(str(configured.get(field, 0))) for field in SCORE_FIELDS}
    total = sum(weights.values())
    if total <= 0:
        weights = {field: Decimal(str(DEFAULT_WEIGHTS[field])) for field in SCORE_FIELDS}
        total = sum(weights.values())
    # Normalised so a perfect sheet always totals exactly 100.
    return {field: weight / total for field, weight in weights.items()}


def _clean_scores(scores: Mapping[str, Any]) -> Dict[str, Optional[Decimal]]:
    cleaned: Dict[str, Optional[Decimal]] = {}
    for field in SCORE_FIELDS:
        raw = scores.get(field)
        if raw is None or raw == "":
            cleaned[field] = None
            continue
        try:
            value = Decimal(str(raw))
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ValidationError(f"{field} must be a number", details={"field": field}) from exc
        if not value.is_finite() or value < 0 or value > 100:
            raise ValidationError(f"{field} must be between 0 and 100", details={"field": field, "value": str(raw)})
        cleaned[field] = value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return cleaned


def compute_total_score(scores: Mapping[str, Optional[Decimal]]) -> Optional[Decimal]:
    """Weighted sum of the provided sub-scores; missing sub-scores count as zero. None when all are missing."""
    if all(scores.get(field) is None for field in SCORE_FIELDS):
        return None
    weights = _weights()
    total = sum((scores.get(field) or Decimal("0")) * weights[field] for field in SCORE_FIELDS)
    total = min(max(total, Decimal("0")), Decimal("100"))
    return total.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def submit_evaluation(
    tender: Tender,
    bid: Bid,
    evaluator: Profile,
    scores: Mapping[str, Any],
    *,
    recommendation: Optional[str] = None,
    notes: Optional[str] = None,
) -> TenderEvaluation:
    if bid.tender_id != tender.id:
        raise ValidationError("Bid does not belong to this tender", details={"bid_id": bid.id})
    evaluation = TenderEvaluation(tender_id=tender.id, bid_id=bid.id, evaluator_id=evaluator.id)
    authorize(evaluator, "tender_evaluation", "create", evaluation)
    if recommendation is not None:
        validate_choice(recommendation, RECOMMENDATIONS, "recommendation")
    cleaned = _clean_scores(scores)

    duplicate = TenderEvaluation.query.filter_by(
        tender_id=tender.id, bid_id=bid.id, evaluator_id=evaluator.id
    ).first()
    if duplicate:
        raise PersistenceError(
            "Evaluator has already evaluated this bid",
            details={"evaluation_id": duplicate.id},
        )

    for field, value in cleaned.items():
        setattr(evaluation, field, value)
    evaluation.total_score = compute_total_score(cleaned)
    evaluation.recommendation = recommendation
    evaluation.evaluation_notes = (notes or "").strip() or None
    db.session.add(evaluation)
    audit("TENDER_EVALUATED", evaluator, context=f"{tender.id}:{bid.id}")
    commit_or_raise("submit_evaluation")
    current_app.logger.info(
        "Tender evaluation recorded",
        extra={"tender_id": tender.id, "bid_id": bid.id, "total_score": str(evaluation.total_score)},
    )
    return evaluation


def update_evaluation(
    evaluation: TenderEvaluation,
    actor: Profile,
    scores: Mapping[str, Any],
    *,
    recommendation: Optional[str] = None,
    notes: Optional[str] = None,
) -> TenderEvaluation:
    authorize(actor, "tender_evaluation", "update", evaluation)
    if recommendation is not None:
        validate_choice(recommendation, RECOMMENDATIONS, "recommendation")
    merged = {field: getattr(evaluation, field) for field in SCORE_FIELDS}
    merged.update({field: scores[field] for field in SCORE_FIELDS if field in scores})
    cleaned = _clean_scores(merged)

    for field, value in cleaned.items():
        setattr(evaluation, field, value)
    evaluation.total_score = compute_total_score(cleaned)
    if recommendation is not None:
        evaluation.recommendation = recommendation
    if notes is not None:
        evaluation.evaluation_notes = notes.strip() or None
    commit_or_raise("update_evaluation")
    return evaluation
