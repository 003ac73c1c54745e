"""Contractor work overview: awarded tenders, recent progress, and headline stats."""
from __future__ import annotations

from decimal import Decimal
from typing import Dict

from flask import current_app
from sqlalchemy import func

from extensions import db
from models import Profile, Tender, WorkProgress


def contractor_dashboard(profile: Profile) -> Dict:
    recent_limit = int(current_app.config.get("DASHBOARD_RECENT_PROGRESS", 10))
    assigned = (
        Tender.query.filter(Tender.awarded_to == profile.id)
        .order_by(Tender.updated_at.desc())
        .all()
    )
    progress = (
        WorkProgress.query.filter(WorkProgress.contractor_id == profile.id)
        .order_by(WorkProgress.created_at.desc())
        .limit(recent_limit)
        .all()
    )
    avg_rating = (
        db.session.query(func.avg(WorkProgress.quality_rating))
        .filter(WorkProgress.contractor_id == profile.id, WorkProgress.quality_rating.isnot(None))
        .scalar()
    )
    total_earnings = sum((tender.awarded_amount or Decimal("0")) for tender in assigned)

    return {
        "assigned_work": [tender.to_dict() for tender in assigned],
        "recent_progress": [item.to_dict() for item in progress],
        "stats": {
            "active_projects": sum(1 for tender in assigned if tender.status == "awarded"),
            "completed_projects": sum(1 for tender in assigned if tender.status == "completed"),
            "total_earnings": float(total_earnings),
            "avg_rating": round(float(avg_rating), 2) if avg_rating is not None else None,
        },
    }
