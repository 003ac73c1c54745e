"""Contractor work-progress submission: validate, upload photos, persist one record."""
from __future__ import annotations

import copy
import re
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

from flask import current_app

from extensions import db
from models import PROGRESS_STATUSES, Issue, Profile, Tender, WorkProgress
from utils.errors import CivicError, UploadError, UploadPartialFailure, ValidationError
from utils.media_store import MediaStore, MediaUploadError, build_media_store, upload_many
from utils.policy import authorize
from utils.workflow import audit, commit_or_raise, get_or_404, parse_decimal, validate_choice

INITIAL_FORM: Dict[str, Any] = {
    "title": "",
    "description": "",
    "progress_percentage": 0,
    "status": "in_progress",
    "materials_used": [],
    "labor_hours": "",
    "expenses_incurred": "",
    "milestone_reached": "",
    "next_milestone": "",
    "contractor_notes": "",
    "estimated_completion_date": None,
    "actual_completion_date": None,
}

OPTIONAL_TEXT_FIELDS: tuple[str, ...] = ("milestone_reached", "next_milestone", "contractor_notes")


def _parse_percentage(value: Any) -> int:
    if value in (None, ""):
        return 0
    try:
        percentage = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError("Progress percentage must be a whole number", details={"field": "progress_percentage"}) from exc
    if percentage < 0 or percentage > 100:
        raise ValidationError("Progress percentage must be between 0 and 100", details={"field": "progress_percentage"})
    return percentage


def _parse_date(value: Any, field: str) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", details={"field": field}) from exc


def normalize_materials(materials: Any) -> List[str]:
    """Comma- or newline-separated text, or a list of such entries, as trimmed non-blank items."""
    if materials is None:
        return []
    if isinstance(materials, str):
        materials = [materials]
    items: List[str] = []
    for entry in materials:
        if entry is None:
            continue
        items.extend(part.strip() for part in re.split(r"[,\r\n]+", str(entry)) if part.strip())
    return items


class ProgressSubmission:
    """Form state for one progress update, bound to a contractor and an issue and/or tender.

    ``submit`` resets the form and calls ``on_complete(record)`` on success. On failure
    it calls ``on_error(exc)``, re-raises, and leaves the form populated for a retry.
    """

    def __init__(
        self,
        contractor: Profile,
        *,
        issue_id: Optional[str] = None,
        tender_id: Optional[str] = None,
        store: Optional[MediaStore] = None,
        max_workers: Optional[int] = None,
        on_complete: Optional[Callable[[WorkProgress], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        self.contractor = contractor
        self.issue_id = issue_id or None
        self.tender_id = tender_id or None
        self.store = store
        self.max_workers = max_workers
        self.on_complete = on_complete
        self.on_error = on_error
        self.form: Dict[str, Any] = copy.deepcopy(INITIAL_FORM)
        self.image_sources: List[str] = []
        self.image_labels: Dict[str, str] = {}
        self.warnings: List[UploadPartialFailure] = []

    def update(self, **fields: Any) -> "ProgressSubmission":
        unknown = set(fields) - set(INITIAL_FORM)
        if unknown:
            raise ValidationError("Unknown progress fields", details={"fields": sorted(unknown)})
        self.form.update(fields)
        return self

    def attach_images(self, sources: Iterable[str], labels: Optional[Iterable[str]] = None) -> None:
        """Queue local files for upload. ``labels`` name them in warnings instead of their paths."""
        sources = [source for source in sources if source]
        self.image_sources.extend(sources)
        if labels is not None:
            self.image_labels.update(zip(sources, labels))

    def remove_image(self, index: int) -> None:
        source = self.image_sources.pop(index)
        self.image_labels.pop(source, None)

    def reset(self) -> None:
        self.form = copy.deepcopy(INITIAL_FORM)
        self.image_sources = []
        self.image_labels = {}

    def validate(self) -> Dict[str, Any]:
        """Check the form locally and return the cleaned scalar fields."""
        title = (self.form.get("title") or "").strip()
        description = (self.form.get("description") or "").strip()
        if not title or not description:
            raise ValidationError(
                "Please fill in title and description",
                details={"missing": [name for name, value in (("title", title), ("description", description)) if not value]},
            )
        if not self.issue_id and not self.tender_id:
            raise ValidationError("A progress update must reference an issue or a tender")
        status = self.form.get("status") or "in_progress"
        validate_choice(status, PROGRESS_STATUSES, "status")
        return {
            "title": title,
            "description": description,
            "progress_percentage": _parse_percentage(self.form.get("progress_percentage")),
            "status": status,
            "estimated_completion_date": _parse_date(self.form.get("estimated_completion_date"), "estimated_completion_date"),
            "actual_completion_date": _parse_date(self.form.get("actual_completion_date"), "actual_completion_date"),
        }

    def build_payload(self, cleaned: Dict[str, Any], image_urls: List[str]) -> Dict[str, Any]:
        payload = dict(cleaned)
        payload.update(
            {
                "issue_id": self.issue_id,
                "tender_id": self.tender_id,
                "contractor_id": self.contractor.id,
                "images": list(image_urls),
                "documents": [],
                "materials_used": normalize_materials(self.form.get("materials_used")),
                "labor_hours": parse_decimal(self.form.get("labor_hours")),
                "expenses_incurred": parse_decimal(self.form.get("expenses_incurred")),
            }
        )
        for field in OPTIONAL_TEXT_FIELDS:
            payload[field] = (self.form.get(field) or "").strip() or None
        return payload

    def _label(self, source: str) -> str:
        return self.image_labels.get(source, source)

    def _upload_images(self) -> List[str]:
        if not self.image_sources:
            return []
        try:
            store = self.store or build_media_store(current_app.config)
        except (MediaUploadError, ValueError) as exc:
            raise UploadError(str(exc)) from exc
        except OSError as exc:
            current_app.logger.error("Media store could not be prepared", extra={"error": str(exc)})
            raise UploadError("Media store is unavailable") from exc
        workers = self.max_workers or int(current_app.config.get("MEDIA_UPLOAD_MAX_WORKERS", 4))
        result = upload_many(store, self.image_sources, max_workers=workers)
        urls = [item["url"] for item in result["successful"]]
        if result["failed"]:
            failed = [
                {"source": self._label(item["source"]), "error": item["error"].replace(item["source"], self._label(item["source"]))}
                for item in result["failed"]
            ]
            warning = UploadPartialFailure(failed, succeeded=len(urls))
            self.warnings.append(warning)
            current_app.logger.warning(
                "Progress photo upload partially failed",
                extra={"failed": len(failed), "succeeded": len(urls), "contractor_id": self.contractor.id},
            )
        return urls

    def submit(self) -> WorkProgress:
        self.warnings = []
        try:
            cleaned = self.validate()
            authorize(self.contractor, "work_progress", "create", WorkProgress(contractor_id=self.contractor.id))
            if self.issue_id:
                get_or_404(Issue, self.issue_id)
            if self.tender_id:
                get_or_404(Tender, self.tender_id)

            image_urls = self._upload_images()
            record = WorkProgress(**self.build_payload(cleaned, image_urls))
            db.session.add(record)
            audit("WORK_PROGRESS_SUBMITTED", self.contractor, context=self.issue_id or self.tender_id)
            commit_or_raise("submit_work_progress")
        except CivicError as exc:
            current_app.logger.warning(
                "Progress submission failed",
                extra={"contractor_id": self.contractor.id, "error": exc.message},
            )
            if self.on_error:
                self.on_error(exc)
            raise
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception(
                "Progress submission crashed", extra={"contractor_id": self.contractor.id}
            )
            if self.on_error:
                self.on_error(exc)
            raise

        current_app.logger.info(
            "Work progress submitted",
            extra={"progress_id": record.id, "images": len(record.images or []), "contractor_id": self.contractor.id},
        )
        self.reset()
        if self.on_complete:
            self.on_complete(record)
        return record


def list_work_progress(
    caller: Profile,
    *,
    contractor_id: Optional[str] = None,
    issue_id: Optional[str] = None,
    tender_id: Optional[str] = None,
    limit: int = 50,
) -> List[WorkProgress]:
    """Progress updates newest first. Non-privileged callers may only list their own."""
    if not caller.is_privileged:
        contractor_id = contractor_id or caller.id
        authorize(caller, "work_progress", "read", WorkProgress(contractor_id=contractor_id))
    query = WorkProgress.query
    if contractor_id:
        query = query.filter(WorkProgress.contractor_id == contractor_id)
    if issue_id:
        query = query.filter(WorkProgress.issue_id == issue_id)
    if tender_id:
        query = query.filter(WorkProgress.tender_id == tender_id)
    return query.order_by(WorkProgress.created_at.desc()).limit(max(1, min(limit, 200))).all()


def annotate_progress(
    progress: WorkProgress,
    actor: Profile,
    *,
    supervisor_notes: Optional[str] = None,
    quality_rating: Any = None,
) -> WorkProgress:
    """Set the supervisor fields; every other column is immutable after submission."""
    authorize(actor, "work_progress", "annotate", progress)
    if quality_rating not in (None, ""):
        try:
            rating = int(quality_rating)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Quality rating must be a whole number", details={"field": "quality_rating"}) from exc
        if rating < 1 or rating > 5:
            raise ValidationError("Quality rating must be between 1 and 5", details={"field": "quality_rating"})
        progress.quality_rating = rating
    if supervisor_notes is not None:
        progress.supervisor_notes = supervisor_notes.strip() or None
    audit("WORK_PROGRESS_ANNOTATED", actor, context=progress.id)
    commit_or_raise("annotate_progress")
    return progress
