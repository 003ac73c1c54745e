"""Single policy-evaluation component for role- and ownership-based access control.

Every resource/action pair has one predicate over ``(caller, record)`` where
``caller`` is the acting Profile and ``record`` is the row being read or
written (for inserts, the row about to be written). A missing caller or a
missing rule denies.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from flask import current_app, has_request_context, request

from extensions import db
from models import PRIVILEGED_USER_TYPES, AuditLog, Profile
from utils.errors import AuthorizationError

Predicate = Callable[[Profile, Any], bool]

EVALUATOR_ROLES: tuple[str, ...] = ("admin", "department_admin")
TENDER_MANAGER_ROLES: tuple[str, ...] = ("admin", "department_admin")


def _role_in(*roles: str) -> Predicate:
    allowed = set(roles)

    def predicate(caller: Profile, record: Any) -> bool:
        return caller.user_type in allowed

    return predicate


def _privileged(caller: Profile, record: Any) -> bool:
    return caller.user_type in PRIVILEGED_USER_TYPES


def _any_profile(caller: Profile, record: Any) -> bool:
    return True


def _read_reference(caller: Profile, record: Any) -> bool:
    if caller.user_type == "admin":
        return True
    return bool(record is not None and record.is_active)


def _assignment_read(caller: Profile, record: Any) -> bool:
    if _privileged(caller, record):
        return True
    return record is not None and caller.id in (record.assigned_by, record.assigned_to)


def _assignment_create(caller: Profile, record: Any) -> bool:
    return record is not None and record.assigned_by == caller.id and _privileged(caller, record)


def _progress_owner_or_privileged(caller: Profile, record: Any) -> bool:
    if _privileged(caller, record):
        return True
    return record is not None and record.contractor_id == caller.id


def _evaluation_owner(caller: Profile, record: Any) -> bool:
    if caller.user_type in EVALUATOR_ROLES:
        return True
    return record is not None and record.evaluator_id == caller.id


def _bid_create(caller: Profile, record: Any) -> bool:
    return caller.user_type == "tender" and record is not None and record.contractor_id == caller.id


def _profile_read(caller: Profile, record: Any) -> bool:
    return caller.user_type == "admin" or (record is not None and record.id == caller.id)


RULES: Dict[Tuple[str, str], Predicate] = {
    ("area", "read"): _read_reference,
    ("area", "create"): _role_in("admin"),
    ("area", "update"): _role_in("admin"),
    ("area", "delete"): _role_in("admin"),
    ("department", "read"): _read_reference,
    ("department", "create"): _role_in("admin"),
    ("department", "update"): _role_in("admin"),
    ("department", "delete"): _role_in("admin"),
    ("issue", "create"): _any_profile,
    ("issue", "read"): _any_profile,
    ("issue", "vote"): _any_profile,
    ("issue", "assign"): _privileged,
    ("issue", "update_stage"): _privileged,
    ("issue", "list_assignments"): _privileged,
    ("issue_assignment", "read"): _assignment_read,
    ("issue_assignment", "create"): _assignment_create,
    ("work_progress", "read"): _progress_owner_or_privileged,
    ("work_progress", "create"): _progress_owner_or_privileged,
    ("work_progress", "update"): _progress_owner_or_privileged,
    ("work_progress", "delete"): _progress_owner_or_privileged,
    ("work_progress", "annotate"): _privileged,
    ("tender_evaluation", "read"): _evaluation_owner,
    ("tender_evaluation", "create"): _evaluation_owner,
    ("tender_evaluation", "update"): _evaluation_owner,
    ("tender_evaluation", "delete"): _evaluation_owner,
    ("tender", "read"): _any_profile,
    ("tender", "create"): _role_in(*TENDER_MANAGER_ROLES),
    ("tender", "update"): _role_in(*TENDER_MANAGER_ROLES),
    ("tender", "award"): _role_in(*TENDER_MANAGER_ROLES),
    ("bid", "create"): _bid_create,
    ("profile", "read"): _profile_read,
    ("profile", "update"): _role_in("admin"),
}


def is_allowed(caller: Optional[Profile], resource: str, action: str, record: Any = None) -> bool:
    if caller is None:
        return False
    predicate = RULES.get((resource, action))
    if predicate is None:
        return False
    return bool(predicate(caller, record))


def record_denial(caller: Optional[Profile], resource: str, action: str) -> None:
    current_app.logger.warning(
        "Unauthorized access attempt",
        extra={
            "user_id": caller.id if caller else None,
            "user_type": caller.user_type if caller else None,
            "resource": resource,
            "action": action,
        },
    )
    audit = AuditLog(
        user_id=caller.id if caller else None,
        action_type="UNAUTHORIZED_ACCESS",
        ip_address=request.remote_addr if has_request_context() else None,
        user_agent=request.headers.get("User-Agent", "unknown") if has_request_context() else "system",
        context_entity=f"{resource}:{action}",
    )
    db.session.add(audit)
    db.session.commit()


def authorize(caller: Optional[Profile], resource: str, action: str, record: Any = None) -> None:
    """Raise AuthorizationError unless the caller satisfies the rule. Call before any pending writes."""
    if is_allowed(caller, resource, action, record):
        return
    record_denial(caller, resource, action)
    raise AuthorizationError(
        f"Not permitted to {action} {resource}",
        details={"resource": resource, "action": action},
    )
