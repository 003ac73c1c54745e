"""Error kinds raised by the workflow services and translated to JSON by the app."""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class CivicError(Exception):
    """Base class for errors the API reports to the caller."""

    status_code = 400
    error_code = "civic_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(CivicError):
    """Required fields missing or out of range. Raised before any network or database call."""

    status_code = 400
    error_code = "validation_error"


class AuthorizationError(CivicError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(CivicError):
    status_code = 404
    error_code = "not_found"


class PersistenceError(CivicError):
    """Insert/update rejected by a constraint; the database message is kept verbatim."""

    status_code = 409
    error_code = "persistence_error"


class UploadPartialFailure(CivicError):
    """Some media uploads failed. Non-fatal: the submission proceeds with the successes."""

    status_code = 200
    error_code = "upload_partial_failure"

    def __init__(self, failed: List[Dict[str, Any]], succeeded: int) -> None:
        super().__init__(
            f"{len(failed)} of {len(failed) + succeeded} image(s) failed to upload",
            details={"failed": failed},
        )
        self.failed = failed
        self.succeeded = succeeded


class UploadError(CivicError):
    """The media upload step itself could not run (misconfigured or unreachable store)."""

    status_code = 502
    error_code = "upload_error"
