"""Security helpers for response headers and credential checks."""
from flask import request


def apply_security_headers(response, force_https: bool = False):
    """Apply headers for a JSON API; media URLs are served elsewhere so nothing is framed or scripted."""
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Cache-Control", "no-store")
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    return response


def password_meets_policy(password: str, min_length: int = 8) -> tuple[bool, str | None]:
    if len(password or "") < min_length:
        return False, f"Password must be at least {min_length} characters long."
    if not any(c.isalpha() for c in password) or not any(c.isdigit() for c in password):
        return False, "Use both letters and digits."
    return True, None
