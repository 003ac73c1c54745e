"""Request helpers for resolving the acting profile and gating views by user type."""
from functools import wraps
from typing import Optional

from flask_login import current_user, login_required

from models import Profile
from utils.errors import AuthorizationError
from utils.policy import record_denial


def current_profile() -> Optional[Profile]:
    if not current_user or not current_user.is_authenticated:
        return None
    return current_user.profile


def profile_required(view_func):
    """Require a logged-in identity that already has its profile."""

    @wraps(view_func)
    @login_required
    def wrapped(*args, **kwargs):
        if current_profile() is None:
            raise AuthorizationError("Profile not initialised for this account")
        return view_func(*args, **kwargs)

    return wrapped


def user_types_required(*user_types):
    allowed = {t.lower() for t in user_types}

    def decorator(view_func):
        @wraps(view_func)
        @profile_required
        def wrapped(*args, **kwargs):
            profile = current_profile()
            if profile.user_type in allowed:
                return view_func(*args, **kwargs)
            record_denial(profile, view_func.__name__, "invoke")
            raise AuthorizationError(
                "This action requires one of: " + ", ".join(sorted(allowed)),
                details={"user_type": profile.user_type},
            )

        return wrapped

    return decorator
