"""Request-body helpers shared by the JSON blueprints."""
from typing import Any, Dict

from flask import request
from flask_wtf import FlaskForm

from utils.errors import ValidationError


class JsonForm(FlaskForm):
    """FlaskForm fed from a JSON or multipart body; the session cookie stands in for a CSRF token."""

    class Meta:
        csrf = False


def json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def validate_form(form: FlaskForm) -> FlaskForm:
    if not form.validate():
        raise ValidationError("Invalid request body", details={"fields": form.errors})
    return form


def provided(form: FlaskForm) -> Dict[str, Any]:
    """Field data for keys actually present in the request body (PATCH semantics)."""
    sent = set(json_body()) | set(request.form)
    return {field.name: field.data for field in form if field.name in sent}
