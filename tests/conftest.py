import io
import pathlib
import sys
import uuid

import pytest
from PIL import Image

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import create_app
from extensions import db
from models import Area, Department, Profile, User

DEFAULT_PASSWORD = "Passw0rd123"


def _create_profile(user_type: str = "user", *, email: str | None = None, password: str = DEFAULT_PASSWORD, **fields) -> Profile:
    email = email or f"{user_type}-{uuid.uuid4().hex[:8]}@civicmail.net"
    user = User(email=email, raw_metadata={}, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    profile = Profile(
        id=user.id,
        email=email,
        user_type=user_type,
        full_name=fields.pop("full_name", user_type.title()),
        is_verified=fields.pop("is_verified", True),
        **fields,
    )
    db.session.add(profile)
    db.session.commit()
    return profile


def _create_area(name: str = "Central Business District", code: str | None = None, **fields) -> Area:
    area = Area(name=name, code=code or uuid.uuid4().hex[:6].upper(), is_active=fields.pop("is_active", True), **fields)
    db.session.add(area)
    db.session.commit()
    return area


def _create_department(name: str = "Public Works Department", code: str | None = None, **fields) -> Department:
    department = Department(
        name=name,
        code=code or uuid.uuid4().hex[:6].upper(),
        category=fields.pop("category", "public_works"),
        is_active=fields.pop("is_active", True),
        **fields,
    )
    db.session.add(department)
    db.session.commit()
    return department


@pytest.fixture
def app(tmp_path: pathlib.Path):
    application = create_app(
        "testing",
        overrides={
            "LOG_DIR": str(tmp_path / "logs"),
            "MEDIA_LOCAL_ROOT": str(tmp_path / "media"),
            "PROGRESS_STAGING_FOLDER": str(tmp_path / "staging"),
        },
    )
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Application context for calling the services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_profile(ctx):
    return _create_profile


@pytest.fixture
def make_area(ctx):
    return _create_area


@pytest.fixture
def make_department(ctx):
    return _create_department


@pytest.fixture
def account(app):
    """Create a profile for HTTP tests; returns plain values since each request gets its own session."""

    def factory(user_type: str = "user", **fields) -> dict:
        with app.app_context():
            profile = _create_profile(user_type, **fields)
            return {"id": profile.id, "email": profile.email, "password": DEFAULT_PASSWORD}

    return factory


@pytest.fixture
def login(client):
    def do_login(acct: dict):
        resp = client.post("/auth/login", json={"email": acct["email"], "password": acct["password"]})
        assert resp.status_code == 200, resp.get_json()
        return resp

    return do_login


@pytest.fixture
def png_bytes():
    def factory(color: str = "red") -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", (8, 8), color=color).save(buffer, format="PNG")
        return buffer.getvalue()

    return factory
