import pytest
from fastapi.testclient import TestClient

from fintrack import crud
from fintrack.config import Settings
from fintrack.main import create_app
from fintrack.models import Role
from fintrack.security import create_access_token

TEST_PASSWORD = "secret123"


def make_settings(**overrides):
    values = dict(
        database_url="sqlite://",
        cache_backend="memory",
        jwt_secret="test-secret",
        environment="test",
        api_prefix="/api",
        rate_limit_enabled=False,
        enforce_category_type_match=False,
        allow_admin_signup=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(app, client):
    """Create an account directly in the store and return (user_id, token)."""

    def _make(email, role=Role.USER, name=None, password=TEST_PASSWORD):
        session = app.state.session_factory()
        try:
            user = crud.create_user(session, name or email.split("@")[0], email, password, role)
            return user.id, create_access_token(user, app.state.settings)
        finally:
            session.close()

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", Role.ADMIN)


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com", Role.USER)


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com", Role.USER)


@pytest.fixture
def reader(make_user):
    return make_user("reader@example.com", Role.READ_ONLY)


def global_category(client, token, name):
    resp = client.get("/api/users/categories", headers=auth(token))
    return next(c for c in resp.json()["data"] if c["name"] == name and c["user_id"] is None)


def add_txn(client, token, **fields):
    body = {"amount": 10, "type": "expense", "date": "2024-03-10"}
    body.update(fields)
    resp = client.post("/api/transactions", json=body, headers=auth(token))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]
