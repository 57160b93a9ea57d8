from datetime import datetime, timedelta, timezone

import jwt

from conftest import auth, make_settings
from fintrack.main import create_app
from fastapi.testclient import TestClient


def test_register_then_login_returns_user_token(client):
    resp = client.post(
        "/api/auth/register",
        json={"name": "A", "email": "a@x.com", "password": "secret1"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["user"]["email"] == "a@x.com"
    assert body["data"]["user"]["role"] == "user"
    assert "password" not in body["data"]["user"]

    resp = client.post("/api/auth/login", json={"email": "a@x.com", "password": "secret1"})
    assert resp.status_code == 200
    token = resp.json()["data"]["token"]

    claims = jwt.decode(token, "test-secret", algorithms=["HS256"])
    assert claims["role"] == "user"
    assert claims["email"] == "a@x.com"
    assert claims["id"] == body["data"]["user"]["id"]
    assert claims["exp"] > claims["iat"]

    resp = client.get("/api/analytics", headers=auth(token))
    assert resp.json()["data"]["summary"] == {
        "totalIncome": 0,
        "totalExpenses": 0,
        "balance": 0,
        "incomeCount": 0,
        "expenseCount": 0,
    }


def test_register_normalizes_email_case(client):
    client.post("/api/auth/register", json={"name": "B", "email": "Bee@Example.com", "password": "secret1"})
    resp = client.post("/api/auth/login", json={"email": "bee@example.com", "password": "secret1"})
    assert resp.status_code == 200


def test_register_duplicate_email(client):
    payload = {"name": "A", "email": "dup@x.com", "password": "secret1"}
    assert client.post("/api/auth/register", json=payload).status_code == 201
    resp = client.post("/api/auth/register", json=payload)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Email already registered"


def test_register_validation_reports_fields(client):
    resp = client.post("/api/auth/register", json={"name": "", "email": "nope", "password": "123"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    fields = {e["field"] for e in body["errors"]}
    assert fields == {"name", "email", "password"}


def test_register_read_only_role_allowed(client):
    resp = client.post(
        "/api/auth/register",
        json={"name": "R", "email": "r@x.com", "password": "secret1", "role": "read-only"},
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["user"]["role"] == "read-only"


def test_register_admin_role_needs_opt_in(client):
    resp = client.post(
        "/api/auth/register",
        json={"name": "M", "email": "m@x.com", "password": "secret1", "role": "admin"},
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "role"


def test_register_admin_role_when_allowed():
    app = create_app(make_settings(allow_admin_signup=True))
    with TestClient(app) as client:
        resp = client.post(
            "/api/auth/register",
            json={"name": "M", "email": "m@x.com", "password": "secret1", "role": "admin"},
        )
    assert resp.status_code == 201
    assert resp.json()["data"]["user"]["role"] == "admin"


def test_login_wrong_password(client, alice):
    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid email or password"


def test_login_unknown_email(client):
    resp = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "whatever"})
    assert resp.status_code == 401


def test_missing_token_is_401(client):
    resp = client.get("/api/transactions")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Access token required"


def test_garbage_token_is_403(client):
    resp = client.get("/api/transactions", headers=auth("not-a-jwt"))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Invalid or expired token"


def test_token_signed_with_other_secret_is_403(client, alice):
    user_id, _ = alice
    forged = jwt.encode(
        {"id": user_id, "email": "alice@example.com", "role": "admin",
         "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "someone-elses-secret",
        algorithm="HS256",
    )
    assert client.get("/api/transactions", headers=auth(forged)).status_code == 403


def test_expired_token_is_403(client, alice):
    user_id, _ = alice
    expired = jwt.encode(
        {"id": user_id, "email": "alice@example.com", "role": "user",
         "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        "test-secret",
        algorithm="HS256",
    )
    assert client.get("/api/transactions", headers=auth(expired)).status_code == 403


def test_token_for_deleted_account_is_401(client, alice):
    user_id, token = alice
    assert client.delete(f"/api/users/{user_id}", headers=auth(token)).status_code == 200
    assert client.get("/api/auth/profile", headers=auth(token)).status_code == 401


def test_profile_and_me_alias(client, alice):
    _, token = alice
    for path in ("/api/auth/profile", "/api/auth/me"):
        resp = client.get(path, headers=auth(token))
        assert resp.status_code == 200
        assert resp.json()["data"]["email"] == "alice@example.com"
