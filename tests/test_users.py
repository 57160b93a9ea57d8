from conftest import TEST_PASSWORD, add_txn, auth, global_category
from fintrack.models import Category, Transaction


def test_admin_changes_role_and_reads_it_back(client, admin, alice):
    alice_id, _ = alice
    _, admin_token = admin

    resp = client.put(f"/api/users/{alice_id}/role", json={"role": "admin"}, headers=auth(admin_token))
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "admin"

    resp = client.get(f"/api/users/{alice_id}", headers=auth(admin_token))
    assert resp.json()["data"]["role"] == "admin"


def test_user_cannot_change_roles(client, alice, bob):
    _, alice_token = alice
    bob_id, _ = bob
    alice_id, _ = alice
    for target in (bob_id, alice_id):
        resp = client.put(f"/api/users/{target}/role", json={"role": "admin"}, headers=auth(alice_token))
        assert resp.status_code == 403


def test_role_change_applies_to_existing_tokens(client, admin, alice):
    alice_id, alice_token = alice
    _, admin_token = admin
    client.put(f"/api/users/{alice_id}/role", json={"role": "read-only"}, headers=auth(admin_token))

    resp = client.post("/api/transactions", json={"amount": 1, "type": "income"}, headers=auth(alice_token))
    assert resp.status_code == 403


def test_role_update_validation_and_missing_user(client, admin):
    _, admin_token = admin
    resp = client.put("/api/users/9999/role", json={"role": "admin"}, headers=auth(admin_token))
    assert resp.status_code == 404

    admin_id, _ = admin
    resp = client.put(f"/api/users/{admin_id}/role", json={"role": "owner"}, headers=auth(admin_token))
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "role"


def test_list_users_admin_only_with_filters(client, admin, alice, bob, reader):
    _, admin_token = admin
    _, alice_token = alice

    assert client.get("/api/users", headers=auth(alice_token)).status_code == 403
    assert client.get(f"/api/users/{admin[0]}", headers=auth(alice_token)).status_code == 403

    emails = lambda resp: sorted(u["email"] for u in resp.json()["data"])  # noqa: E731
    assert emails(client.get("/api/users", headers=auth(admin_token))) == [
        "admin@example.com", "alice@example.com", "bob@example.com", "reader@example.com",
    ]
    assert emails(client.get("/api/users", params={"role": "read-only"}, headers=auth(admin_token))) == [
        "reader@example.com",
    ]
    assert emails(client.get("/api/users", params={"search": "ALI"}, headers=auth(admin_token))) == [
        "alice@example.com",
    ]


def test_delete_user_cascades(client, admin, alice, db):
    alice_id, alice_token = alice
    _, admin_token = admin
    client.post("/api/users/categories", json={"name": "Hobby", "type": "expense"}, headers=auth(alice_token))
    add_txn(client, alice_token, amount=3)
    add_txn(client, alice_token, amount=4)

    resp = client.delete(f"/api/users/{alice_id}", headers=auth(admin_token))
    assert resp.status_code == 200

    resp = client.get("/api/transactions", params={"userId": alice_id}, headers=auth(admin_token))
    assert resp.json()["data"] == []
    assert db.query(Transaction).filter(Transaction.user_id == alice_id).count() == 0
    assert db.query(Category).filter(Category.user_id == alice_id).count() == 0

    assert client.get(f"/api/users/{alice_id}", headers=auth(admin_token)).status_code == 404
    assert client.delete(f"/api/users/{alice_id}", headers=auth(admin_token)).status_code == 404


def test_user_may_delete_only_themselves(client, alice, bob):
    alice_id, alice_token = alice
    bob_id, _ = bob
    resp = client.delete(f"/api/users/{bob_id}", headers=auth(alice_token))
    assert resp.status_code == 403
    assert client.delete(f"/api/users/{alice_id}", headers=auth(alice_token)).status_code == 200


def test_update_profile(client, alice, bob):
    _, alice_token = alice
    resp = client.put("/api/users/profile", json={"name": "Alice L"}, headers=auth(alice_token))
    assert resp.json()["data"]["name"] == "Alice L"
    assert resp.json()["data"]["email"] == "alice@example.com"

    resp = client.put("/api/users/profile", json={"email": "bob@example.com"}, headers=auth(alice_token))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Email already in use"

    resp = client.put("/api/users/profile", json={"email": "not-an-email"}, headers=auth(alice_token))
    assert resp.status_code == 400


def test_change_password(client, alice):
    _, token = alice
    resp = client.put(
        "/api/users/change-password",
        json={"currentPassword": "wrong-one", "newPassword": "brandnew"},
        headers=auth(token),
    )
    assert resp.status_code == 401

    resp = client.put(
        "/api/users/change-password",
        json={"currentPassword": TEST_PASSWORD, "newPassword": "123"},
        headers=auth(token),
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "newPassword"

    resp = client.put(
        "/api/users/change-password",
        json={"currentPassword": TEST_PASSWORD, "newPassword": "brandnew"},
        headers=auth(token),
    )
    assert resp.status_code == 200
    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "brandnew"})
    assert resp.status_code == 200


def test_read_only_cannot_change_password_or_profile(client, reader):
    _, token = reader
    resp = client.put(
        "/api/users/change-password",
        json={"currentPassword": TEST_PASSWORD, "newPassword": "brandnew"},
        headers=auth(token),
    )
    assert resp.status_code == 403
    assert client.put("/api/users/profile", json={"name": "x"}, headers=auth(token)).status_code == 403


# categories

def test_categories_include_defaults_and_own(client, alice, bob):
    _, alice_token = alice
    _, bob_token = bob
    client.post("/api/users/categories", json={"name": "Books", "type": "expense"}, headers=auth(alice_token))

    alice_names = {c["name"] for c in client.get("/api/users/categories", headers=auth(alice_token)).json()["data"]}
    bob_names = {c["name"] for c in client.get("/api/users/categories", headers=auth(bob_token)).json()["data"]}
    assert {"Salary", "Food", "Books"} <= alice_names
    assert "Books" not in bob_names

    income = client.get("/api/users/categories", params={"type": "income"}, headers=auth(alice_token)).json()
    assert {c["type"] for c in income["data"]} == {"income"}


def test_category_listing_is_cached_and_invalidated(client, alice):
    _, token = alice
    client.get("/api/users/categories", headers=auth(token))
    assert client.get("/api/users/categories", headers=auth(token)).json()["cached"] is True

    client.post("/api/users/categories", json={"name": "Books", "type": "expense"}, headers=auth(token))
    resp = client.get("/api/users/categories", headers=auth(token)).json()
    assert "cached" not in resp
    assert "Books" in {c["name"] for c in resp["data"]}


def test_duplicate_category_conflicts(client, alice):
    _, token = alice
    body = {"name": "Books", "type": "expense"}
    assert client.post("/api/users/categories", json=body, headers=auth(token)).status_code == 201
    resp = client.post("/api/users/categories", json=body, headers=auth(token))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Category already exists"
    # same name with the other type is a different category
    body["type"] = "income"
    assert client.post("/api/users/categories", json=body, headers=auth(token)).status_code == 201


def test_read_only_cannot_create_category(client, reader):
    _, token = reader
    resp = client.post("/api/users/categories", json={"name": "X", "type": "expense"}, headers=auth(token))
    assert resp.status_code == 403


def test_global_categories_are_admin_managed(client, admin, alice):
    _, admin_token = admin
    _, alice_token = alice

    resp = client.post(
        "/api/users/categories", json={"name": "Gifts", "type": "income", "global": True}, headers=auth(alice_token)
    )
    assert resp.status_code == 403

    resp = client.post(
        "/api/users/categories", json={"name": "Gifts", "type": "income", "global": True}, headers=auth(admin_token)
    )
    assert resp.status_code == 201
    gift = resp.json()["data"]
    assert gift["user_id"] is None

    names = {c["name"] for c in client.get("/api/users/categories", headers=auth(alice_token)).json()["data"]}
    assert "Gifts" in names

    path = f"/api/users/categories/{gift['id']}"
    assert client.put(path, json={"name": "Presents"}, headers=auth(alice_token)).status_code == 403
    assert client.delete(path, headers=auth(alice_token)).status_code == 403
    assert client.put(path, json={"name": "Presents"}, headers=auth(admin_token)).json()["data"]["name"] == "Presents"


def test_non_admin_cannot_touch_other_users_category(client, alice, bob, admin):
    _, alice_token = alice
    _, bob_token = bob
    _, admin_token = admin
    cat = client.post(
        "/api/users/categories", json={"name": "Secret", "type": "expense"}, headers=auth(alice_token)
    ).json()["data"]
    path = f"/api/users/categories/{cat['id']}"

    assert client.put(path, json={"name": "Mine now"}, headers=auth(bob_token)).status_code == 404
    assert client.delete(path, headers=auth(bob_token)).status_code == 404

    resp = client.put(path, json={"name": "Renamed"}, headers=auth(alice_token))
    assert resp.json()["data"]["name"] == "Renamed"
    assert client.delete(path, headers=auth(admin_token)).status_code == 200


def test_renaming_global_category_refreshes_other_users(client, admin, bob):
    _, admin_token = admin
    _, bob_token = bob
    food = global_category(client, bob_token, "Food")
    add_txn(client, bob_token, category_id=food["id"])

    client.get("/api/users/categories", headers=auth(bob_token))
    client.get("/api/transactions", headers=auth(bob_token))
    assert client.get("/api/users/categories", headers=auth(bob_token)).json()["cached"] is True
    assert client.get("/api/transactions", headers=auth(bob_token)).json()["cached"] is True

    resp = client.put(f"/api/users/categories/{food['id']}", json={"name": "Groceries"}, headers=auth(admin_token))
    assert resp.status_code == 200

    categories = client.get("/api/users/categories", headers=auth(bob_token)).json()
    assert "cached" not in categories
    names = {c["name"] for c in categories["data"]}
    assert "Groceries" in names and "Food" not in names

    listing = client.get("/api/transactions", headers=auth(bob_token)).json()
    assert "cached" not in listing
    assert [t["category_name"] for t in listing["data"]] == ["Groceries"]
