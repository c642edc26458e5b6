import jwt

import config
from conftest import auth


def test_signup_creates_customer_without_password(client):
    response = client.post(
        "/api/auth/signup",
        json={"name": "Jane Doe", "email": "Jane@Example.com", "password": "secret123"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["email"] == "jane@example.com"
    assert user["role"] == "customer"
    assert "password_hash" not in user and "password" not in user
    assert body["data"]["token"]


def test_signup_ignores_requested_role(client):
    response = client.post(
        "/api/auth/signup",
        json={"name": "Sneaky", "email": "sneaky@example.com", "password": "secret123", "role": "admin"},
    )
    assert response.status_code == 201
    assert response.json()["data"]["user"]["role"] == "customer"


def test_signup_duplicate_email_is_case_insensitive(client, customer):
    response = client.post(
        "/api/auth/signup",
        json={"name": "Jane Again", "email": "JANE@example.com", "password": "secret123"},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "User already exists with this email"}


def test_signup_validation(client):
    response = client.post("/api/auth/signup", json={"name": "Short", "email": "short@example.com", "password": "123"})
    assert response.status_code == 400
    assert response.json()["success"] is False

    response = client.post("/api/auth/signup", json={"name": "Bad", "email": "not-an-email", "password": "secret123"})
    assert response.status_code == 400


def test_signup_stores_salted_hash(client, db):
    client.post("/api/auth/signup", json={"name": "A", "email": "a@example.com", "password": "samepass"})
    client.post("/api/auth/signup", json={"name": "B", "email": "b@example.com", "password": "samepass"})
    hashes = [u["password_hash"] for u in db["user"].find()]
    assert len(set(hashes)) == 2
    assert all(h != "samepass" for h in hashes)


def test_login_token_carries_identity(client, customer):
    response = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["data"]["token"]
    payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGO])
    assert payload["id"] == customer["user"]["id"]
    assert payload["role"] == "customer"
    assert payload["email"] == "jane@example.com"


def test_login_failures_are_indistinguishable(client, customer):
    wrong_password = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "nope-nope"})
    unknown_email = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret123"})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["message"] == "Invalid email or password"


def test_get_profile(client, customer):
    response = client.get("/api/auth/profile", headers=auth(customer["token"]))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == customer["user"]["id"]
    assert "password_hash" not in data


def test_update_profile_is_partial(client, customer):
    headers = auth(customer["token"])
    client.put("/api/auth/profile", json={"profile": {"phone": "555-0100", "city": "Lisbon"}}, headers=headers)
    response = client.put("/api/auth/profile", json={"name": "Jane Q. Doe", "profile": {"country": "PT"}}, headers=headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Jane Q. Doe"
    assert data["email"] == "jane@example.com"
    assert data["profile"]["phone"] == "555-0100"
    assert data["profile"]["city"] == "Lisbon"
    assert data["profile"]["country"] == "PT"


def test_change_password(client, customer):
    headers = auth(customer["token"])
    response = client.put(
        "/api/auth/change-password",
        json={"current_password": "secret123", "new_password": "newsecret"},
        headers=headers,
    )
    assert response.status_code == 200

    old = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret123"})
    new = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "newsecret"})
    assert old.status_code == 401
    assert new.status_code == 200


def test_change_password_rejects_wrong_current(client, customer):
    response = client.put(
        "/api/auth/change-password",
        json={"current_password": "wrong-one", "new_password": "newsecret"},
        headers=auth(customer["token"]),
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Current password is incorrect"


def test_logout_acknowledges(client, customer):
    response = client.post("/api/auth/logout", headers=auth(customer["token"]))
    assert response.status_code == 200
    assert response.json()["message"] == "Logged out successfully!"


def test_admin_lists_and_deletes_users(client, admin, customer):
    headers = auth(admin["token"])
    listed = client.get("/api/auth/users", headers=headers)
    assert listed.status_code == 200
    emails = {u["email"] for u in listed.json()["data"]}
    assert emails == {"admin@example.com", "jane@example.com"}
    assert all("password_hash" not in u for u in listed.json()["data"])

    deleted = client.delete(f"/api/auth/users/{customer['user']['id']}", headers=headers)
    assert deleted.status_code == 200
    again = client.delete(f"/api/auth/users/{customer['user']['id']}", headers=headers)
    assert again.status_code == 404


def test_deleted_user_token_is_rejected(client, admin, customer):
    client.delete(f"/api/auth/users/{customer['user']['id']}", headers=auth(admin["token"]))
    response = client.get("/api/auth/profile", headers=auth(customer["token"]))
    assert response.status_code == 401
    assert response.json()["message"] == "User not found"


def test_customer_cannot_manage_users(client, customer):
    response = client.get("/api/auth/users", headers=auth(customer["token"]))
    assert response.status_code == 403
    assert response.json()["success"] is False


def test_create_admin(client):
    response = client.post(
        "/api/auth/create-admin",
        json={"name": "Root", "email": "root@example.com", "password": "admin123"},
    )
    assert response.status_code == 201
    assert response.json()["data"]["user"]["role"] == "admin"


def test_create_admin_can_be_disabled(client, monkeypatch):
    monkeypatch.setattr(config, "ENABLE_CREATE_ADMIN", False)
    response = client.post(
        "/api/auth/create-admin",
        json={"name": "Root", "email": "root@example.com", "password": "admin123"},
    )
    assert response.status_code == 404


def test_create_admin_script(db):
    import create_admin

    assert create_admin.main(["--email", "ops@example.com", "--password", "admin123"]) == 0
    assert db["user"].find_one({"email": "ops@example.com"})["role"] == "admin"
    # duplicate email and too-short password both fail cleanly
    assert create_admin.main(["--email", "ops@example.com", "--password", "admin123"]) == 1
    assert create_admin.main(["--email", "new@example.com", "--password", "123"]) == 1


def test_signup_rejects_password_over_72_bytes(client, db):
    response = client.post(
        "/api/auth/signup",
        json={"name": "Long Pass", "email": "long@example.com", "password": "x" * 80},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Password cannot be longer than 72 bytes"}
    assert db["user"].count_documents({"email": "long@example.com"}) == 0


def test_change_password_rejects_new_password_over_72_bytes(client, customer):
    response = client.put(
        "/api/auth/change-password",
        json={"current_password": "secret123", "new_password": "é" * 40},
        headers=auth(customer["token"]),
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
    login = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret123"})
    assert login.status_code == 200


def test_create_admin_rejects_password_over_72_bytes(client):
    response = client.post(
        "/api/auth/create-admin",
        json={"name": "Shop Admin", "email": "owner@example.com", "password": "y" * 73},
    )
    assert response.status_code == 400
