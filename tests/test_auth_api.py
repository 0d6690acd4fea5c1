from conftest import PASSWORD


def test_register_login_profile(client, register):
    user, headers = register()
    assert user["email"] == "alice@example.com"
    assert user["role"] == "user"
    assert "password" not in user and "password_hash" not in user

    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Login successful"
    assert body["token_type"] == "bearer"

    resp = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {body['token']}"})
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == user["id"]


def test_register_accepts_camel_case_names(client):
    resp = client.post(
        "/api/auth/register",
        json={"email": "bob@example.com", "password": PASSWORD, "firstName": "Bob", "lastName": "Jones"},
    )
    assert resp.status_code == 201
    assert resp.json()["user"]["first_name"] == "Bob"


def test_register_validation(client):
    def post(**overrides):
        body = {"email": "carol@example.com", "password": PASSWORD, "first_name": "C", "last_name": "D"}
        body.update(overrides)
        return client.post("/api/auth/register", json=body)

    assert post(email="not-an-email").status_code == 400
    assert post(password="short").status_code == 400
    assert post(first_name="").status_code == 400
    assert client.post("/api/auth/register", json={"email": "x@example.com"}).status_code == 400


def test_duplicate_registration(client, register):
    register()
    resp = client.post(
        "/api/auth/register",
        json={"email": "alice@example.com", "password": PASSWORD, "first_name": "A", "last_name": "B"},
    )
    assert resp.status_code == 409


def test_login_with_wrong_password(client, register):
    register()
    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid email or password"


def test_endpoints_require_a_token(client):
    assert client.get("/api/auth/profile").status_code == 401
    assert client.get("/api/auth/profile", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_change_password(client, register):
    _, headers = register()

    resp = client.post(
        "/api/auth/change-password",
        json={"current_password": "wrong-one", "new_password": "N3wPassword"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Current password is incorrect"

    resp = client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "short"},
        headers=headers,
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "N3wPassword"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "Password changed successfully"

    old = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    new = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "N3wPassword"})
    assert old.status_code == 401
    assert new.status_code == 200


def test_refresh(client, register):
    user, headers = register()
    resp = client.post("/api/auth/refresh", headers=headers)
    assert resp.status_code == 200
    token = resp.json()["token"]

    profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.json()["user"]["id"] == user["id"]


def test_user_listing_is_admin_only(client, register, admin_headers):
    _, headers = register()
    register(email="bob@example.com")

    assert client.get("/api/auth/users", headers=headers).status_code == 403

    resp = client.get("/api/auth/users", headers=admin_headers)
    assert resp.status_code == 200
    assert len(resp.json()["users"]) == 3

    resp = client.get("/api/auth/users", params={"role": "admin"}, headers=admin_headers)
    assert [u["email"] for u in resp.json()["users"]] == ["root@example.com"]

    resp = client.get("/api/auth/users", params={"email": "bob", "limit": 1}, headers=admin_headers)
    assert [u["email"] for u in resp.json()["users"]] == ["bob@example.com"]
