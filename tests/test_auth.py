"""
Registration, login and company user management
"""
ADMIN_EMAIL = "admin@liftco.example.com"
ADMIN_PASSWORD = "Secret123"


def test_register_returns_token_and_admin_user(client):
    response = client.post("/api/auth/register", json={
        "company_name": "  Lift Co  ",
        "email": "Owner@LiftCo.example.com",
        "password": "Secret123",
        "full_name": "Owner",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["user"]["role"] == "admin"
    assert data["user"]["email"] == "owner@liftco.example.com"


def test_register_rejects_weak_password(client):
    response = client.post("/api/auth/register", json={
        "company_name": "Lift Co",
        "email": "owner@liftco.example.com",
        "password": "short",
        "full_name": "Owner",
    })
    assert response.status_code == 400
    assert "at least 8 characters" in response.json()["detail"]


def test_register_rejects_duplicate_email(client, auth_headers):
    response = client.post("/api/auth/register", json={
        "company_name": "Another",
        "email": ADMIN_EMAIL,
        "password": "Secret123",
        "full_name": "Copy",
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_login_and_me(client, auth_headers):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == ADMIN_EMAIL
    assert me.json()["last_login"] is not None
    assert me.json()["is_admin"] is True
    assert me.json()["is_readonly"] is False


def test_me_exposes_role_flags(client, user_headers):
    flags = ("is_admin", "is_dispatcher", "is_technician", "is_readonly")
    for role in ("dispatcher", "technician", "readonly"):
        me = client.get("/api/auth/me", headers=user_headers(role)).json()
        assert me["role"] == role
        assert {flag: me[flag] for flag in flags} == {flag: flag == f"is_{role}" for flag in flags}


def test_login_wrong_password(client, auth_headers):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "Wrong1234"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Incorrect email or password"


def test_requests_without_valid_token_are_rejected(client, auth_headers):
    assert client.get("/api/clients/").status_code in (401, 403)
    response = client.get("/api/clients/", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_admin_manages_users(client, auth_headers):
    response = client.post("/api/auth/users", json={
        "email": "dispatch@liftco.example.com",
        "password": "Dispatch1",
        "full_name": "Dispatcher",
    }, headers=auth_headers)
    assert response.status_code == 201
    user = response.json()
    assert user["role"] == "dispatcher"

    users = client.get("/api/auth/users", headers=auth_headers).json()
    assert {u["email"] for u in users} == {ADMIN_EMAIL, "dispatch@liftco.example.com"}

    response = client.put(f"/api/auth/users/{user['id']}", json={"role": "readonly"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["role"] == "readonly"

    response = client.put(f"/api/auth/users/{user['id']}", json={"role": "owner"}, headers=auth_headers)
    assert response.status_code == 400


def test_admin_cannot_demote_self(client, auth_headers):
    me = client.get("/api/auth/me", headers=auth_headers).json()
    response = client.put(f"/api/auth/users/{me['id']}", json={"role": "dispatcher"}, headers=auth_headers)
    assert response.status_code == 400


def test_deactivated_user_cannot_log_in(client, auth_headers):
    user = client.post("/api/auth/users", json={
        "email": "tech@liftco.example.com",
        "password": "Techpass1",
        "full_name": "Tech",
        "role": "technician",
    }, headers=auth_headers).json()

    client.put(f"/api/auth/users/{user['id']}", json={"is_active": False}, headers=auth_headers)

    response = client.post("/api/auth/login", json={"email": "tech@liftco.example.com", "password": "Techpass1"})
    assert response.status_code == 401


def test_user_management_requires_admin(client, user_headers):
    headers = user_headers("dispatcher")
    assert client.get("/api/auth/users", headers=headers).status_code == 403


def test_readonly_user_cannot_write(client, readonly_headers):
    response = client.post("/api/clients/", json={"name": "Blocked"}, headers=readonly_headers)
    assert response.status_code == 403
    assert client.get("/api/clients/", headers=readonly_headers).status_code == 200
