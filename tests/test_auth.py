from predictleague.api.auth import AUTH_RATE_LIMIT_MAX


def test_register_login_me(client):
    resp = client.post("/auth/register", json={"username": "newfan", "password": "secret123"})
    assert resp.status_code == 201
    assert resp.json()["role"] == "user"
    assert "token" in resp.cookies

    resp = client.post("/auth/login", json={"username": "newfan", "password": "secret123"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "newfan"
    assert me.json()["points"] == 0


def test_cookie_authenticates(client):
    client.post("/auth/register", json={"username": "cookiefan", "password": "secret123"})
    assert client.get("/auth/me").json()["username"] == "cookiefan"

    client.post("/auth/logout")
    assert client.get("/auth/me").status_code == 401


def test_duplicate_username(client, make_user):
    make_user("taken")
    resp = client.post("/auth/register", json={"username": "taken", "password": "secret123"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "username_taken"


def test_bad_credentials(client, make_user):
    make_user("fan", password="right-password")
    resp = client.post("/auth/login", json={"username": "fan", "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "invalid_credentials"


def test_invalid_token(client):
    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "invalid_token"


def test_auth_rate_limit(client):
    payload = {"username": "nobody", "password": "whatever"}
    for _ in range(AUTH_RATE_LIMIT_MAX):
        assert client.post("/auth/login", json=payload).status_code == 401
    assert client.post("/auth/login", json=payload).status_code == 429


def test_admin_check(client, admin, make_user, auth_headers):
    assert client.get("/admin/check", headers=auth_headers(admin)).status_code == 200
    fan = make_user("fan")
    assert client.get("/admin/check", headers=auth_headers(fan)).status_code == 403
