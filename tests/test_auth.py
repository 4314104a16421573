from atelier.auth import has_permission
from atelier.config import ACCESS_TOKEN_COOKIE_NAME
from atelier.models import User


def register(client, email="nuevo@example.com", password="secret123", name="Nuevo"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def test_register_sets_session_cookie(client):
    resp = register(client, email="Nuevo@Example.com")
    assert resp.status_code == 201
    body = resp.json()
    assert body["user"]["email"] == "nuevo@example.com"
    assert body["user"]["role"] == "customer"
    assert ACCESS_TOKEN_COOKIE_NAME in resp.cookies

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["id"] == body["user"]["id"]


def test_duplicate_email(client):
    register(client)
    assert register(client).status_code == 409


def test_register_validation(client):
    assert register(client, email="not-an-email").status_code == 400
    assert register(client, password="short").status_code == 400


def test_login_and_bearer_token(client):
    register(client)
    client.cookies.clear()

    assert client.post("/api/auth/login", json={"email": "nuevo@example.com", "password": "wrong-pass"}).status_code == 401

    resp = client.post("/api/auth/login", json={"email": "nuevo@example.com", "password": "secret123"})
    assert resp.status_code == 200
    token = resp.json()["token"]
    client.cookies.clear()

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["user"]["email"] == "nuevo@example.com"


def test_logout_clears_session(client):
    register(client)
    client.post("/api/auth/logout")
    assert client.get("/api/auth/me").status_code == 401


def test_invalid_token(client):
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_role_permissions():
    assert has_permission(User(role="admin"), "dashboard", "view")
    assert not has_permission(User(role="customer"), "dashboard", "view")
    assert not has_permission(None, "orders", "view")
