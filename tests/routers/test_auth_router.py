import httpx
from fastapi import FastAPI
from fastapi.testclient import TestClient

from folio.routers import auth
from folio.security import get_identity_client
from folio.services.auth_service import IdentityClient
from tests.conftest import make_settings, mock_client


def identity_handler(request):
    if request.url.path.endswith("accounts:signInWithPassword"):
        body = request.read()
        if b'"password":"secret"' not in body.replace(b" ", b""):
            return httpx.Response(400, json={"error": {"message": "INVALID_LOGIN_CREDENTIALS"}})
        return httpx.Response(
            200,
            json={
                "localId": "uid-1",
                "email": "me@example.com",
                "idToken": "good-token",
                "refreshToken": "refresh",
                "expiresIn": "3600",
            },
        )
    if request.url.path.endswith("accounts:lookup"):
        if b"good-token" in request.read():
            return httpx.Response(
                200, json={"users": [{"localId": "uid-1", "email": "me@example.com"}]}
            )
        return httpx.Response(400, json={"error": {"message": "INVALID_ID_TOKEN"}})
    return httpx.Response(404)


def build_client(**settings_overrides):
    app = FastAPI()
    app.dependency_overrides[get_identity_client] = lambda: IdentityClient(
        make_settings(**settings_overrides), client=mock_client(identity_handler)
    )
    app.include_router(auth.router)
    return TestClient(app)


def test_login_returns_session():
    res = build_client().post(
        "/auth/login", json={"email": "me@example.com", "password": "secret"}
    )

    assert res.status_code == 200
    body = res.json()
    assert body["idToken"] == "good-token"
    assert body["user"]["uid"] == "uid-1"


def test_login_with_wrong_credentials():
    res = build_client().post(
        "/auth/login", json={"email": "me@example.com", "password": "nope"}
    )

    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid email or password"


def test_login_without_provider_configured():
    res = build_client(FIREBASE_API_KEY="").post(
        "/auth/login", json={"email": "me@example.com", "password": "secret"}
    )

    assert res.status_code == 503


def test_me_requires_valid_bearer_token():
    client = build_client()

    assert client.get("/auth/me").status_code == 401
    assert (
        client.get("/auth/me", headers={"Authorization": "Bearer bad-token"}).status_code
        == 401
    )

    res = client.get("/auth/me", headers={"Authorization": "Bearer good-token"})
    assert res.status_code == 200
    assert res.json()["email"] == "me@example.com"


def test_logout():
    res = build_client().post(
        "/auth/logout", headers={"Authorization": "Bearer good-token"}
    )

    assert res.json() == {"message": "Signed out"}
