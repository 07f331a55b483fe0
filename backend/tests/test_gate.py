"""
Authentication context derivation and the /host gate.

The unit-level tests wrap a tiny app whose protected handler counts calls,
with a fixed session injected in place of the cookie layer.
"""

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from conftest import PASSWORD, login
from middleware.auth import (
    AuthContextMiddleware,
    ProtectedPrefixMiddleware,
    derive_auth,
    is_under_prefix,
)
from models.auth import Anonymous, Authenticated


class FixedSession:
    """Stands in for the session layer: every request sees `session`."""

    def __init__(self, app, session):
        self.app = app
        self.session = session

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and self.session is not None:
            scope["session"] = dict(self.session)
        await self.app(scope, receive, send)


def _gated_app(session):
    calls = []
    app = FastAPI()

    @app.get("/host/dashboard")
    async def dashboard():
        calls.append("dashboard")
        return {"ok": True}

    @app.get("/hosting")
    async def hosting():
        return {"ok": True}

    @app.get("/whoami")
    async def whoami(request: Request):
        return {"is_logged_in": request.state.auth.is_logged_in}

    app.add_middleware(ProtectedPrefixMiddleware, prefix="/host", login_path="/login")
    app.add_middleware(AuthContextMiddleware)
    app.add_middleware(FixedSession, session=session)
    return TestClient(app), calls


class TestDeriveAuth:
    def test_logged_in_session_is_authenticated(self):
        auth = derive_auth({"isLoggedIn": True, "userId": "u1"})
        assert isinstance(auth, Authenticated)
        assert auth.is_logged_in
        assert auth.user_id == "u1"

    def test_logged_out_session_is_anonymous(self):
        auth = derive_auth({"isLoggedIn": False, "userId": "u1"})
        assert isinstance(auth, Anonymous)
        assert not auth.is_logged_in

    def test_missing_session_is_anonymous(self):
        assert not derive_auth(None).is_logged_in
        assert not derive_auth({}).is_logged_in

    @pytest.mark.parametrize("session", [{"isLoggedIn": True}, {"isLoggedIn": False}, None])
    def test_repeated_derivation_is_stable(self, session):
        first = derive_auth(session)
        for _ in range(5):
            assert derive_auth(session) == first


class TestPrefixMatching:
    def test_matches_prefix_and_subpaths(self):
        assert is_under_prefix("/host", "/host")
        assert is_under_prefix("/host/", "/host")
        assert is_under_prefix("/host/add-home", "/host")

    def test_does_not_match_lookalikes(self):
        assert not is_under_prefix("/hosting", "/host")
        assert not is_under_prefix("/", "/host")
        assert not is_under_prefix("/homes/host", "/host")


class TestProtectedPrefixGate:
    @pytest.mark.parametrize("session", [None, {}, {"isLoggedIn": False}])
    def test_anonymous_is_redirected_and_handler_never_runs(self, session):
        client, calls = _gated_app(session)

        response = client.get("/host/dashboard", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/login"
        assert calls == []

    def test_logged_in_reaches_protected_handler(self):
        client, calls = _gated_app({"isLoggedIn": True, "userId": "u1"})

        response = client.get("/host/dashboard", follow_redirects=False)

        assert response.status_code == 200
        assert calls == ["dashboard"]

    def test_paths_outside_prefix_pass_through(self):
        client, _ = _gated_app(None)
        assert client.get("/hosting", follow_redirects=False).status_code == 200

    def test_gate_decision_is_repeatable(self):
        client, calls = _gated_app({"isLoggedIn": False})
        statuses = {client.get("/host/dashboard", follow_redirects=False).status_code for _ in range(3)}
        assert statuses == {302}
        assert calls == []

    def test_auth_context_is_on_request_state(self):
        client, _ = _gated_app({"isLoggedIn": True})
        assert client.get("/whoami").json() == {"is_logged_in": True}

        client, _ = _gated_app(None)
        assert client.get("/whoami").json() == {"is_logged_in": False}


class TestGateInFullApp:
    def test_anonymous_dashboard_redirects_to_login(self, client):
        response = client.get("/host/dashboard", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login"

    def test_authenticated_dashboard_is_served(self, client, host_user):
        assert login(client, host_user.email).status_code == 302

        response = client.get("/host/dashboard", follow_redirects=False)

        assert response.status_code == 200
        assert response.json()["host"]["email"] == host_user.email

    def test_unknown_path_hits_fallback(self, client):
        response = client.get("/does-not-exist")
        assert response.status_code == 404
        assert response.json()["page"] == "404"

    def test_logout_closes_the_gate(self, client, host_user):
        login(client, host_user.email)
        assert client.get("/host/dashboard", follow_redirects=False).status_code == 200

        client.post("/logout", follow_redirects=False)

        response = client.get("/host/dashboard", follow_redirects=False)
        assert response.status_code == 302

    def test_wrong_password_keeps_gate_closed(self, client, host_user):
        response = login(client, host_user.email, PASSWORD + "x")
        assert response.status_code == 401
        assert client.get("/host/dashboard", follow_redirects=False).status_code == 302
