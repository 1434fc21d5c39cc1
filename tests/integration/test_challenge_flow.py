"""Integration test: full login → challenge → authenticated round-trip.

A fake identity provider runs as a Starlette app and is reached through
``starlette.testclient.TestClient``; the backend session is a scripted double
that issues a nonce on ``authenticate()`` and reports success once the
identity token matches.  Credentials live in a real DiskCredentialStore.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from atlas_messenger.identity_auth.models import Credentials
from atlas_messenger.identity_auth.provider import AuthenticationProvider
from atlas_messenger.identity_auth.store import DiskCredentialStore

ENDPOINT = "http://testserver/users/sign_in.json"
APP_ID = "9ec30af8-5591-11e4-af9e-f7a201004a3b"
USERS = {"user@example.com": "s3cret"}


# --------------------------------------------------------------------------- #
# Fake identity provider                                                      #
# --------------------------------------------------------------------------- #
def _build_identity_provider(
    seen: list[dict[str, Any]], issued_tokens: dict[str, str]
) -> Starlette:
    async def sign_in(request: Request) -> JSONResponse:
        body = await request.json()
        seen.append({"headers": dict(request.headers), "body": body})

        if request.headers.get("x_layer_app_id") != APP_ID:
            return JSONResponse({"error": "unknown app"}, status_code=404)
        nonce = body.get("nonce")
        if nonce == "stale":
            return JSONResponse({"error": "invalid nonce"}, status_code=422)

        email = body["user"]["email"]
        password = body["user"]["password"]
        token = request.headers.get("x_auth_token")
        if USERS.get(email) != password and issued_tokens.get(email) != token:
            return JSONResponse({"error": "Invalid email or password."})

        new_token = f"tok-{len(issued_tokens) + 1}"
        issued_tokens[email] = new_token
        return JSONResponse(
            {"authentication_token": new_token, "layer_identity_token": f"idt:{email}:{nonce}"},
            status_code=201,
        )

    return Starlette(routes=[Route("/users/sign_in.json", sign_in, methods=["POST"])])


class _TestClientTransport:
    """Adapts TestClient to the responder's ``post`` call (no socket timeouts)."""

    def __init__(self, client: TestClient) -> None:
        self.client = client

    def post(self, url: str, **kwargs: Any):
        kwargs.pop("timeout", None)
        return self.client.post(url, **kwargs)


class ScriptedSession:
    """Backend session that challenges on authenticate() and checks the answer."""

    def __init__(self, nonce: str) -> None:
        self.nonce = nonce
        self.listener: Any = None
        self.authenticated = False
        self.connected = False

    def connect(self) -> None:
        self.connected = True

    def is_authenticated(self) -> bool:
        return self.authenticated

    def authenticate(self) -> None:
        self.listener.on_authentication_challenge(self, self.nonce)

    def answer_challenge(self, identity_token: str | None) -> None:
        if identity_token and identity_token.endswith(f":{self.nonce}"):
            self.authenticated = True
            self.listener.on_authenticated(self, "user-1")
        else:
            self.listener.on_authentication_error(self, "identity token rejected")


def _run_login(
    store_dir: Path, nonce: str, callback, issued_tokens: dict[str, str] | None = None
) -> tuple[ScriptedSession, list[dict]]:
    seen: list[dict[str, Any]] = []
    issued_tokens = {} if issued_tokens is None else issued_tokens
    store = DiskCredentialStore("IntegrationProvider", base_dir=store_dir)
    with TestClient(_build_identity_provider(seen, issued_tokens)) as client:
        with AuthenticationProvider(
            store, http=_TestClientTransport(client), endpoint=ENDPOINT
        ) as provider:
            provider.set_callback(callback)
            session = ScriptedSession(nonce)
            session.listener = provider
            routed = provider.route_login(session, APP_ID, origin=None)
            assert routed is False
    return session, seen


# --------------------------------------------------------------------------- #
# Tests                                                                       #
# --------------------------------------------------------------------------- #
@pytest.mark.integration
@pytest.mark.ci_safe
def test_password_login_then_token_resume(tmp_path: Path, recording_callback) -> None:
    store = DiskCredentialStore("IntegrationProvider", base_dir=tmp_path)
    store.save(Credentials(f"layer:///apps/staging/{APP_ID}", "user@example.com", "s3cret"))

    issued: dict[str, str] = {}

    # 1) First login: plaintext password exchanged for a provider token
    session, seen = _run_login(tmp_path, "nonce-1", recording_callback, issued)
    assert session.authenticated and session.connected
    assert [e[0] for e in recording_callback.events] == ["success"]
    assert seen[0]["body"]["user"]["password"] == "s3cret"
    assert store.load() == Credentials(APP_ID, "user@example.com", None, "tok-1")

    # 2) "Restart": token-only credentials still answer a new challenge
    session, seen = _run_login(tmp_path, "nonce-2", recording_callback, issued)
    assert session.authenticated
    assert seen[0]["headers"]["x_auth_token"] == "tok-1"
    assert seen[0]["body"]["user"]["password"] is None
    assert [e[0] for e in recording_callback.events] == ["success", "success"]


@pytest.mark.integration
@pytest.mark.ci_safe
def test_rejected_nonce_reports_single_error(tmp_path: Path, recording_callback) -> None:
    store = DiskCredentialStore("IntegrationProvider", base_dir=tmp_path)
    original = Credentials(APP_ID, "user@example.com", "s3cret")
    store.save(original)

    session, _ = _run_login(tmp_path, "stale", recording_callback)

    assert session.authenticated is False
    assert len(recording_callback.errors) == 1
    assert "invalid nonce" in recording_callback.errors[0]
    assert store.load() == original


@pytest.mark.integration
@pytest.mark.ci_safe
def test_wrong_password_is_remote_rejection(tmp_path: Path, recording_callback) -> None:
    store = DiskCredentialStore("IntegrationProvider", base_dir=tmp_path)
    store.save(Credentials(APP_ID, "user@example.com", "wrong"))

    session, _ = _run_login(tmp_path, "nonce-1", recording_callback)

    assert session.authenticated is False
    assert recording_callback.errors == ["Invalid email or password."]
