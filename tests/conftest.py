"""Shared pytest configuration and test doubles."""

from __future__ import annotations

import threading
import uuid
from typing import Any, Callable

import pytest

from atlas_messenger.identity_auth.models import Credentials
from atlas_messenger.identity_auth.store import MemoryCredentialStore
from atlas_messenger.utils import environment


def pytest_configure(config):
    """Add integration marker."""
    config.addinivalue_line(
        "markers", "integration: mark test as requiring integration with real services"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly requested.

    Tests marked with 'ci_safe' are always run (even inside the integration
    directory) because they stub all external calls and are safe for CI.
    """
    if not config.getoption("--integration", default=False):
        skip_integration = pytest.mark.skip(reason="Need --integration option to run")
        for item in items:
            if "integration" in item.keywords and "ci_safe" not in item.keywords:
                item.add_marker(skip_integration)


def pytest_addoption(parser):
    """Add integration option to pytest."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )


# --------------------------------------------------------------------------- #
# Environment isolation                                                       #
# --------------------------------------------------------------------------- #
@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Strip ATLAS_* variables and keep any default store inside *tmp_path*."""
    for name in (
        environment.PROVIDER_URL_ENV,
        environment.TIMEOUT_ENV,
        environment.ENDPOINTS_ENV,
        environment.CONFIG_FILE_ENV,
        "ATLAS_AUTH_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv(environment.STORAGE_DIR_ENV, str(tmp_path / "default-store"))


# --------------------------------------------------------------------------- #
# Test doubles                                                                #
# --------------------------------------------------------------------------- #
class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code: int = 200, body: Any = None, text: str | None = None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ("" if body is None else repr(body))

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeHttp:
    """Records ``post`` calls and answers from a canned response or callable."""

    def __init__(self, response: FakeResponse | Callable[..., FakeResponse] | Exception):
        self.response = response
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def post(self, url: str, *, json: Any = None, headers: Any = None, timeout: Any = None):
        with self._lock:
            self.calls.append(
                {"url": url, "json": json, "headers": dict(headers or {}), "timeout": timeout}
            )
        if isinstance(self.response, Exception):
            raise self.response
        if callable(self.response):
            return self.response(url, json=json, headers=headers)
        return self.response


class FakeSession:
    """Backend session double recording every call."""

    def __init__(self, authenticated: bool = False) -> None:
        self.authenticated = authenticated
        self.connect_calls = 0
        self.authenticate_calls = 0
        self.answers: list[str | None] = []

    def connect(self) -> None:
        self.connect_calls += 1

    def is_authenticated(self) -> bool:
        return self.authenticated

    def authenticate(self) -> None:
        self.authenticate_calls += 1

    def answer_challenge(self, identity_token: str | None) -> None:
        self.answers.append(identity_token)


class RecordingCallback:
    """ResultCallback collecting (kind, provider, payload) tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any, str]] = []

    def on_success(self, provider: Any, user_id: str) -> None:
        self.events.append(("success", provider, user_id))

    def on_error(self, provider: Any, message: str) -> None:
        self.events.append(("error", provider, message))

    @property
    def errors(self) -> list[str]:
        return [payload for kind, _, payload in self.events if kind == "error"]


@pytest.fixture()
def memory_store() -> MemoryCredentialStore:
    """Fresh in-memory store under a unique namespace."""
    return MemoryCredentialStore(namespace=f"test-{uuid.uuid4().hex[:8]}")


@pytest.fixture()
def password_credentials() -> Credentials:
    return Credentials("layer:///apps/staging/app-123", "user@example.com", "s3cret")


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def recording_callback() -> RecordingCallback:
    return RecordingCallback()


@pytest.fixture()
def make_http() -> Callable[..., FakeHttp]:
    return FakeHttp


@pytest.fixture()
def make_response() -> Callable[..., FakeResponse]:
    return FakeResponse
