"""ChallengeResponder – answers backend authentication challenges.

When the backend session issues a nonce, the responder:

1. loads the stored :class:`~atlas_messenger.identity_auth.models.Credentials`,
2. POSTs them together with the nonce to the identity provider,
3. replaces the stored record (password dropped, provider token kept),
4. hands the returned identity token to ``session.answer_challenge``.

Every outcome is returned as a
:class:`~atlas_messenger.identity_auth.models.ChallengeResult`; nothing is
raised to the caller.  Exactly one HTTP request is sent per call and no retry
is attempted.

Exchanges for the same credential namespace are serialised with
:func:`~atlas_messenger.identity_auth.store.namespace_lock`.  The call blocks
on network and disk I/O and must run on a worker thread (the provider takes
care of that).
"""

from __future__ import annotations

import uuid
from typing import Any, Final, Tuple

import requests

from atlas_messenger.identity_auth.errors import CredentialStoreError, ErrorKind
from atlas_messenger.identity_auth.log_utils import get_auth_logger
from atlas_messenger.identity_auth.models import ChallengeResult, Credentials
from atlas_messenger.identity_auth.session import BackendSession
from atlas_messenger.identity_auth.store import CredentialStore, namespace_lock
from atlas_messenger.utils.environment import get_http_timeout, get_provider_url
from atlas_messenger.utils.logging import mask_sensitive

_LOGGER_NAME: Final[str] = "atlas-messenger.identity_auth.responder"

APP_ID_HEADER: Final[str] = "X_LAYER_APP_ID"
EMAIL_HEADER: Final[str] = "X_AUTH_EMAIL"
TOKEN_HEADER: Final[str] = "X_AUTH_TOKEN"

_SUCCESS_STATUSES: Final[Tuple[int, ...]] = (200, 201)


def build_headers(credentials: Credentials) -> dict[str, str]:
    """Return request headers for *credentials*; token does not suppress email."""
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        APP_ID_HEADER: credentials.app_id or "",
    }
    if credentials.email is not None:
        headers[EMAIL_HEADER] = credentials.email
    if credentials.auth_token is not None:
        headers[TOKEN_HEADER] = credentials.auth_token
    return headers


def build_payload(credentials: Credentials, nonce: str) -> dict[str, Any]:
    return {
        "user": {"email": credentials.email, "password": credentials.password},
        "nonce": nonce,
    }


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _error_detail(resp: Any) -> str | None:
    """Return the ``error`` field of a rejected response body, if it has one."""
    try:
        data = resp.json()
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("error") is not None:
        return _optional_str(data["error"])
    return None


class ChallengeResponder:
    """Performs the identity-provider exchange for one credential namespace."""

    def __init__(
        self,
        store: CredentialStore,
        *,
        http: Any = None,
        endpoint: str | None = None,
        timeout: Tuple[float, float] | float | None = None,
    ) -> None:
        self.store = store
        # Anything exposing ``post(url, json=, headers=, timeout=)`` works.
        self.http = http if http is not None else requests
        self._endpoint = endpoint
        self._timeout = timeout

    @property
    def endpoint(self) -> str:
        return self._endpoint or get_provider_url()

    @property
    def timeout(self) -> Tuple[float, float] | float:
        return self._timeout if self._timeout is not None else get_http_timeout()

    def respond(self, session: BackendSession, nonce: str) -> ChallengeResult:
        """Run one challenge-response exchange and return its outcome."""
        with namespace_lock(self.store.namespace):
            return self._respond_locked(session, nonce)

    # ---------------- internal helpers --------------------------------- #
    def _load(self) -> Credentials | None:
        try:
            return self.store.load()
        except CredentialStoreError as exc:
            get_auth_logger(
                base_logger_name=_LOGGER_NAME, namespace=self.store.namespace
            ).error("Could not load stored credentials: %s", exc)
            return None

    def _respond_locked(self, session: BackendSession, nonce: str) -> ChallengeResult:
        credentials = self._load()
        if credentials is None or not credentials.is_usable:
            get_auth_logger(
                base_logger_name=_LOGGER_NAME, namespace=self.store.namespace
            ).warning("No stored credentials to respond to challenge with")
            return ChallengeResult.failure(
                ErrorKind.PRECONDITION,
                "No stored credentials to respond to challenge with",
            )

        url = self.endpoint
        log = get_auth_logger(
            base_logger_name=_LOGGER_NAME,
            namespace=self.store.namespace,
            app_id=credentials.app_id,
            exchange_id=uuid.uuid4().hex[:12],
        )
        log.debug(
            "Requesting identity token for %s nonce=%s from %s",
            mask_sensitive(credentials.email, 3),
            mask_sensitive(nonce, 6),
            url,
        )

        try:
            resp = self.http.post(
                url,
                json=build_payload(credentials, nonce),
                headers=build_headers(credentials),
                timeout=self.timeout,
            )

            status_code = resp.status_code
            if status_code not in _SUCCESS_STATUSES:
                error = (
                    f"Got status {status_code} when requesting authentication for "
                    f"'{credentials.email}' with nonce '{nonce}' from '{url}'"
                )
                detail = _error_detail(resp)
                if detail:
                    error = f"{error}: {detail}"
                log.error(error)
                return ChallengeResult.failure(
                    ErrorKind.HTTP_STATUS, error, status_code=status_code
                )

            data = resp.json()
            if not isinstance(data, dict):
                raise ValueError(f"unexpected response body type {type(data).__name__}")
            if "error" in data:
                error = _optional_str(data["error"]) or "Unknown provider error"
                log.error(error)
                return ChallengeResult.failure(
                    ErrorKind.REMOTE_REJECTION, error, status_code=status_code
                )

            # Save provider's auth token and drop the plaintext password.
            auth_token = _optional_str(data.get("authentication_token"))
            self.store.save(credentials.with_auth_token(auth_token))

            identity_token = _optional_str(data.get("layer_identity_token"))
            log.debug("Got identity token %s", mask_sensitive(identity_token, 6))
            session.answer_challenge(identity_token)
        except Exception as exc:  # broad: every fault becomes one callback
            error = f"Error when authenticating with provider: {exc}"
            log.error(error, exc_info=True)
            return ChallengeResult.failure(ErrorKind.TRANSPORT, error)

        log.info("Answered authentication challenge")
        return ChallengeResult.success(identity_token)
