"""AuthenticationProvider – login routing and backend session events.

The provider reconciles three independently changing facts into one routing
decision:

* does a backend session exist (and is it already authenticated)?
* are provider credentials stored?
* has the backend issued a challenge?

It implements :class:`~atlas_messenger.identity_auth.session.SessionListener`
so the backend session can deliver its events to it, and forwards the final
outcome to a single caller-supplied
:class:`~atlas_messenger.identity_auth.session.ResultCallback`.

Challenge exchanges run on a dedicated single-worker executor; overlapping
challenges are answered one after another in arrival order.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any

from atlas_messenger.identity_auth.errors import CredentialStoreError, ErrorKind
from atlas_messenger.identity_auth.models import ChallengeResult, Credentials, LoginRoute
from atlas_messenger.identity_auth.responder import ChallengeResponder
from atlas_messenger.identity_auth.session import (
    BackendSession,
    LoginNavigator,
    NullNavigator,
    ResultCallback,
)
from atlas_messenger.identity_auth.store import CredentialStore, default_store
from atlas_messenger.utils.environment import has_custom_endpoints
from atlas_messenger.utils.logging import mask_sensitive

_LOG = logging.getLogger("atlas-messenger.identity_auth.provider")


class AuthenticationProvider:
    """Routes login and answers backend challenges for one credential namespace."""

    def __init__(
        self,
        store: CredentialStore | None = None,
        *,
        navigator: LoginNavigator | None = None,
        responder: ChallengeResponder | None = None,
        http: Any = None,
        endpoint: str | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.store = store or default_store()
        self.navigator = navigator or NullNavigator()
        self.responder = responder or ChallengeResponder(
            self.store, http=http, endpoint=endpoint
        )
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="identity-auth"
        )
        self._callback: ResultCallback | None = None
        self._callback_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Credentials & callback                                             #
    # ------------------------------------------------------------------ #
    def set_credentials(self, credentials: Credentials | None) -> "AuthenticationProvider":
        """Replace stored credentials wholesale (``None`` clears them)."""
        self.store.save(credentials)
        return self

    def get_credentials(self) -> Credentials | None:
        try:
            return self.store.load()
        except CredentialStoreError as exc:
            _LOG.error("Ignoring unreadable credentials: %s", exc)
            return None

    def has_credentials(self) -> bool:
        return self.get_credentials() is not None

    def set_callback(self, callback: ResultCallback | None) -> "AuthenticationProvider":
        with self._callback_lock:
            self._callback = callback
        return self

    @property
    def callback(self) -> ResultCallback | None:
        with self._callback_lock:
            return self._callback

    # ------------------------------------------------------------------ #
    # Login routing                                                      #
    # ------------------------------------------------------------------ #
    def resolve_login_route(
        self, session: BackendSession | None, app_id: str | None, origin: Any = None
    ) -> LoginRoute:
        """Decide (and perform) the login route; first matching rule wins."""
        if app_id is None and not has_custom_endpoints():
            # Without an app id or custom endpoint nothing can authenticate.
            _LOG.error("No Layer App ID set")
            self.navigator.notify_app_id_required(origin)
            return LoginRoute.BLOCKED

        if session is not None and session.is_authenticated():
            _LOG.debug("No authentication routing required")
            return LoginRoute.NONE

        credentials = self.get_credentials()
        if session is not None and credentials is not None and credentials.is_usable:
            # Completion arrives later through the session listener events.
            _LOG.debug("Using cached credentials to resume")
            session.authenticate()
            return LoginRoute.RESUMED

        _LOG.debug("Routing to interactive login")
        self.navigator.navigate_to_login(origin)
        return LoginRoute.NAVIGATED

    def route_login(
        self, session: BackendSession | None, app_id: str | None, origin: Any = None
    ) -> bool:
        """Return True when routing was handled here (blocked or navigated away)."""
        return self.resolve_login_route(session, app_id, origin).handled

    # ------------------------------------------------------------------ #
    # SessionListener                                                    #
    # ------------------------------------------------------------------ #
    def on_authenticated(self, session: BackendSession, user_id: str) -> None:
        _LOG.debug("Authenticated with Layer, user ID: %s", user_id)
        session.connect()
        callback = self.callback
        if callback is not None:
            self._deliver(callback.on_success, user_id)

    def on_deauthenticated(self, session: BackendSession) -> None:  # noqa: ARG002
        _LOG.debug("Deauthenticated with Layer")

    def on_authentication_challenge(
        self, session: BackendSession, nonce: str
    ) -> Future[ChallengeResult]:
        """Answer *nonce* on the worker thread; the future resolves to the outcome."""
        _LOG.debug("Received challenge: %s", mask_sensitive(nonce, 6))
        try:
            future = self._executor.submit(self.responder.respond, session, nonce)
        except RuntimeError as exc:
            # Executor already shut down: resolve to a failure instead.
            _LOG.warning("Challenge received after close: %s", exc)
            future = Future()
            future.set_result(
                ChallengeResult.failure(
                    ErrorKind.TRANSPORT, f"Error when authenticating with provider: {exc}"
                )
            )
        future.add_done_callback(self._challenge_done)
        return future

    def on_authentication_error(self, session: BackendSession, error: Any) -> None:  # noqa: ARG002
        message = f"Failed to authenticate with Layer: {error}"
        _LOG.error(message)
        self._report_error(ChallengeResult.failure(ErrorKind.BACKEND, message))

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #
    def close(self) -> None:
        """Wait for in-flight exchanges and stop the owned worker."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "AuthenticationProvider":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ---------------- internal helpers --------------------------------- #
    def _challenge_done(self, future: Future[ChallengeResult]) -> None:
        try:
            result = future.result()
        except Exception as exc:  # broad: responder bug must still reach the caller
            result = ChallengeResult.failure(
                ErrorKind.TRANSPORT, f"Error when authenticating with provider: {exc}"
            )
        if result.reportable:
            self._report_error(result)

    def _report_error(self, result: ChallengeResult) -> None:
        callback = self.callback
        if callback is not None:
            self._deliver(callback.on_error, result.message or str(result.kind))

    def _deliver(self, method: Any, payload: str) -> None:
        try:
            method(self, payload)
        except Exception:  # broad: caller code must not break session events
            _LOG.exception("Result callback raised")
