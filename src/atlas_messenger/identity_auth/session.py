"""Collaborator interfaces around the identity-provider handshake.

The backend session, the login UI and the caller's result sink are all
external.  They are described here as :class:`~typing.Protocol` classes so
that any object with the right methods can be plugged in, including plain
``unittest.mock`` doubles.

Flow
----
``BackendSession`` → ``SessionListener`` (implemented by
:class:`~atlas_messenger.identity_auth.provider.AuthenticationProvider`)
→ ``ResultCallback`` (supplied by the caller).
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

_LOG = logging.getLogger("atlas-messenger.identity_auth.session")


@runtime_checkable
class BackendSession(Protocol):
    """Long-lived connection to the messaging backend."""

    def connect(self) -> None: ...

    def is_authenticated(self) -> bool: ...

    def authenticate(self) -> None: ...

    def answer_challenge(self, identity_token: str | None) -> None: ...


@runtime_checkable
class SessionListener(Protocol):
    """Authentication events delivered by a :class:`BackendSession`."""

    def on_authenticated(self, session: BackendSession, user_id: str) -> None: ...

    def on_deauthenticated(self, session: BackendSession) -> None: ...

    def on_authentication_challenge(self, session: BackendSession, nonce: str) -> Any: ...

    def on_authentication_error(self, session: BackendSession, error: Any) -> None: ...


@runtime_checkable
class ResultCallback(Protocol):
    """Caller-facing sink for the final authentication outcome."""

    def on_success(self, provider: Any, user_id: str) -> None: ...

    def on_error(self, provider: Any, message: str) -> None: ...


@runtime_checkable
class LoginNavigator(Protocol):
    """UI hooks used while routing login.  ``origin`` is opaque to this package."""

    def notify_app_id_required(self, origin: Any) -> None: ...

    def navigate_to_login(self, origin: Any) -> None: ...


class NullNavigator:
    """Navigator for headless use: logs the request and shows nothing."""

    def notify_app_id_required(self, origin: Any) -> None:
        _LOG.debug("App ID required (origin=%r)", origin)

    def navigate_to_login(self, origin: Any) -> None:
        _LOG.debug("Interactive login requested (origin=%r)", origin)
