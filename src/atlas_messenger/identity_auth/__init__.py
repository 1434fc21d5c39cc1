"""Identity-provider challenge handshake.

This namespace hosts the building blocks that authenticate a user against the
identity provider and answer the backend session's nonce challenge.

Sub-modules
-----------
models
    Immutable credentials record, challenge result and login route.
errors
    Error taxonomy and the storage exception.
store
    Credential persistence (disk and in-memory) behind a narrow protocol.
session
    Protocols for the backend session, listener, result callback and UI.
responder
    The network challenge-response exchange.
provider
    Login routing and session event handling.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .errors import CredentialStoreError, ErrorKind  # noqa: F401
from .models import ChallengeResult, Credentials, LoginRoute, normalize_app_id  # noqa: F401
from .store import (  # noqa: F401
    DEFAULT_NAMESPACE,
    CredentialStore,
    DiskCredentialStore,
    MemoryCredentialStore,
    default_store,
)
from .session import (  # noqa: F401
    BackendSession,
    LoginNavigator,
    NullNavigator,
    ResultCallback,
    SessionListener,
)
from .responder import ChallengeResponder  # noqa: F401
from .provider import AuthenticationProvider  # noqa: F401
from .log_utils import get_auth_logger  # noqa: F401

__all__ = [
    # errors
    "CredentialStoreError",
    "ErrorKind",
    # models
    "ChallengeResult",
    "Credentials",
    "LoginRoute",
    "normalize_app_id",
    # store
    "DEFAULT_NAMESPACE",
    "CredentialStore",
    "DiskCredentialStore",
    "MemoryCredentialStore",
    "default_store",
    # collaborators
    "BackendSession",
    "LoginNavigator",
    "NullNavigator",
    "ResultCallback",
    "SessionListener",
    # handshake
    "ChallengeResponder",
    "AuthenticationProvider",
    # logging helpers
    "get_auth_logger",
]
