"""Typed, immutable records used by the identity-provider handshake."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Mapping

from atlas_messenger.identity_auth.errors import ErrorKind
from atlas_messenger.utils.logging import mask_sensitive

# Persisted field names; ``appId`` doubles as the "record exists" sentinel.
APP_ID_KEY: Final[str] = "appId"
EMAIL_KEY: Final[str] = "email"
PASSWORD_KEY: Final[str] = "password"
AUTH_TOKEN_KEY: Final[str] = "authToken"


def normalize_app_id(app_id: str | None) -> str | None:
    """Keep only the trailing segment of a ``layer:///apps/<env>/<id>`` style URI."""
    if app_id is None:
        return None
    return app_id.rsplit("/", 1)[-1]


@dataclass(frozen=True, slots=True)
class Credentials:
    """Identity-provider credentials for one backend application."""

    app_id: str | None
    email: str | None = None
    password: str | None = field(default=None, repr=False)
    auth_token: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "app_id", normalize_app_id(self.app_id))

    @property
    def is_usable(self) -> bool:
        """True when the record can answer a challenge."""
        return bool(
            self.app_id
            and self.email
            and (self.password is not None or self.auth_token is not None)
        )

    def with_auth_token(self, auth_token: str | None) -> "Credentials":
        """Return a copy holding *auth_token* and no plaintext password."""
        return Credentials(self.app_id, self.email, None, auth_token)

    def to_record(self) -> dict[str, str | None]:
        return {
            APP_ID_KEY: self.app_id,
            EMAIL_KEY: self.email,
            PASSWORD_KEY: self.password,
            AUTH_TOKEN_KEY: self.auth_token,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Credentials | None":
        """Rebuild credentials from persisted fields; ``None`` without ``appId``."""
        if APP_ID_KEY not in record:
            return None
        return cls(
            record.get(APP_ID_KEY),
            record.get(EMAIL_KEY),
            record.get(PASSWORD_KEY),
            record.get(AUTH_TOKEN_KEY),
        )

    def describe(self) -> dict[str, Any]:
        """Return a log/CLI friendly summary with secrets masked."""
        return {
            "app_id": self.app_id,
            "email": mask_sensitive(self.email, 3),
            "has_password": self.password is not None,
            "has_auth_token": self.auth_token is not None,
            "usable": self.is_usable,
        }


@dataclass(frozen=True, slots=True)
class ChallengeResult:
    """Outcome of one challenge-response exchange."""

    ok: bool
    identity_token: str | None = field(default=None, repr=False)
    kind: ErrorKind | None = None
    message: str | None = None
    status_code: int | None = None

    @classmethod
    def success(cls, identity_token: str | None) -> "ChallengeResult":
        return cls(ok=True, identity_token=identity_token)

    @classmethod
    def failure(
        cls, kind: ErrorKind, message: str, *, status_code: int | None = None
    ) -> "ChallengeResult":
        return cls(ok=False, kind=kind, message=message, status_code=status_code)

    @property
    def reportable(self) -> bool:
        """True when the failure must reach the caller's result callback."""
        return not self.ok and self.kind is not None and self.kind.reportable


class LoginRoute(str, Enum):
    """Outcome of a login routing decision."""

    BLOCKED = "blocked"  # no app id and no custom endpoint
    NONE = "none"  # session already authenticated
    RESUMED = "resumed"  # session.authenticate() called with cached credentials
    NAVIGATED = "navigated"  # interactive login requested

    @property
    def handled(self) -> bool:
        """Boolean form: True when the caller must not continue its own flow."""
        return self in (LoginRoute.BLOCKED, LoginRoute.NAVIGATED)
