"""Error taxonomy for the identity-provider handshake.

Failures inside the handshake are *values* (see
:class:`~atlas_messenger.identity_auth.models.ChallengeResult`), not raised
exceptions; :class:`ErrorKind` tells callers which bucket a failure falls in.
The only exception type lives here for the storage layer, where a corrupt
file on disk is a genuine fault.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of handshake failures."""

    # No app id and no custom endpoint; shown to the user, never via callback.
    CONFIGURATION = "configuration"
    # No usable stored credentials when a challenge arrives; logged only.
    PRECONDITION = "precondition"
    # Provider answered with a status outside 200/201.
    HTTP_STATUS = "http_status"
    # Provider answered with an explicit ``error`` field.
    REMOTE_REJECTION = "remote_rejection"
    # Transport failure or unparseable response.
    TRANSPORT = "transport"
    # Backend session reported an authentication error.
    BACKEND = "backend"

    @property
    def reportable(self) -> bool:
        """Whether failures of this kind go to the caller's result callback."""
        return self not in (ErrorKind.CONFIGURATION, ErrorKind.PRECONDITION)


class CredentialStoreError(RuntimeError):
    """Raised when a persisted credential record cannot be decoded."""

    def __init__(self, *, namespace: str, message: str | None = None) -> None:
        super().__init__(message or f"Stored credentials for {namespace!r} are unreadable.")
        self.namespace: str = namespace

    def to_payload(self) -> dict[str, str]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {
            "error": "credential_store",
            "namespace": self.namespace,
            "message": str(self),
        }
