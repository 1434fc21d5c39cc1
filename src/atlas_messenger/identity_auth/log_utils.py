"""Structured logging helpers for identity-provider components.

This module restricts **which** contextual attributes are attached to log
records so that credentials never leak into logs.  Helpers ONLY inject the
following *non-sensitive* fields:

- ``namespace``    – Credential namespace (provider name)
- ``app_id``       – Backend application id (first 8 chars kept)
- ``exchange_id``  – Random id of one challenge-response exchange

Usage
-----
>>> from atlas_messenger.identity_auth.log_utils import get_auth_logger
>>> log = get_auth_logger(
...     base_logger_name="atlas-messenger.identity_auth.responder",
...     namespace="RailsAuthenticationProvider",
...     app_id="9ec30af8-5591-11e4-af9e-f7a201004a3b",
... )
>>> log.info("Posting challenge")

The adapter is a thin wrapper around :class:`logging.LoggerAdapter`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted handshake context into log records."""

    extra_keys = ("namespace", "app_id", "exchange_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if not extra or extra.get(k) is None:
                continue
            if k == "app_id":
                extra_clean[k] = str(extra[k])[:8]
            else:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "atlas-messenger.identity_auth",
    namespace: str | None = None,
    app_id: str | None = None,
    exchange_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with handshake context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {
            "namespace": namespace,
            "app_id": app_id,
            "exchange_id": exchange_id,
        },
    )
