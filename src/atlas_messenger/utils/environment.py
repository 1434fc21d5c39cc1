"""Utility functions related to environment configuration."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Tuple

logger = logging.getLogger("atlas-messenger.utils.environment")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")

DEFAULT_PROVIDER_URL: Final[str] = (
    "https://layer-identity-provider.herokuapp.com/users/sign_in.json"
)
DEFAULT_TIMEOUT: Final[Tuple[float, float]] = (5.0, 20.0)

PROVIDER_URL_ENV: Final[str] = "ATLAS_IDENTITY_PROVIDER_URL"
STORAGE_DIR_ENV: Final[str] = "ATLAS_AUTH_STORAGE_DIR"
TIMEOUT_ENV: Final[str] = "ATLAS_HTTP_TIMEOUT_SECONDS"
ENDPOINTS_ENV: Final[str] = "ATLAS_CUSTOM_ENDPOINTS"
CONFIG_FILE_ENV: Final[str] = "ATLAS_CONFIGURATION_FILE"


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class CustomEndpoint:
    """Alternate backend/provider endpoint set, used instead of a public app id."""

    name: str
    app_id: str | None = None
    platform_url: str | None = None
    provider_url: str | None = None
    enabled: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomEndpoint":
        return cls(
            name=str(data.get("name") or "unnamed"),
            app_id=data.get("app_id"),
            platform_url=data.get("platform_url"),
            provider_url=data.get("provider_url"),
            enabled=_truthy(data.get("enabled")),
        )


def _raw_endpoints() -> list[Any]:
    """
    Return the raw endpoint list from the environment.

    ``ATLAS_CUSTOM_ENDPOINTS`` (inline JSON) wins over
    ``ATLAS_CONFIGURATION_FILE`` (path to a JSON file).  Malformed input is
    logged and treated as "no endpoints".
    """
    inline = os.getenv(ENDPOINTS_ENV)
    if inline:
        source = ENDPOINTS_ENV
        text = inline
    else:
        path = os.getenv(CONFIG_FILE_ENV)
        if not path:
            return []
        source = path
        try:
            text = Path(path).expanduser().read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read endpoint configuration %s: %s", path, exc)
            return []

    try:
        data = json.loads(text)
    except ValueError as exc:
        logger.warning("Ignoring malformed endpoint configuration from %s: %s", source, exc)
        return []

    if isinstance(data, dict):
        data = data.get("endpoints", [data])
    if not isinstance(data, list):
        logger.warning("Endpoint configuration from %s is not a list", source)
        return []
    return data


def get_custom_endpoints() -> list[CustomEndpoint]:
    """Return all configured custom endpoints (possibly empty)."""
    return [CustomEndpoint.from_dict(item) for item in _raw_endpoints() if isinstance(item, dict)]


def has_custom_endpoints() -> bool:
    """Return True if at least one custom endpoint is configured."""
    return bool(get_custom_endpoints())


def enabled_endpoint() -> CustomEndpoint | None:
    """Return the first endpoint flagged ``enabled``, if any."""
    for endpoint in get_custom_endpoints():
        if endpoint.enabled:
            return endpoint
    return None


def get_provider_url() -> str:
    """
    Resolve the identity-provider sign-in URL.

    Precedence (highest → lowest):
      1. ``ATLAS_IDENTITY_PROVIDER_URL``
      2. ``provider_url`` of the enabled custom endpoint
      3. the public Layer identity provider
    """
    url = os.getenv(PROVIDER_URL_ENV)
    if url:
        return url.strip()
    endpoint = enabled_endpoint()
    if endpoint and endpoint.provider_url:
        return endpoint.provider_url
    return DEFAULT_PROVIDER_URL


def get_http_timeout() -> Tuple[float, float]:
    """Return ``(connect, read)`` timeout seconds from ``ATLAS_HTTP_TIMEOUT_SECONDS``.

    Accepts either a single number (used for both) or ``"connect,read"``.
    """
    raw = os.getenv(TIMEOUT_ENV)
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        parts = [float(p) for p in raw.split(",") if p.strip()]
    except ValueError:
        logger.warning("Invalid %s=%r, using default timeout", TIMEOUT_ENV, raw)
        return DEFAULT_TIMEOUT
    if len(parts) == 1:
        return parts[0], parts[0]
    if len(parts) == 2:
        return parts[0], parts[1]
    logger.warning("Invalid %s=%r, using default timeout", TIMEOUT_ENV, raw)
    return DEFAULT_TIMEOUT


def get_storage_dir() -> Path:
    """Return the base directory for persisted credentials."""
    return Path(
        os.getenv(STORAGE_DIR_ENV) or Path.home() / ".atlas-messenger" / "auth"
    ).expanduser()
