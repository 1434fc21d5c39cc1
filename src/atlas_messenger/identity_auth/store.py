"""Concurrency-safe credential storage for the identity-provider handshake.

This module introduces a *narrow* persistence interface
(:class:`CredentialStore`) with two implementations:

* :class:`DiskCredentialStore` – one JSON file per namespace.
* :class:`MemoryCredentialStore` – process-local dict, used as a fake in tests
  and by embedders that bring their own secure storage.

Both honour the same contract: a record is written, cleared and read
**wholesale**; readers never observe a half-written record.

* **Atomicity** – disk writes use *temp-file + os.replace*; clears unlink.
* **Concurrency** – a per-namespace re-entrant lock (see
  :func:`namespace_lock`) serialises writers inside the process; an advisory
  ``O_EXCL`` lock file serialises writers across processes.  Readers never
  take the namespace lock, so a load does not wait for an in-flight exchange.
  A lock file older than the retry window is treated as left behind by a
  crashed writer and removed.
* **Filename safety** – namespaces are slugified before hitting the filesystem.

Environment variables
---------------------
ATLAS_AUTH_STORAGE_DIR
    Base directory for persisted records.
    Defaults to ``~/.atlas-messenger/auth`` when unset.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from atlas_messenger.identity_auth.errors import CredentialStoreError
from atlas_messenger.identity_auth.models import Credentials
from atlas_messenger.utils.environment import get_storage_dir

_LOG = logging.getLogger("atlas-messenger.identity_auth.store")

DEFAULT_NAMESPACE: Final[str] = "RailsAuthenticationProvider"

# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #

_LOCKS: dict[str, threading.RLock] = {}
_LOCKS_GUARD = threading.Lock()


def namespace_lock(namespace: str) -> threading.RLock:
    """Return the process-wide lock guarding *namespace*.

    The same lock is shared by stores and challenge responders so that a full
    exchange (load → network → save) is serialised per namespace.
    """
    with _LOCKS_GUARD:
        lock = _LOCKS.get(namespace)
        if lock is None:
            lock = _LOCKS[namespace] = threading.RLock()
        return lock


def _slug(text: str, max_len: int = 80) -> str:
    """Filesystem-safe slug."""
    text = (text or "").strip().lower()
    text = re.sub(r"[^a-z0-9._-]+", "-", text)
    text = re.sub(r"-{2,}", "-", text).strip("-")
    return text[:max_len] or "unknown"


def _atomic_write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    # Records may hold a plaintext password: owner-only permissions.
    fd = os.open(tmp, os.O_CREAT | os.O_TRUNC | os.O_WRONLY, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        json.dump(data, fh, separators=(",", ":"), sort_keys=True)
    os.replace(tmp, path)  # atomic on POSIX


def _is_stale(lock_path: Path, stale_after: float) -> bool:
    try:
        age = time.time() - lock_path.stat().st_mtime
    except FileNotFoundError:
        return True  # released meanwhile
    return age > stale_after


@contextmanager
def _file_lock(
    lock_path: Path,
    retries: int = 25,
    delay: float = 0.2,
    stale_after: float | None = None,
):  # noqa: D401
    """Advisory file lock using ``os.O_EXCL`` temp-file creation.

    A lock file older than *stale_after* seconds (default: the whole retry
    window) is removed and acquisition is retried.
    """
    if stale_after is None:
        stale_after = retries * delay
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    attempt = 0
    while True:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_RDWR)
            os.close(fd)
            break  # acquired!
        except FileExistsError:
            if _is_stale(lock_path, stale_after):
                _LOG.warning("Removing stale lock %s", lock_path)
                lock_path.unlink(missing_ok=True)
                continue
            if attempt == retries:
                raise TimeoutError(f"Could not acquire lock {lock_path}") from None
            attempt += 1
            time.sleep(delay)
    try:
        yield
    finally:
        lock_path.unlink(missing_ok=True)


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class CredentialStore(Protocol):
    """Minimal persistence contract: one credential slot per namespace."""

    namespace: str

    def load(self) -> Credentials | None: ...

    def save(self, credentials: Credentials | None) -> None: ...


# --------------------------------------------------------------------------- #
# Disk implementation                                                         #
# --------------------------------------------------------------------------- #


class DiskCredentialStore:
    """JSON-file implementation of :class:`CredentialStore`."""

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        base_dir: str | os.PathLike | None = None,
    ) -> None:
        self.namespace = namespace
        self.base_dir = Path(base_dir).expanduser() if base_dir else get_storage_dir()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = namespace_lock(namespace)

    @property
    def path(self) -> Path:
        return self.base_dir / f"{_slug(self.namespace)}.json"

    def _lock_path(self) -> Path:
        return self.path.with_suffix(".lock")

    def save(self, credentials: Credentials | None) -> None:
        with self._lock, _file_lock(self._lock_path()):
            if credentials is None:
                self.path.unlink(missing_ok=True)
                _LOG.debug("Cleared credentials namespace=%s", self.namespace)
                return
            _atomic_write(self.path, credentials.to_record())
        _LOG.debug("Saved credentials namespace=%s", self.namespace)

    def load(self) -> Credentials | None:
        path = self.path
        try:
            with path.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return None
        except ValueError as exc:
            raise CredentialStoreError(
                namespace=self.namespace,
                message=f"Stored credentials at {path} are not valid JSON: {exc}",
            ) from exc
        if not isinstance(data, dict):
            raise CredentialStoreError(namespace=self.namespace)
        return Credentials.from_record(data)


# --------------------------------------------------------------------------- #
# In-memory implementation                                                    #
# --------------------------------------------------------------------------- #


class MemoryCredentialStore:
    """Process-local :class:`CredentialStore`; snapshots are replaced wholesale."""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.namespace = namespace
        self._lock = namespace_lock(namespace)
        # Guards only the snapshot swap; held for no I/O.
        self._snapshot_lock = threading.Lock()
        self._record: dict[str, str | None] | None = None

    def save(self, credentials: Credentials | None) -> None:
        record = None if credentials is None else credentials.to_record()
        with self._lock, self._snapshot_lock:
            self._record = record

    def load(self) -> Credentials | None:
        with self._snapshot_lock:
            record = self._record
        return None if record is None else Credentials.from_record(record)


# --------------------------------------------------------------------------- #
# Convenience – default per-namespace singletons                              #
# --------------------------------------------------------------------------- #

_default_stores: dict[str, DiskCredentialStore] = {}


def default_store(namespace: str = DEFAULT_NAMESPACE) -> DiskCredentialStore:
    """Return a process-wide :class:`DiskCredentialStore` for *namespace*."""
    with namespace_lock(namespace):
        store = _default_stores.get(namespace)
        if store is None:
            store = _default_stores[namespace] = DiskCredentialStore(namespace)
        return store
