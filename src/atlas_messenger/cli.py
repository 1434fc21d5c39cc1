"""atlas-messenger-auth

Manage the identity-provider credentials used to answer backend challenges.

Sub-commands
------------
* ``login``     – store app id, email and password (replaces any record)
* ``logout``    – clear the stored record
* ``status``    – show whether usable credentials exist (secrets masked)
* ``endpoints`` – list custom endpoints from the environment

Example
-------
    atlas-messenger-auth login --app-id layer:///apps/staging/1234 --email me@example.com
"""

from __future__ import annotations

import argparse
import dataclasses
import getpass
import json
import logging
import os
import sys
from typing import Any, Sequence

from atlas_messenger.identity_auth.errors import CredentialStoreError
from atlas_messenger.identity_auth.models import Credentials
from atlas_messenger.identity_auth.store import DEFAULT_NAMESPACE, DiskCredentialStore
from atlas_messenger.utils.environment import get_custom_endpoints, get_provider_url
from atlas_messenger.utils.logging import setup_logging

PASSWORD_ENV = "ATLAS_AUTH_PASSWORD"


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atlas-messenger-auth",
        description="Manage stored identity-provider credentials.",
    )
    parser.add_argument(
        "--namespace", default=DEFAULT_NAMESPACE, help="Credential namespace"
    )
    parser.add_argument(
        "--storage-dir", help="Override ATLAS_AUTH_STORAGE_DIR for this call"
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)

    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Store credentials")
    login.add_argument("--app-id", required=True, help="App id or layer:/// URI")
    login.add_argument("--email", required=True)
    login.add_argument(
        "--password",
        help=f"Plaintext password (default: ${PASSWORD_ENV} or interactive prompt)",
    )

    sub.add_parser("logout", help="Clear stored credentials")
    sub.add_parser("status", help="Show stored credential status")
    sub.add_parser("endpoints", help="List configured custom endpoints")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    setup_logging(level)

    if args.command == "endpoints":
        _print_json(
            {
                "provider_url": get_provider_url(),
                "endpoints": [dataclasses.asdict(e) for e in get_custom_endpoints()],
            }
        )
        return 0

    store = DiskCredentialStore(args.namespace, base_dir=args.storage_dir)

    if args.command == "login":
        password = args.password or os.getenv(PASSWORD_ENV)
        if password is None:
            password = getpass.getpass("Password: ")
        store.save(Credentials(args.app_id, args.email, password))
        print(f"Stored credentials for namespace {args.namespace!r}", file=sys.stderr)
        return 0

    if args.command == "logout":
        store.save(None)
        print(f"Cleared credentials for namespace {args.namespace!r}", file=sys.stderr)
        return 0

    # status
    try:
        credentials = store.load()
    except CredentialStoreError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    if credentials is None:
        _print_json({"namespace": args.namespace, "stored": False})
        return 1
    _print_json({"namespace": args.namespace, "stored": True, **credentials.describe()})
    return 0


if __name__ == "__main__":
    sys.exit(main())
