#!/usr/bin/env python3
"""
Warden -- management CLI.

Seeds accounts directly into the configured credential store, e.g. the first
admin of a fresh deployment (public signup can create admins too, but an
operator usually wants one before the service is exposed).

Usage:
  python main.py create-user --username root --email root@example.com --role admin
  python main.py create-user --username bob --email bob@example.com --password s3cret!

If --password is omitted the password is read with getpass (no echo, not in
shell history).

Environment variables:
  DATABASE_URL   Store to write to (same variable the API reads).
  SECRET_KEY     Required unless DEBUG=true; validated even though the CLI
                 issues no tokens, so a misconfigured deployment fails here
                 first.
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from auth.controller import AuthController
from auth.errors import AuthError
from auth.models import Role
from auth.passwords import PasswordHasher
from auth.store import UserStore
from core.config import get_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="warden", description="Warden account management.")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a user in the credential store.")
    create.add_argument("--username", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--role", choices=[r.value for r in Role], default=Role.user.value)
    create.add_argument("--password", help="Omit to be prompted (recommended).")
    return parser


def create_user(args: argparse.Namespace, store: UserStore) -> int:
    """Create one account. Returns the process exit code."""
    settings = get_settings()
    password = args.password or getpass.getpass("Password: ")
    controller = AuthController(store, PasswordHasher(settings.bcrypt_rounds), settings.secret_key)
    try:
        identity = controller.signup(args.username, args.email, password, args.role)
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    print(f"  [+] Created {identity.role.value} '{identity.username}' ({identity.email}) id={identity.id}")
    return 0


_COMMANDS = {"create-user": create_user}


def main(argv: Optional[list[str]] = None, store: Optional[UserStore] = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)-5s %(name)s %(message)s")
    args = _build_parser().parse_args(argv)

    settings = get_settings()
    owns_store = store is None
    if store is None:
        store = UserStore(db_url=settings.database_url, timeout=settings.store_timeout_seconds)
    try:
        return _COMMANDS[args.command](args, store)
    finally:
        if owns_store:
            store.close()


if __name__ == "__main__":
    sys.exit(main())
