#!/usr/bin/env python3
"""
Hired Valley -- account administration from the command line.

Self-service registration can only create user and mentor accounts. This tool
bootstraps the first admin and changes roles without going through the API.
It talks to the same database as the server (DATABASE_URL).

Usage:
  python main.py create-admin admin@example.com --name "Site Admin"
  python main.py set-role someone@example.com instructor
  python main.py deactivate someone@example.com
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.credentials import normalize_email
from auth.models import LOCAL_PROVIDER, ROLES, User
from auth.passwords import MAX_PASSWORD_BYTES, hash_password
from auth.store import UserStore
from core.config import get_settings

_MIN_PASSWORD_LENGTH = 8


def _prompt_password() -> Optional[str]:
    """Ask for the password twice. Returns None (after printing why) on mismatch or bad length."""
    password = getpass.getpass("  Password: ")
    confirm = getpass.getpass("  Confirm password: ")
    if password != confirm:
        print("  [!] Passwords do not match.")
        return None
    if len(password) < _MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
        return None
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return None
    return password


def _create_admin(store: UserStore, args: argparse.Namespace) -> int:
    email = normalize_email(args.email)
    password = _prompt_password()
    if password is None:
        return 1
    admin = User(
        email=email,
        name=args.name,
        role="admin",
        provider=LOCAL_PROVIDER,
        hashed_password=hash_password(password),
    )
    try:
        user_id = store.create_user(admin)
    except IntegrityError:
        print(f"  [!] {email} is already registered. Use set-role to promote it.")
        return 1
    print(f"  Created admin {email} (id={user_id}).")
    return 0


def _set_role(store: UserStore, args: argparse.Namespace) -> int:
    email = normalize_email(args.email)
    user = store.get_by_email(email)
    if user is None:
        print(f"  [!] No active account for {email}.")
        return 1
    store.update_user(user.id, role=args.role)
    print(f"  {email}: {user.role} -> {args.role}")
    return 0


def _deactivate(store: UserStore, args: argparse.Namespace) -> int:
    email = normalize_email(args.email)
    user = store.get_by_email(email)
    if user is None or not store.soft_delete_user(user.id):
        print(f"  [!] No active account for {email}.")
        return 1
    print(f"  Deactivated {email}. The address stays reserved.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="hiredvalley",
        description="Hired Valley account administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin admin@example.com --name "Site Admin"
  python main.py set-role someone@example.com mentor
  DATABASE_URL=sqlite:///./prod.db python main.py deactivate someone@example.com
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-admin", help="Create a local admin account (password is prompted)")
    create.add_argument("email", help="Login email for the new admin")
    create.add_argument("--name", default="", help="Display name")
    create.set_defaults(handler=_create_admin)

    role = sub.add_parser("set-role", help="Change the role of an existing account")
    role.add_argument("email")
    role.add_argument("role", choices=sorted(ROLES), metavar="ROLE", help=f"One of: {', '.join(sorted(ROLES))}")
    role.set_defaults(handler=_set_role)

    deactivate = sub.add_parser("deactivate", help="Soft-delete an account")
    deactivate.add_argument("email")
    deactivate.set_defaults(handler=_deactivate)

    args = parser.parse_args(argv)

    store = UserStore(get_settings().database_url)
    try:
        return args.handler(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
