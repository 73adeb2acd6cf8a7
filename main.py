#!/usr/bin/env python3
"""
Foundex auth -- management CLI.

Usage:
  python main.py create-user founder@x.com --name "Ada Founder" --role founder
  python main.py list-users
  python main.py is-admin admin@x.com
  python main.py issue-token founder@x.com

Environment variables (see core/config.py):
  DATABASE_URL   SQLAlchemy URL of the user store (default sqlite:///foundex_auth.db)
  ADMIN_EMAILS   Comma-separated administrator allowlist
  SECRET_KEY     Token signing key (required unless DEBUG=true)
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.errors import InvalidInput
from auth.models import ROLES, User, normalize_email
from auth.passwords import hash_password
from auth.policy import AdminPolicy
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings


def _read_password(given: Optional[str]) -> str:
    """Use --password when given, otherwise prompt twice without echo."""
    if given:
        return given
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    if not first:
        print("  [!] Password must not be empty.")
        sys.exit(1)
    return first


def cmd_create_user(store: UserStore, args: argparse.Namespace) -> int:
    password = _read_password(args.password)
    try:
        user = store.create_user(
            User(
                email=args.email,
                full_name=args.name,
                role=args.role,
                password_hash=hash_password(password),
            )
        )
    except InvalidInput as e:
        print(f"  [!] {e.message}")
        return 1
    except IntegrityError:
        print(f"  [!] A user with email {normalize_email(args.email)} already exists.")
        return 1
    print(f"  Created {user.role} {user.email} (id={user.id})")
    return 0


def cmd_list_users(store: UserStore, policy: AdminPolicy) -> int:
    users = store.list_users()
    if not users:
        print("  No users.")
        return 0
    for u in users:
        flag = " [admin]" if policy.is_administrator(u.email) else ""
        print(f"  {u.id}  {u.email:<40} {u.role:<9} {u.full_name}{flag}")
    return 0


def cmd_is_admin(policy: AdminPolicy, email: str) -> int:
    """Exit 0 when the email is on the allowlist, 1 otherwise."""
    if policy.is_administrator(email):
        print(f"  {email} is an administrator.")
        return 0
    print(f"  {email} is not an administrator.")
    return 1


def cmd_issue_token(store: UserStore, tokens: TokenService, email: str) -> int:
    """Print a session token for an existing user, for API testing with Bearer auth."""
    user = store.get_by_email(email)
    if user is None:
        print(f"  [!] No user with email {normalize_email(email)}.")
        return 1
    print(tokens.issue(user.id, user.email))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Foundex auth -- manage users and check the administrator allowlist",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a founder or investor account")
    create.add_argument("email")
    create.add_argument("--name", default="", help="Display name")
    create.add_argument("--role", choices=ROLES, default="founder")
    create.add_argument("--password", help="Password (prompted when omitted)")

    sub.add_parser("list-users", help="List all accounts")

    is_admin = sub.add_parser("is-admin", help="Check an email against ADMIN_EMAILS")
    is_admin.add_argument("email")

    issue = sub.add_parser("issue-token", help="Print a session token for an existing user")
    issue.add_argument("email")

    args = parser.parse_args(argv)

    settings = get_settings()
    policy = AdminPolicy(settings.admin_emails)

    if args.command == "is-admin":
        return cmd_is_admin(policy, args.email)

    store = UserStore(db_url=settings.database_url)
    try:
        if args.command == "create-user":
            return cmd_create_user(store, args)
        if args.command == "list-users":
            return cmd_list_users(store, policy)
        tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        return cmd_issue_token(store, tokens, args.email)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
