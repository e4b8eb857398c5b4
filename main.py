#!/usr/bin/env python3
"""
Monitorium -- user accounts and authentication backend.

Usage:
  python main.py serve
  python main.py serve --port 8080 --reload
  python main.py create-admin --email admin@monitorium.io --password s3cret! --name "Site Admin"

Environment variables:
  SECRET_KEY     Required outside DEBUG mode; at least 32 characters.
  DATABASE_URL   SQLAlchemy URL for the user database (default: sqlite:///./monitorium.db).
  DEBUG          true to auto-generate SECRET_KEY and show error details.
"""

import argparse
import sys

from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings


def _serve(args: argparse.Namespace) -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )


def _create_admin(args: argparse.Namespace) -> int:
    """Insert an ADMIN account directly into the store. Returns the exit code."""
    settings = get_settings()
    store = UserStore(db_url=settings.database_url)
    try:
        email = args.email.strip().lower()
        if store.get_by_email(email) is not None:
            print(f"  [!] A user with email '{email}' already exists.")
            return 1
        user = User(
            email=email,
            name=args.name,
            role=Role.ADMIN.value,
            hashed_password=hash_password(args.password),
            verified=True,
            balance=0,
        )
        try:
            uid = store.create_user(user)
        except IntegrityError:
            print(f"  [!] A user with email '{email}' already exists.")
            return 1
        print(f"  Admin '{email}' created (id {uid}).")
        return 0
    finally:
        store.close()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="monitorium",
        description="Monitorium accounts and authentication API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  python main.py serve --host 127.0.0.1 --port 8080 --reload
  python main.py create-admin --email admin@monitorium.io --password s3cret! --name "Site Admin"
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST setting)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: PORT setting)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")

    admin = sub.add_parser("create-admin", help="Create an ADMIN account")
    admin.add_argument("--email", required=True, help="Login email for the new admin")
    admin.add_argument("--password", required=True, help="Initial password (min 6 characters)")
    admin.add_argument("--name", required=True, help="Display name")

    args = parser.parse_args()

    if args.command == "serve":
        _serve(args)
    elif args.command == "create-admin":
        if len(args.password) < 6:
            print("  [!] Password must be at least 6 characters.")
            sys.exit(1)
        sys.exit(_create_admin(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
