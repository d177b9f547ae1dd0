#!/usr/bin/env python3
"""
Inkwell -- admin command line for the blog/comment/follow store.

Every command talks to the same database the API uses (DATABASE_URL, or
--db) and prints the facade's envelope as JSON, so the output matches what
the HTTP API would return for the same operation.

Usage:
  python main.py users
  python main.py blogs
  python main.py thread --blog 3
  python main.py thread --user 7 --roots-only
  python main.py register ada ada@example.com --password s3cret!
  python main.py --db sqlite:///other.db users
"""

import argparse
import json
import sys
from typing import Optional

from api.models import envelope_body
from auth.tokens import BcryptHasher
from core.config import get_settings
from core.service import Envelope, SocialService
from storage.store import EntityStore


def _print_envelope(envelope: Envelope) -> int:
    """Print the envelope as indented JSON. Returns the process exit code."""
    print(json.dumps(envelope_body(envelope), indent=2))
    if not envelope.ok:
        print(f"  [!] {envelope.error.field}: {envelope.error.message}", file=sys.stderr)
        return 1
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inkwell",
        description="Inspect and seed the Inkwell store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py users
  python main.py thread --blog 3
  python main.py register ada ada@example.com --password s3cret!
        """,
    )
    parser.add_argument(
        "--db",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL from settings)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    sub.add_parser("users", help="List every user with blogs and follow lists")
    sub.add_parser("blogs", help="List every blog with author and comments")

    thread = sub.add_parser("thread", help="Show comment threads for a blog or a user")
    target = thread.add_mutually_exclusive_group(required=True)
    target.add_argument("--blog", type=int, metavar="ID", help="Comments on this blog")
    target.add_argument("--user", type=int, metavar="ID", help="Comments written by this user")
    thread.add_argument(
        "--roots-only",
        action="store_true",
        help="Start threads only at comments that are not replies",
    )

    register = sub.add_parser("register", help="Create a user account")
    register.add_argument("username")
    register.add_argument("email")
    register.add_argument("--password", required=True)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    store = EntityStore(args.db or settings.database_url)
    service = SocialService(store, BcryptHasher(), settings)
    try:
        if args.command == "users":
            return _print_envelope(service.get_all_users())
        if args.command == "blogs":
            return _print_envelope(service.get_all_blogs())
        if args.command == "thread":
            if args.blog is not None:
                return _print_envelope(service.get_comments_on_blog(args.blog, roots_only=args.roots_only))
            return _print_envelope(service.get_comments_of_user(args.user, roots_only=args.roots_only))
        if args.command == "register":
            return _print_envelope(service.register(args.username, args.email, args.password))
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
