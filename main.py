#!/usr/bin/env python3
"""
TokenGate -- opaque single-use token administration from the command line.

Works directly against the token store, without the HTTP API running.

Usage:
  python main.py issue 42
  python main.py consume 'Xy...Q|42'
  python main.py revoke 42
  python main.py purge
  python main.py --db-url sqlite:///tokens.db issue 42

Environment variables:
  TOKEN_DB_URL          Database URL (default: auth/tokengate_tokens.db)
  TOKEN_EXPIRE_SECONDS  Lifetime of issued tokens (default: 3600)
"""

import argparse
import sys
from typing import Optional

from auth.errors import TokenStoreError
from auth.store import TokenStore
from auth.tokens import TokenService
from core.config import get_settings


def _positive_int(value: str) -> int:
    """argparse type for --ttl: a whole number of seconds greater than zero."""
    try:
        seconds = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a whole number of seconds") from None
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"TTL must be positive, got {seconds}")
    return seconds


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tokengate",
        description="Issue, consume, revoke and purge single-use resource tokens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py issue 42
  python main.py issue 42 --ttl 60
  python main.py consume 'Xy...Q|42'
  python main.py purge
        """,
    )
    parser.add_argument(
        "--db-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: TOKEN_DB_URL setting)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    issue = sub.add_parser("issue", help="Issue a new token for a resource, replacing any previous one")
    issue.add_argument("resource_id", metavar="RESOURCE", help="Resource identifier (must not contain '|')")
    issue.add_argument(
        "--ttl",
        type=_positive_int,
        default=0,
        metavar="SECONDS",
        help="Token lifetime in seconds (default: TOKEN_EXPIRE_SECONDS setting)",
    )

    consume = sub.add_parser("consume", help="Validate and consume a token; prints its resource")
    consume.add_argument("token", metavar="TOKEN", help="Serialized token 'value|resource'")

    revoke = sub.add_parser("revoke", help="Delete the live token of a resource")
    revoke.add_argument("resource_id", metavar="RESOURCE")

    sub.add_parser("purge", help="Delete every expired token")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    try:
        store = TokenStore(args.db_url or get_settings().token_db_url)
    except TokenStoreError as e:
        print(f"  [!] Could not open token store: {e.__cause__ or e}", file=sys.stderr)
        return 1

    try:
        service = TokenService(store, expire_seconds=getattr(args, "ttl", 0))

        if args.command == "issue":
            try:
                print(service.issue(args.resource_id))
            except ValueError as e:
                print(f"  [!] {e}", file=sys.stderr)
                return 2

        elif args.command == "consume":
            result = service.consume(args.token)
            if not result.ok:
                print(f"  [!] {result.error.code} {result.error.message}", file=sys.stderr)
                return 1
            print(result.resource_id)

        elif args.command == "revoke":
            if not service.revoke(args.resource_id):
                print(f"  [!] No token stored for '{args.resource_id}'.", file=sys.stderr)
                return 1
            print(f"  Revoked token for '{args.resource_id}'.")

        else:
            removed = service.purge_expired()
            print(f"  {removed} expired token(s) removed.")

    except TokenStoreError as e:
        print(f"  [!] {e}: {e.__cause__}", file=sys.stderr)
        return 1
    finally:
        store.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
