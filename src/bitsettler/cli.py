"""
Command-line interface for the Bitsettler settlement service.

Provides CLI commands for server management:
- init-db: Initialize the database schema
- create-account: Create an account and print its bearer token
- rotate-token: Issue a new bearer token for an existing account
- run: Start the API server
- sync: Pull a settlement's roster from the game-data API
- poll-treasury: Record a settlement's treasury balance (once or on a loop)
- cleanup-treasury: Drop treasury snapshots past the retention window

Usage:
    bitsettler init-db
    bitsettler create-account alice
    bitsettler run [--host HOST] [--port PORT]
    bitsettler sync 504403158277057 [--mode incremental]
    bitsettler poll-treasury 504403158277057 [--watch]
"""

import argparse
import sys
import time
from collections.abc import Sequence


def cmd_init_db(args: argparse.Namespace) -> int:
    """
    Initialize the database schema.

    Returns:
        0 on success, 1 on error
    """
    from bitsettler.db.schema import init_database

    try:
        init_database()
        print("Database initialized successfully.")
        return 0
    except Exception as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1


def cmd_create_account(args: argparse.Namespace) -> int:
    """Create an account and print its token. The token is not shown again."""
    from bitsettler.db.accounts_repo import create_account

    username = args.username.strip()
    if len(username) < 2 or len(username) > 32:
        print("Error: Username must be 2-32 characters.", file=sys.stderr)
        return 1

    try:
        created = create_account(username)
    except Exception as e:
        print(f"Error creating account: {e}", file=sys.stderr)
        return 1

    if created is None:
        print(f"Error: Account '{username}' already exists.", file=sys.stderr)
        return 1

    _, token = created
    print(f"Account '{username}' created.")
    print(f"Token: {token}")
    return 0


def cmd_rotate_token(args: argparse.Namespace) -> int:
    from bitsettler.db.accounts_repo import rotate_token

    try:
        token = rotate_token(args.username)
    except Exception as e:
        print(f"Error rotating token: {e}", file=sys.stderr)
        return 1

    if token is None:
        print(f"Error: Account '{args.username}' not found.", file=sys.stderr)
        return 1
    print(f"Token: {token}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Start the API server in the foreground."""
    from bitsettler.api.server import start_server

    try:
        start_server(host=args.host, port=args.port)
        return 0
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0


def cmd_sync(args: argparse.Namespace) -> int:
    from bitsettler.config import configure_logging
    from bitsettler.services.settlement_sync import sync_settlement

    configure_logging()
    result = sync_settlement(args.settlement_id, mode=args.mode, triggered_by="cli")
    if not result.success:
        print(f"Sync failed: {result.message}", file=sys.stderr)
        return 1

    stats = result.stats
    print(
        f"Synced {stats['members_found']} members "
        f"({stats['members_added']} new, {stats['members_deactivated']} deactivated), "
        f"{stats['citizens_found']} citizens in {stats['duration_ms']}ms."
    )
    return 0


def cmd_poll_treasury(args: argparse.Namespace) -> int:
    """Poll once, or every ``treasury.poll_interval_seconds`` with ``--watch``."""
    from bitsettler.config import config, configure_logging
    from bitsettler.services.treasury import poll_treasury

    configure_logging()
    while True:
        result = poll_treasury(args.settlement_id)
        if result.snapshot:
            print(f"{result.message}: balance {result.snapshot['balance']}")
        else:
            print(result.message, file=sys.stderr if not result.success else sys.stdout)
        if not args.watch:
            return 0 if result.success else 1
        try:
            time.sleep(config.treasury.poll_interval_seconds)
        except KeyboardInterrupt:
            return 0


def cmd_cleanup_treasury(args: argparse.Namespace) -> int:
    from bitsettler.config import config
    from bitsettler.services.treasury import cleanup_history

    removed = cleanup_history()
    print(f"Removed {removed} snapshots older than {config.treasury.retention_days} days.")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="bitsettler",
        description="Bitsettler - settlement onboarding and character claiming service",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser(
        "init-db",
        help="Initialize the database schema",
        description="Initialize the database with required tables.",
    )
    init_parser.set_defaults(func=cmd_init_db)

    account_parser = subparsers.add_parser(
        "create-account",
        help="Create an account and print its bearer token",
    )
    account_parser.add_argument("username", help="Unique account name")
    account_parser.set_defaults(func=cmd_create_account)

    rotate_parser = subparsers.add_parser(
        "rotate-token",
        help="Issue a new bearer token for an account",
    )
    rotate_parser.add_argument("username", help="Existing account name")
    rotate_parser.set_defaults(func=cmd_rotate_token)

    run_parser = subparsers.add_parser(
        "run",
        help="Run the API server",
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API server port (default: 8000, or BITSETTLER_PORT env var)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind to (default: 0.0.0.0, or BITSETTLER_HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    sync_parser = subparsers.add_parser(
        "sync",
        help="Sync a settlement's members and citizens from the game-data API",
    )
    sync_parser.add_argument("settlement_id", help="Settlement (claim) id")
    sync_parser.add_argument(
        "--mode",
        choices=("full", "incremental"),
        default="full",
        help="'full' also deactivates members missing upstream (default: full)",
    )
    sync_parser.set_defaults(func=cmd_sync)

    poll_parser = subparsers.add_parser(
        "poll-treasury",
        help="Record a settlement's treasury balance",
    )
    poll_parser.add_argument("settlement_id", help="Settlement (claim) id")
    poll_parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep polling at the configured interval until interrupted",
    )
    poll_parser.set_defaults(func=cmd_poll_treasury)

    cleanup_parser = subparsers.add_parser(
        "cleanup-treasury",
        help="Delete treasury snapshots past the retention window",
    )
    cleanup_parser.set_defaults(func=cmd_cleanup_treasury)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
