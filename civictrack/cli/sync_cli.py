"""
Command-line interface for the CivicTrack bill sync.

Usage:
    civictrack-sync sync
    civictrack-sync refresh 42
    civictrack-sync --database-url sqlite+aiosqlite:///civictrack.db --create-tables sync
    python -m civictrack.cli.sync_cli --help
"""

import asyncio
import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import settings
from ..db.session import Database
from ..exceptions import CivicTrackError
from ..services.bill_sync_service import run_bill_sync, run_bill_refresh

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.app.log_level.upper(), logging.INFO),
        format=settings.app.log_format
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="civictrack-sync",
        description="Sync congressional bills from ProPublica",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One full pass over recently updated bills
  civictrack-sync sync

  # Re-fetch bill 42 and overwrite its fields
  civictrack-sync refresh 42

  # Local SQLite database, created on first run, results saved to JSON
  civictrack-sync --database-url sqlite+aiosqlite:///civictrack.db --create-tables sync --output run.json
        """
    )

    parser.add_argument(
        "--database-url",
        type=str,
        help="Override the configured database URL"
    )

    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before running"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run one full bill sync pass")
    sync_parser.add_argument("--output", type=str, help="Save run counters to JSON file")

    refresh_parser = subparsers.add_parser("refresh", help="Refresh a single bill by id")
    refresh_parser.add_argument("bill_id", type=int, help="Database id of the bill")
    refresh_parser.add_argument("--output", type=str, help="Save the refreshed bill to JSON file")

    return parser


async def run_command(args: argparse.Namespace) -> int:
    """
    Execute a parsed command.

    Returns:
        Process exit code
    """
    database = Database(args.database_url)
    await database.initialize()

    try:
        if args.create_tables:
            await database.create_tables()

        if args.command == "sync":
            result = await run_bill_sync(database)
        else:
            result = await run_bill_refresh(database, args.bill_id)

    except CivicTrackError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"\n❌ {type(e).__name__}: {e}")
        return 1

    finally:
        await database.close()

    print_result(result)

    if args.output:
        Path(args.output).write_text(json.dumps(result, indent=2, default=str))
        print(f"\n💾 Results saved to: {args.output}")

    return 0


def print_result(result: Dict[str, Any]) -> None:
    print("\n" + "=" * 60)
    for key, value in result.items():
        print(f"{key:>24}: {value}")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    return asyncio.run(run_command(args))


if __name__ == "__main__":
    raise SystemExit(main())
