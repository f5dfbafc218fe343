"""Command-line entry for calendarmerge."""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn, Optional

from . import run_server
from .core.config_manager import ConfigError


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calendarmerge CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calendarmerge",
        description="Serve merged and appended views of remote iCalendar feeds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendarmerge -c calendars.json                 # 127.0.0.1:8080
  python -m calendarmerge -c calendars.json --port 3000
  python -m calendarmerge -c calendars.json --host 0.0.0.0 --failure-ttl 300
        """,
    )

    parser.add_argument("--host", help="Address to bind (default: 127.0.0.1 or CALMERGE_HOST)")
    parser.add_argument(
        "--port", type=int, metavar="PORT", help="Port to bind (default: 8080 or CALMERGE_PORT)"
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="PATH",
        help="JSON file mapping entry names to {label: url} sources (or CALMERGE_CONFIG)",
    )
    parser.add_argument(
        "--cache-ttl",
        type=float,
        metavar="SECONDS",
        help="Seconds a fetched entry stays cached (default: 3600)",
    )
    parser.add_argument(
        "--failure-ttl",
        type=float,
        metavar="SECONDS",
        help="Seconds a failed fetch stays cached (default: same as --cache-ttl)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Run the calendarmerge CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        run_server(args)
    except ConfigError as exc:
        print(f"calendarmerge: {exc}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0)


if __name__ == "__main__":
    main()
