"""Command-line entry for eventboard.

Examples:
  python -m eventboard status                       # Status at the real (or overridden) time
  python -m eventboard status --at 2025-01-15T11:00:00Z
  python -m eventboard refresh                      # Periodic trigger: fetch and cache
  python -m eventboard override set 2025-01-15T12:30:00Z
  python -m eventboard cache stats
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from . import _init_logging
from .calendar.datetime_utils import parse_instant
from .calendar.exceptions import InvalidOverrideError
from .core.config_manager import ConfigManager
from .core.http_client import close_all_clients
from .logging_config import configure_logging
from .service import DisplayService

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the eventboard CLI."""
    parser = argparse.ArgumentParser(
        prog="eventboard",
        description="eventboard - live event status for the lobby display",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--env-file", type=Path, metavar="PATH", help="Path to .env file (default: ./.env)")
    parser.add_argument("--calendar-id", metavar="ID", help="Calendar feed id (overrides EVENTBOARD_CALENDAR_ID)")
    parser.add_argument(
        "--state-file", metavar="PATH", help="JSON state file for cache and override (overrides EVENTBOARD_STATE_FILE)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    status = commands.add_parser("status", help="Print the display status")
    status.add_argument("--at", metavar="ISO", help="Compute the status for this instant")

    commands.add_parser("refresh", help="Fetch the feed and replace the cached events")

    override = commands.add_parser("override", help="Show, set or clear the time override")
    override_actions = override.add_subparsers(dest="action", required=True)
    override_actions.add_parser("show", help="Show the current override")
    override_set = override_actions.add_parser("set", help="Set the override")
    override_set.add_argument("value", metavar="ISO", help="ISO 8601 instant")
    override_actions.add_parser("clear", help="Use real time again")

    cache = commands.add_parser("cache", help="Inspect or clear the event cache")
    cache.add_argument("action", choices=["stats", "clear"])

    commands.add_parser("health", help="Print refresh health")

    return parser


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def _run(service: DisplayService, args: argparse.Namespace) -> int:
    try:
        if args.command == "status":
            if args.at:
                try:
                    at = parse_instant(args.at)
                except ValueError as e:
                    raise InvalidOverrideError(f"Invalid --at value {args.at!r}: {e}") from e
                status = await service.engine.get_display_status(at=at)
            else:
                status = await service.get_status()
            _print_json(status.model_dump(mode="json"))
            return 0

        if args.command == "refresh":
            report = await service.refresh()
            _print_json(report.model_dump(mode="json"))
            return 0 if report.success else 1

        if args.command == "override":
            if args.action == "set":
                state = service.set_time_override(args.value)
            elif args.action == "clear":
                state = service.clear_time_override()
            else:
                state = service.get_time_override()
            _print_json(state.to_dict())
            return 0

        if args.command == "cache":
            if args.action == "clear":
                service.clear_cache()
                _print_json({"success": True, "message": "Cache cleared successfully"})
            else:
                _print_json(service.cache_stats())
            return 0

        if args.command == "health":
            health = service.health()
            _print_json(health.to_dict())
            return 0 if health.status == "ok" else 1

        return 2
    finally:
        await close_all_clients()


def main(argv: Optional[list[str]] = None) -> int:
    """Run the eventboard CLI and return the process exit code."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        settings = ConfigManager(args.env_file).build_settings(
            calendar_id=args.calendar_id, state_file=args.state_file
        )
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    _init_logging(settings.log_level)
    configure_logging(debug_mode=args.debug)

    if args.command == "override" and args.action != "show" and not settings.state_file:
        logger.warning("No state file configured; the override only lasts for this process")

    service = DisplayService.from_settings(settings)
    try:
        return asyncio.run(_run(service, args))
    except InvalidOverrideError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
