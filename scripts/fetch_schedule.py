"""Fetch one group's schedule for a day through the full service, as JSON or table.

Developer tool for checking the scraper against the live site. Starts the
renderer pool, runs one fetch (optionally twice, to see the cache hit), and
shuts everything down.

Run with: python scripts/fetch_schedule.py 108
Date:     python scripts/fetch_schedule.py 108 --date 2025-12-16
Table:    python scripts/fetch_schedule.py 108 --table
Debug:    python scripts/fetch_schedule.py 108 --headed --pool-size 1
Stats:    python scripts/fetch_schedule.py 108 --repeat 2 --stats

Exit codes:
  0 = success (JSON or table on stdout)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import json
import sys
from datetime import date

from dotenv import load_dotenv

from psy_schedule.config import ServiceConfig
from psy_schedule.logging import setup_logging
from psy_schedule.models import ScheduleEntry
from psy_schedule.service import ScheduleService

load_dotenv()


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Fetch a group's schedule from psy-msu.ru as JSON or table.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("group", help="Group code, e.g. 108.")
    parser.add_argument(
        "--date",
        type=str,
        default=date.today().isoformat(),
        help="Day to fetch as YYYY-MM-DD (default: today).",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch browsers in headed mode (visible window).",
    )
    parser.add_argument(
        "--pool-size",
        type=int,
        default=None,
        help="Override RENDERER_POOL_SIZE for this run.",
    )
    parser.add_argument(
        "--repeat",
        type=int,
        default=1,
        help="Fetch the same key this many times (later fetches hit the cache).",
    )
    parser.add_argument(
        "--table",
        action="store_true",
        help="Output a human-readable table instead of JSON.",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print service statistics to stderr after fetching.",
    )
    return parser.parse_args()


def _format_table(entries: list[ScheduleEntry]) -> str:
    """Format schedule entries as a human-readable table.

    Columns: Time | Subject | Room
    """
    if not entries:
        return "(no lessons found)"

    headers = ["Time", "Subject", "Room"]
    rows = [[e.time, e.subject, e.room or "-"] for e in entries]

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [
        " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows
    ]
    return "\n".join([header_line, separator, *row_lines])


async def main(args: argparse.Namespace) -> None:
    overrides: dict = {"headless": not args.headed}
    if args.pool_size is not None:
        overrides["renderer_pool_size"] = args.pool_size
    config = ServiceConfig(**overrides)

    setup_logging(
        json_output=config.log_json, log_level=config.log_level, stream=sys.stderr
    )

    entries: list[ScheduleEntry] = []
    async with ScheduleService(config) as service:
        service.install_signal_handlers()
        for _ in range(max(args.repeat, 1)):
            entries = await service.fetch(args.group, args.date)
        stats = service.get_stats()

    if args.table:
        print(_format_table(entries))
    else:
        print(
            json.dumps(
                [entry.model_dump(mode="json") for entry in entries],
                indent=2,
                ensure_ascii=False,
            )
        )

    if args.stats:
        print(json.dumps(stats.model_dump(), indent=2), file=sys.stderr)


def run(args: argparse.Namespace) -> int:
    """Run main() and map every failure, including Ctrl-C, to exit code 1."""
    try:
        asyncio.run(main(args))
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("ERROR: interrupted", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run(_parse_args()))
