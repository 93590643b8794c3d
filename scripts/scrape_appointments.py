"""Scrape the Appointy bookings page once and print what was found.

Standalone CLI for checking the scraper against the live page without
running the server. Uses the same configuration as the service (.env, the
config file, or Upstash).

Run with: python scripts/scrape_appointments.py
JSON:     python scripts/scrape_appointments.py --json
ICS:      python scripts/scrape_appointments.py --ics data/appointments.ics
Browser:  python scripts/scrape_appointments.py --method browser --headed
Offline:  python scripts/scrape_appointments.py --html saved_page.html

Exit codes:
  0 = success (table or JSON on stdout, or .ics file written)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.appointy_sync.builder import build_appointments  # noqa: E402
from src.appointy_sync.config import FeedConfig, build_config_provider, get_settings  # noqa: E402
from src.appointy_sync.extractor import extract_matches  # noqa: E402
from src.appointy_sync.ics import encode_calendar  # noqa: E402
from src.appointy_sync.logging import setup_logging  # noqa: E402
from src.appointy_sync.models import Appointment  # noqa: E402
from src.appointy_sync.service import FeedService  # noqa: E402


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scrape Appointy bookings and print them as a table, JSON or .ics.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--method",
        choices=("flaresolverr", "browser"),
        default=None,
        help="Override FETCH_METHOD from the environment.",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch the local browser in headed mode (visible window).",
    )
    parser.add_argument(
        "--html",
        type=str,
        default=None,
        help="Parse a saved page instead of fetching (no credentials needed).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging, including dropped candidates.",
    )

    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument(
        "--json",
        action="store_true",
        help="Output appointments as JSON.",
    )
    output_group.add_argument(
        "--ics",
        type=str,
        default=None,
        help="Write the calendar document to this path.",
    )
    return parser.parse_args()


def _format_table(appointments: list[Appointment]) -> str:
    """Columns: Start | End | Title | Location"""
    if not appointments:
        return "(no appointments found)"

    headers = ["Start", "End", "Title", "Location"]
    rows = [
        [
            a.start.strftime("%a %Y-%m-%d %H:%M"),
            a.end.strftime("%H:%M"),
            a.title,
            a.location,
        ]
        for a in appointments
    ]

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
    settings = get_settings()
    if args.method:
        settings.fetch_method = args.method
    if args.headed:
        settings.headless = False

    setup_logging(
        json_output=settings.log_json,
        log_level="DEBUG" if args.debug else settings.log_level,
    )

    provider = build_config_provider(settings)

    if args.html:
        config = provider.load() or FeedConfig()
        _log(f"scrape_appointments: parsing {args.html}")
        html = Path(args.html).read_text(encoding="utf-8")
        appointments = build_appointments(
            extract_matches(html),
            default_title=settings.default_title,
            location=settings.default_location,
            tz=ZoneInfo(settings.timezone),
        )
    else:
        config = provider.require()
        _log(f"scrape_appointments: fetching via {settings.fetch_method}")
        service = FeedService(settings, provider)
        appointments = await service.scrape(config)

    _log(f"  Found {len(appointments)} appointment(s)")

    if args.ics:
        document = encode_calendar(
            appointments,
            name=config.calendar_name,
            timezone_name=settings.timezone,
        )
        output_file = Path(args.ics)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(document, encoding="utf-8", newline="")
        _log(f"  Calendar written -> {output_file}")
    elif args.json:
        print(json.dumps([a.model_dump(mode="json") for a in appointments], indent=2))
    else:
        print(_format_table(appointments))


if __name__ == "__main__":
    args = _parse_args()
    try:
        asyncio.run(main(args))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
