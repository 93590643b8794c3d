"""Write the feed configuration record and print the subscription URL.

Stores credentials, booking URL and calendar token where the service reads
them: Upstash when UPSTASH_REDIS_REST_URL/TOKEN are set, otherwise the JSON
config file (data/config.json by default). Fields not given keep their
current value. A calendar token is generated when none exists yet.

Usage:
    python scripts/configure_feed.py --email me@example.com --password ...
    python scripts/configure_feed.py --flaresolverr-url http://localhost:8191
    python scripts/configure_feed.py --rotate-token
    python scripts/configure_feed.py --show
"""

import argparse
import json
import os
import secrets
import sys

from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.appointy_sync.config import (  # noqa: E402
    FeedConfig,
    build_config_provider,
    get_settings,
)

# Field name on FeedConfig -> CLI flag
FIELDS = {
    "appointy_email": "--email",
    "appointy_password": "--password",
    "appointy_booking_url": "--booking-url",
    "calendar_name": "--calendar-name",
    "flaresolverr_url": "--flaresolverr-url",
    "browser_ws_endpoint": "--browser-ws-endpoint",
}


def generate_token() -> str:
    """32 random bytes, hex encoded."""
    return secrets.token_hex(32)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Configure the Appointy calendar feed.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    for field, flag in FIELDS.items():
        parser.add_argument(flag, dest=field, default=None)
    parser.add_argument(
        "--rotate-token",
        action="store_true",
        help="Replace the calendar token (existing subscriptions stop working).",
    )
    parser.add_argument(
        "--base-url",
        default="http://localhost:3000",
        help="Public base URL used when printing the feed address.",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Print which fields are set and exit.",
    )
    return parser.parse_args()


def main(args: argparse.Namespace) -> None:
    settings = get_settings()
    provider = build_config_provider(settings)
    config = provider.load() or FeedConfig()

    if args.show:
        print(json.dumps(config.completeness(), indent=2))
        return

    updates = {
        field: getattr(args, field)
        for field in FIELDS
        if getattr(args, field) is not None
    }
    if args.rotate_token or not config.calendar_token:
        updates["calendar_token"] = generate_token()

    config = config.model_copy(update=updates)
    provider.save(config)

    print(f"Saved {len(updates)} field(s) to {provider.name} config.", file=sys.stderr)
    print(f"{args.base_url.rstrip('/')}/calendar/{config.calendar_token}")


if __name__ == "__main__":
    args = _parse_args()
    try:
        main(args)
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
