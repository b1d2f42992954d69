"""CLI entry point: send one request through the browser bridge."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from browse_bridge.core.config import Settings
from browse_bridge.core.errors import StatusCodeError
from browse_bridge.http.bridge import RequestBridge


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Browser-backed request bridge - send requests through a real browser",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser("fetch", help="Send one request and print the response")
    fetch_parser.add_argument("url", help="Absolute URL to request")
    fetch_parser.add_argument(
        "--method", "-X",
        default="GET",
        help="HTTP method (default: GET)",
    )
    fetch_parser.add_argument(
        "--header", "-H",
        action="append",
        default=[],
        metavar="NAME:VALUE",
        help="Extra request header (repeatable)",
    )
    fetch_parser.add_argument(
        "--data", "-d",
        help="Request body sent as-is",
    )
    fetch_parser.add_argument(
        "--json",
        dest="json_body",
        help="Request body parsed as JSON and serialized per Content-Type",
    )
    fetch_parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    fetch_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def parse_headers(raw: list[str]) -> dict[str, str]:
    """Parse ``NAME:VALUE`` strings into a header dict."""
    headers: dict[str, str] = {}
    for item in raw:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            msg = f"Invalid header '{item}', expected NAME:VALUE"
            raise ValueError(msg)
        headers[name.strip()] = value.strip()
    return headers


def build_body(args: argparse.Namespace) -> Any:
    if args.json_body is not None and args.data is not None:
        msg = "--data and --json are mutually exclusive"
        raise ValueError(msg)
    if args.json_body is not None:
        return json.loads(args.json_body)
    return args.data


def load_settings(path: str) -> Settings:
    """Load settings, falling back to defaults when the file is absent."""
    try:
        return Settings.from_yaml(path)
    except FileNotFoundError:
        logging.getLogger(__name__).info("No config at %s, using defaults", path)
        return Settings()


async def run(settings: Settings, args: argparse.Namespace) -> dict[str, Any]:
    """Send the request and return the envelope as a plain dict."""
    async with RequestBridge(settings) as bridge:
        envelope = await bridge.request(
            args.url,
            method=args.method,
            headers=parse_headers(args.header),
            body=build_body(args),
        )
    return envelope.model_dump()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except ValidationError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        result = asyncio.run(run(settings, args))
    except StatusCodeError as e:
        print(f"Error: {e} (status {e.status_code})", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
