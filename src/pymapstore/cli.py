"""Command-line entry point: serve slash-command lookups over HTTP."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import Any

from aiohttp import web

from pymapstore.app import create_app
from pymapstore.config import BotConfig
from pymapstore.exceptions import ConfigError, StoreConstructionError
from pymapstore.store import MappingStore

_logger = logging.getLogger("pymapstore")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pymapstore",
        description="Slash-command bot that maps plate numbers to the people holding the car.",
    )
    parser.add_argument("--token", help="Command token for validation")
    parser.add_argument("--api-token", help="Token required for sending direct messages")
    parser.add_argument("--dm", action="store_true", default=None, help="Also DM the car holder")
    parser.add_argument("--channel", help="Supported channel")
    parser.add_argument("--mapping", help="Path to a mapping file; omit to accept pushes on /mapping/")
    parser.add_argument("--host", help="Interface to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to run on (default: 8080)")
    parser.add_argument("--poll", action="store_true", default=None, help="Poll the mapping file instead of using OS events")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> BotConfig:
    """Merge command-line flags over ``MAPSTORE_*`` environment values."""
    overrides: dict[str, Any] = {}
    for attr, field_name in (
        ("token", "token"),
        ("api_token", "api_token"),
        ("dm", "enable_dm"),
        ("channel", "channel"),
        ("host", "host"),
        ("port", "port"),
    ):
        value = getattr(args, attr)
        if value is not None:
            overrides[field_name] = value

    store_overrides: dict[str, Any] = {}
    if args.mapping is not None:
        store_overrides["source_path"] = args.mapping
    if args.poll is not None:
        store_overrides["use_polling"] = args.poll
    overrides["store"] = store_overrides
    return BotConfig.from_env(**overrides)


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
        config.validate()
    except ConfigError as exc:
        _logger.error("%s", exc)
        return 2

    store = MappingStore(config.store)
    try:
        store.start()
    except StoreConstructionError as exc:
        _logger.error("%s", exc)
        return 1

    try:
        _logger.info("Starting server on port %s", config.port)
        web.run_app(create_app(store, config), host=config.host, port=config.port, print=None)
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
