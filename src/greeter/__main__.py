"""Run the greeter service: ``python -m greeter``."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path

from aiohttp import web

from greeter import logger
from greeter.config import load_config
from greeter.gateway import create_app

log = logging.getLogger("greeter")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="greeter",
        description="Serve the greeter actor over HTTP and websockets.",
    )
    parser.add_argument("--config", type=Path, help="Path to greeter.toml (default: auto-discover)")
    parser.add_argument("--host", help="Override [server] host")
    parser.add_argument("--port", type=int, help="Override [server] port")
    parser.add_argument("--log-level", help="Override [logging] level")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    config = load_config(args.config)

    server = config.server
    if args.host is not None:
        server = replace(server, host=args.host)
    if args.port is not None:
        server = replace(server, port=args.port)
    config = replace(config, server=server)

    logger.install(args.log_level or config.logging.level, colors=config.logging.colors)
    log.info(
        "Starting",
        extra={
            "fields": {
                "actor": config.actor.name,
                "variant": config.actor.variant.value,
                "store": config.store.backend,
            }
        },
    )
    web.run_app(create_app(config), host=server.host, port=server.port, print=None)


if __name__ == "__main__":
    main()
