"""Command-line entry point: ``pywll`` / ``python -m pywll``."""

from __future__ import annotations

import argparse
import logging

from aiohttp import web

from pywll.config import WllConfig
from pywll.server import create_app


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fuse WeatherLink Live HTTP and UDP data and push it to WebSocket subscribers.",
    )
    parser.add_argument("--host", help="Web server bind address (default: WLL_WEB_HOST or 0.0.0.0).")
    parser.add_argument("--port", type=int, help="Web server port (default: WLL_WEB_PORT or 3000).")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, object] = {}
    if args.host:
        overrides["web_host"] = args.host
    if args.port:
        overrides["web_port"] = args.port
    config = WllConfig.from_env(**overrides)

    web.run_app(create_app(config), host=config.web_host, port=config.web_port, print=None)


if __name__ == "__main__":
    main()
