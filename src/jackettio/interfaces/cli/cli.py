from __future__ import annotations

import argparse
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from jackettio.infrastructure.config import AppConfig, load_config
from jackettio.infrastructure.logging.setup import configure_logging
from jackettio.interfaces.app import create_app
from jackettio.interfaces.server import LifecycleServer

log = structlog.get_logger(__name__)


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="jackettio")

    # Server options
    parser.add_argument(
        "--host",
        default=None,
        help="Bind host (overrides JACKETTIO_HOST).",
    )
    parser.add_argument(
        "--port",
        default=None,
        type=int,
        help="Bind port (overrides JACKETTIO_PORT).",
    )

    # Config wiring flags (no business logic)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--dotenv",
        default=None,
        help="Path to .env file.",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Override the stream store / cache directory.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    return parser.parse_args(argv)


def build_cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format
    return overrides


def build_server_config(
    app: FastAPI, config: AppConfig, log_config: dict[str, Any] | None
) -> uvicorn.Config:
    """uvicorn settings for *app*.

    uvicorn's access log is off: it prints the raw path, whose first segment
    is the user config blob (debrid API key). ``http_request`` events from
    the app middleware log the redacted path instead.
    """
    return uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_config=log_config,
        access_log=False,
    )


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Loads config once, serves until a signal or fatal fault drains the
    service, then returns the lifecycle's exit code.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config = load_config(
        config_path=Path(args.config) if args.config else None,
        dotenv_path=Path(args.dotenv) if args.dotenv else None,
        cli_overrides=build_cli_overrides(args),
    )

    log_config = configure_logging(config)

    app = create_app(config)
    lifecycle = app.state.lifecycle
    server = LifecycleServer(build_server_config(app, config, log_config), lifecycle)
    server.run()

    log.info("process_exit", exit_code=lifecycle.exit_code)
    return lifecycle.exit_code


if __name__ == "__main__":
    raise SystemExit(start())
