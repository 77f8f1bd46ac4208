"""
Entrypoint for the microgrid sandbox server.

Startup sequence:

1. parse command line options (``--config``, ``--log-level``);
2. load ServerSettings from the environment / ``.env``;
3. configure structured JSON logging and log a config summary;
4. evaluate the configuration script; a script that does not evaluate
   is fatal and the process exits with status 1;
5. serve the API with uvicorn on ``BIND_ADDRESS`` or the script's
   ``socket_addr``.  uvicorn handles SIGTERM/SIGINT and runs the app
   lifespan shutdown (interlock sweep, watcher and streams are stopped).

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import uvicorn
from pydantic import ValidationError

from microsim.errors import ScriptError

if TYPE_CHECKING:
    from microsim.config import ServerSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the server.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def log_config_summary(settings: ServerSettings) -> None:
    """Log the effective server settings at startup."""
    logger.info(
        "Microgrid sandbox starting with config: "
        "config_script=%s, bind_address=%s, retain_requests_ms=%s, "
        "sweep_interval_ms=%s, stream_buffer_size=%s, "
        "watch_enabled=%s, watch_interval_s=%s, log_level=%s",
        settings.config_script,
        settings.bind_address or "<script socket_addr>",
        settings.retain_requests_ms,
        settings.sweep_interval_ms,
        settings.stream_buffer_size,
        settings.watch_enabled,
        settings.watch_interval_s,
        settings.log_level,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def split_socket_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6-host]:port``) into host and port.

    Raises:
        ValueError: If the port is missing or not an integer in range.
    """
    host, sep, port_text = address.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"Socket address '{address}' must be host:port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    port = int(port_text)
    if port < 0 or port > 65535:
        raise ValueError(f"Port {port} out of range in '{address}'")
    return host, port


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="microsim",
        description="Scriptable microgrid control and telemetry server.",
    )
    parser.add_argument(
        "--config",
        help="Path of the configuration script (overrides CONFIG_SCRIPT).",
    )
    parser.add_argument(
        "--log-level",
        help="Log level name (overrides LOG_LEVEL).",
    )
    return parser


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main(argv: list[str] | None = None) -> int:
    """Async entrypoint: load settings and config script, serve the API.

    Returns:
        Process exit status.
    """
    from microsim.api.main import create_app
    from microsim.bridge import ConfigBridge
    from microsim.config import ServerSettings

    args = build_arg_parser().parse_args(argv)
    overrides: dict[str, str] = {}
    if args.config:
        overrides["config_script"] = args.config
    if args.log_level:
        overrides["log_level"] = args.log_level

    try:
        settings = ServerSettings(**overrides)
    except ValidationError as exc:
        configure_logging()
        logger.error("Invalid configuration: %s", exc)
        return 1

    configure_logging(settings.log_level)
    log_config_summary(settings)

    try:
        bridge = ConfigBridge.load(settings.config_script)
        address = settings.bind_address or bridge.socket_address()
        host, port = split_socket_address(address)
    except ScriptError as exc:
        logger.error("Cannot start without a valid config script:\n%s", exc.format())
        return 1
    except ValueError as exc:
        logger.error("Invalid bind address: %s", exc)
        return 1

    app = create_app(settings=settings, bridge=bridge)
    server = uvicorn.Server(
        uvicorn.Config(app, host=host, port=port, log_config=None)
    )
    logger.info("Serving microgrid API on %s:%d", host, port)
    await server.serve()
    return 0


def main() -> None:
    """Synchronous entrypoint for the server."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
