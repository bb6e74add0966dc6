"""Server configuration file loading and CLI argument parsing."""

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from mindy.bootstrap.paths import default_config_path, resolve_relative

CONFIG_LOGGER = logging.getLogger("mindy.config")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


DEFAULT_READ_BUFFER_SIZE = _env_int("MINDY_READ_BUFFER_SIZE", 64 * 1024)
DEFAULT_SOCKET_TIMEOUT = _env_int("MINDY_SOCKET_TIMEOUT", 0)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("MINDY_SHUTDOWN_GRACE_SECONDS", 30)
DEFAULT_MAX_CONNECTIONS = _env_int("MINDY_MAX_CONNECTIONS", 0)

DEFAULT_ROOT_DIR = "."
DEFAULT_DOCUMENT = "index.html"
DEFAULT_BIND_ADDRESS = "0.0.0.0"
DEFAULT_PORT = 8080

CONFIG_KEYS = {"root_dir", "default_html", "ip_address", "port", "logfile", "debug"}


class ConfigError(ValueError):
    """Raised when the configuration file cannot be used to start the server."""


@dataclass(frozen=True)
class ServerConfig:
    """Settings read once at startup and shared read-only by every handler."""

    root_dir: str = DEFAULT_ROOT_DIR
    default_document: str = DEFAULT_DOCUMENT
    bind_address: str = DEFAULT_BIND_ADDRESS
    port: int = DEFAULT_PORT
    log_path: Optional[str] = None
    debug: bool = False
    read_buffer_size: int = DEFAULT_READ_BUFFER_SIZE
    socket_timeout: Optional[float] = None
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS
    max_connections: int = DEFAULT_MAX_CONNECTIONS


def _parse_int(key: str, value: str, line_number: int) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(
            f"Invalid integer for {key!r} at line {line_number}: {value!r}"
        ) from exc


def parse_config_lines(lines: list[str]) -> dict[str, str]:
    """Split ``<key> <value>`` lines into a mapping keyed by lower-cased key."""
    values: dict[str, str] = {}
    for line_number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(None, 1)
        if len(parts) != 2:
            raise ConfigError(
                f"Invalid formatting for configuration file at line: {line_number}"
            )
        key, value = parts[0].lower(), parts[1].strip()
        if key not in CONFIG_KEYS:
            CONFIG_LOGGER.debug("Ignoring unknown configuration key %s", key)
            continue
        if key in {"port", "debug"}:
            _parse_int(key, value, line_number)
        values[key] = value
    return values


def load_config(path: Path, **overrides) -> ServerConfig:
    """Read the configuration file at ``path`` and build a ServerConfig.

    Relative ``root_dir`` and ``logfile`` values are resolved against the
    directory holding the configuration file. Keyword ``overrides`` carry the
    runtime tunables that do not live in the file.
    """
    try:
        with open(path, "r", encoding="utf-8") as config_file:
            lines = config_file.readlines()
    except OSError as exc:
        raise ConfigError(f"Configuration file not present: {path}") from exc

    values = parse_config_lines(lines)
    base_dir = Path(path).resolve().parent

    log_path = values.get("logfile")
    if log_path is not None:
        log_path = resolve_relative(log_path, base_dir).as_posix()

    return ServerConfig(
        root_dir=resolve_relative(
            values.get("root_dir", DEFAULT_ROOT_DIR), base_dir
        ).as_posix(),
        default_document=values.get("default_html", DEFAULT_DOCUMENT),
        bind_address=values.get("ip_address", DEFAULT_BIND_ADDRESS),
        port=int(values.get("port", DEFAULT_PORT)),
        log_path=log_path,
        debug=int(values.get("debug", "0")) != 0,
        **overrides,
    )


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server startup."""
    parser = argparse.ArgumentParser(description="Static file HTTP server")
    parser.add_argument(
        "--config",
        default=default_config_path().as_posix(),
        help="Path to the key/value configuration file",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("MINDY_LOG_LEVEL"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Defaults to DEBUG when the config enables debug, else INFO",
    )
    parser.add_argument(
        "--log-format",
        default=os.getenv("MINDY_LOG_FORMAT", "text"),
        choices=["text", "json"],
    )
    parser.add_argument(
        "--read-buffer-size",
        type=int,
        default=DEFAULT_READ_BUFFER_SIZE,
        help="Bytes read from each connection in its single request read",
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Per-connection socket timeout in seconds (0 for none)",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Time to wait for in-flight connections after an interrupt",
    )
    parser.add_argument(
        "--max-connections",
        type=int,
        default=DEFAULT_MAX_CONNECTIONS,
        help="Maximum concurrent connections (0 for unlimited)",
    )
    return parser.parse_args(argv)


def runtime_overrides(args: argparse.Namespace) -> dict:
    """Translate CLI tunables into ServerConfig keyword arguments."""
    return {
        "read_buffer_size": max(1, args.read_buffer_size),
        "socket_timeout": args.socket_timeout if args.socket_timeout > 0 else None,
        "shutdown_grace_seconds": max(0, args.shutdown_grace_seconds),
        "max_connections": max(0, args.max_connections),
    }
