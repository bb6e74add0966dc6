"""Static file HTTP server: one thread per connection, graceful stop on interrupt."""

import logging
import signal
import sys
from pathlib import Path

from mindy.bootstrap.config import (
    ConfigError,
    ServerConfig,
    load_config,
    parse_cli_args,
    runtime_overrides,
)
from mindy.bootstrap.logging_setup import close_logging, configure_logging
from mindy.domain.connection_id import ConnectionLoggerAdapter
from mindy.lifecycle.state import ServerLifecycle
from mindy.transport.accept_loop import run_server

SERVER_LOGGER = ConnectionLoggerAdapter(logging.getLogger("mindy.server"), {})


def install_signal_handlers(lifecycle: ServerLifecycle) -> None:
    """Route SIGINT and SIGTERM to the lifecycle's shutdown."""

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info("Received shutdown signal", extra={"signal": signum})
        lifecycle.begin_shutdown()

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)


def _load_config_or_exit(config_path: Path, overrides: dict) -> ServerConfig:
    try:
        return load_config(config_path, **overrides)
    except ConfigError as error:
        print(f"Configuration error: {error}", file=sys.stderr)
        sys.exit(1)


def main(argv=None) -> int:
    """Load configuration, start logging and serve until interrupted."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    config = _load_config_or_exit(Path(args.config), runtime_overrides(args))

    log_level = args.log_level or ("DEBUG" if config.debug else "INFO")
    try:
        configure_logging(log_level, config.log_path, args.log_format == "json")
    except OSError as error:
        print(f"Failed to open log file {config.log_path}: {error}", file=sys.stderr)
        return 1

    lifecycle = ServerLifecycle()
    install_signal_handlers(lifecycle)

    SERVER_LOGGER.info(
        "Starting HTTP server",
        extra={
            "event": "server_starting",
            "host": config.bind_address,
            "port": config.port,
            "root_dir": config.root_dir,
            "default_document": config.default_document,
            "log_destination": config.log_path or "stdout",
        },
    )
    try:
        run_server(config, lifecycle)
    finally:
        close_logging()
    return 0


if __name__ == "__main__":
    sys.exit(main())
