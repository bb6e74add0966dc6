"""Listening socket creation."""

import logging
import socket
import sys

from mindy.bootstrap.config import ServerConfig
from mindy.domain.connection_id import ConnectionLoggerAdapter

SOCKET_LOGGER = ConnectionLoggerAdapter(logging.getLogger("mindy.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_server_socket(config: ServerConfig) -> socket.socket:
    """Bind and listen on the configured address, exiting the process on failure."""
    try:
        server_socket = socket.create_server((config.bind_address, config.port))
    except OSError as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listening socket",
            extra={
                "event": "bind_failed",
                "host": config.bind_address,
                "port": config.port,
                "error_type": type(error).__name__,
            },
        )
        print(
            f"Failed to bind to {config.bind_address}:{config.port}: {error}",
            file=sys.stderr,
        )
        sys.exit(1)
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket
