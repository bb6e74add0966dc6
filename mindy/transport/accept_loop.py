"""Main connection acceptance loop."""

import logging
import socket
import sys
from typing import Optional

from mindy.bootstrap.config import ServerConfig
from mindy.bootstrap.socket_factory import create_server_socket
from mindy.domain.connection_id import ConnectionLoggerAdapter
from mindy.lifecycle.state import ServerLifecycle
from mindy.transport.context import WorkerContext
from mindy.transport.spawner import Spawner, build_spawner
from mindy.transport.worker import format_address, handle_connection

ACCEPT_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("mindy.transport.accept"), {}
)


def _dispatch_accepted_client(
    client_socket: socket.socket,
    client_address,
    spawner: Spawner,
    handler_context: WorkerContext,
) -> None:
    """Hand a newly accepted connection to its own unit of work."""
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={"event": "client_accepted", "client": format_address(client_address)},
        )
    spawner.spawn(handle_connection, client_socket, client_address, handler_context)


def accept_connections(
    server_socket: socket.socket,
    lifecycle: ServerLifecycle,
    spawner: Spawner,
    handler_context: WorkerContext,
) -> None:
    """Accept until the lifecycle stops; accept errors while running are fatal."""
    while not lifecycle.should_stop():
        try:
            client_socket, client_address = server_socket.accept()
        except socket.timeout:
            continue
        except OSError as error:
            if lifecycle.should_stop():
                break
            ACCEPT_LOGGER.critical(
                "Socket accept failed",
                extra={"event": "accept_error", "error_type": type(error).__name__},
            )
            sys.exit(1)

        if lifecycle.should_stop():
            client_socket.close()
            break

        _dispatch_accepted_client(
            client_socket, client_address, spawner, handler_context
        )


def run_server(
    config: ServerConfig,
    lifecycle: ServerLifecycle,
    spawner: Optional[Spawner] = None,
) -> None:
    """Create listening socket and accept clients until shutdown."""

    server_socket = create_server_socket(config)
    lifecycle.attach_listener(server_socket)

    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={
            "event": "server_listening",
            "host": config.bind_address,
            "port": server_socket.getsockname()[1],
            "root_dir": config.root_dir,
            "default_document": config.default_document,
            "max_connections": config.max_connections,
        },
    )

    if spawner is None:
        spawner = build_spawner(config.max_connections, lifecycle)
    handler_context = WorkerContext(config=config, lifecycle=lifecycle)

    try:
        accept_connections(server_socket, lifecycle, spawner, handler_context)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Waiting for active connections to complete",
            extra={"event": "shutdown_waiting"},
        )
        lifecycle.wait_for_workers(config.shutdown_grace_seconds)
        ACCEPT_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
