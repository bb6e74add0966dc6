"""Worker thread logic for handling one client connection end to end."""

import logging
import socket
import threading
from typing import Optional

from mindy.domain.connection_id import (
    ConnectionLoggerAdapter,
    clear_connection_id,
    generate_connection_id,
    set_connection_id,
)
from mindy.domain.http_types import HttpRequest
from mindy.handlers.static_handler import dispatch
from mindy.pipeline.io import read_request_bytes, send_response
from mindy.pipeline.parser import MalformedRequest, parse_request
from mindy.transport.context import WorkerContext

WORKER_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("mindy.transport.worker"), {}
)


def format_address(client_address) -> str:
    """Render a socket peer address as ``host:port``."""
    if isinstance(client_address, tuple) and len(client_address) >= 2:
        return f"{client_address[0]}:{client_address[1]}"
    return str(client_address)


def _read_request(
    client_socket: socket.socket, context: WorkerContext, client_addr_str: str
) -> Optional[HttpRequest]:
    """Read and parse the request; None means the connection gets no reply."""
    try:
        data = read_request_bytes(client_socket, context.config.read_buffer_size)
    except OSError as error:
        WORKER_LOGGER.error(
            "Error reading from socket",
            extra={
                "event": "read_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
        return None

    if not data:
        WORKER_LOGGER.error(
            "Client sent no data",
            extra={"event": "empty_read", "client": client_addr_str},
        )
        return None

    try:
        return parse_request(data, client_addr_str)
    except MalformedRequest:
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={
                "event": "malformed_request",
                "client": client_addr_str,
                "bytes_in": len(data),
            },
        )
        return None


def _log_request(request: HttpRequest, debug: bool) -> None:
    WORKER_LOGGER.info(
        "Request received: %s %s %s from %s",
        request.method,
        request.uri,
        request.version,
        request.remote_address,
        extra={
            "event": "request_received",
            "client": request.remote_address,
            "method": request.method,
            "uri": request.uri,
            "version": request.version,
        },
    )
    if debug:
        for name, value in request.headers.items():
            WORKER_LOGGER.debug("Header %s: %s", name, value)
        WORKER_LOGGER.debug(
            "Request body",
            extra={
                "event": "request_body",
                "bytes_in": len(request.body) if request.body else 0,
            },
        )


def _close_connection(client_socket: socket.socket, client_addr_str: str) -> None:
    try:
        client_socket.shutdown(socket.SHUT_RDWR)
    except OSError as error:
        WORKER_LOGGER.error(
            "Problem stopping client socket",
            extra={
                "event": "socket_shutdown_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    finally:
        client_socket.close()
    WORKER_LOGGER.debug(
        "Socket closed",
        extra={"event": "socket_closed", "client": client_addr_str},
    )


def handle_connection(
    client_socket: socket.socket,
    client_address,
    context: WorkerContext,
) -> None:
    """Read one request from the socket, answer it and close the connection."""
    current_thread = threading.current_thread()
    lifecycle = context.lifecycle
    if lifecycle is not None:
        lifecycle.register_worker(current_thread)
    set_connection_id(generate_connection_id())
    client_addr_str = format_address(client_address)

    try:
        if context.config.socket_timeout is not None:
            client_socket.settimeout(context.config.socket_timeout)

        WORKER_LOGGER.info(
            "Connection accepted from %s",
            client_addr_str,
            extra={"event": "connection_accepted", "client": client_addr_str},
        )

        request = _read_request(client_socket, context, client_addr_str)
        if request is None:
            return

        _log_request(request, context.config.debug)
        response = dispatch(request, context.config)

        try:
            send_response(client_socket, response)
        except OSError as error:
            WORKER_LOGGER.error(
                "Error writing response",
                extra={
                    "event": "write_error",
                    "client": client_addr_str,
                    "error_type": type(error).__name__,
                },
            )
            return

        WORKER_LOGGER.info(
            "Response sent: %d for %s %s",
            response.status_code,
            request.method,
            request.uri,
            extra={
                "event": "response_sent",
                "client": client_addr_str,
                "method": request.method,
                "uri": request.uri,
                "status_code": response.status_code,
                "bytes_out": len(response.body),
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
    finally:
        _close_connection(client_socket, client_addr_str)
        if lifecycle is not None:
            lifecycle.cleanup_worker(current_thread)
        clear_connection_id()
