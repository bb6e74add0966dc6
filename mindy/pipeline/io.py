"""HTTP Input/Output operations on a connected socket."""

import logging
import socket

from mindy.domain.connection_id import ConnectionLoggerAdapter
from mindy.domain.http_types import HttpResponse

IO_LOGGER = ConnectionLoggerAdapter(logging.getLogger("mindy.io"), {})

CRLF = "\r\n"


def read_request_bytes(client_socket: socket.socket, buffer_size: int) -> bytes:
    """Perform the one bounded read a request is parsed from.

    A request whose head or body arrives in a later segment is not
    reassembled.
    """
    data = client_socket.recv(buffer_size)
    IO_LOGGER.debug("Read request bytes", extra={"bytes_in": len(data)})
    return data


def serialize_response(response: HttpResponse) -> bytes:
    """Render the status line, headers and body in wire order."""
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in response.headers.items())
    header_block = (CRLF.join(header_lines) + CRLF + CRLF).encode("iso-8859-1")
    return header_block + response.body


def send_response(client_socket: socket.socket, response: HttpResponse) -> None:
    """Serialize and send the HTTP response over the socket."""
    payload = serialize_response(response)
    client_socket.sendall(payload)
    IO_LOGGER.debug(
        "Sent response",
        extra={"status_code": response.status_code, "bytes_out": len(payload)},
    )
