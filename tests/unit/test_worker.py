"""Unit tests for the per-connection handler."""

import logging
import socket
import threading
from dataclasses import replace
from unittest.mock import MagicMock

from mindy.bootstrap.logging_setup import close_logging, configure_logging, flush_logging
from mindy.domain.response_builders import METHOD_NOT_ALLOWED_BODY, NOT_FOUND_BODY
from mindy.lifecycle.state import ServerLifecycle
from mindy.transport.context import WorkerContext
from mindy.transport.worker import format_address, handle_connection
from tests.utils.http import parse_raw_response

CLIENT_ADDRESS = ("127.0.0.1", 50123)


class FakeSocket:
    """Minimal socket stub recording what the handler writes and closes."""

    def __init__(self, payload=b"", recv_error=None, shutdown_error=None):
        self._payload = payload
        self._recv_error = recv_error
        self._shutdown_error = shutdown_error
        self.sent = b""
        self.recv_sizes = []
        self.shutdown_calls = []
        self.close_calls = 0
        self.timeout = "unset"

    def recv(self, size):
        """Return the whole payload on the first read, like one TCP segment."""

        self.recv_sizes.append(size)
        if self._recv_error is not None:
            raise self._recv_error
        data, self._payload = self._payload, b""
        return data

    def sendall(self, data):
        self.sent += data

    def settimeout(self, value):
        self.timeout = value

    def shutdown(self, how):
        self.shutdown_calls.append(how)
        if self._shutdown_error is not None:
            raise self._shutdown_error

    def close(self):
        self.close_calls += 1


def _context(config, lifecycle=None):
    return WorkerContext(config=config, lifecycle=lifecycle)


def test_get_request_is_answered_and_socket_closed(config, document_root):
    """A well-formed GET gets the file and the socket is closed once."""
    client = FakeSocket(b"GET /page.html HTTP/1.1\r\nHost: test\r\n\r\n")

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    response = parse_raw_response(client.sent)
    assert response.status_line == "HTTP/1.1 200 OK"
    assert response.body == (document_root / "page.html").read_bytes()
    assert response.headers["content-length"] == str(len(response.body))
    assert client.shutdown_calls == [socket.SHUT_RDWR]
    assert client.close_calls == 1


def test_response_uses_crlf_and_ends_header_block(config):
    """Status line, headers and body go out in order with CRLF line endings."""
    client = FakeSocket(b"GET /missing HTTP/1.1\r\n\r\n")

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    head, body = client.sent.split(b"\r\n\r\n", 1)
    assert head.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert b"\nContent-Length: " in head
    assert body == NOT_FOUND_BODY


def test_single_read_uses_configured_buffer_size(config):
    """The handler performs exactly one bounded read."""
    client = FakeSocket(b"GET / HTTP/1.1\r\n\r\n")

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    assert client.recv_sizes == [config.read_buffer_size]


def test_non_get_method_gets_405(config):
    """POST is rejected with the fixed method-not-allowed page."""
    client = FakeSocket(b"POST /page.html HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc")

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    response = parse_raw_response(client.sent)
    assert response.status_code == 405
    assert response.body == METHOD_NOT_ALLOWED_BODY


def test_malformed_request_is_dropped_without_reply(config, caplog):
    """A request line missing its version never reaches the responder."""
    caplog.set_level(logging.WARNING)
    client = FakeSocket(b"GET /page.html\r\n\r\n")

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    assert client.sent == b""
    assert client.close_calls == 1
    assert any(
        getattr(record, "event", None) == "malformed_request" for record in caplog.records
    )


def test_empty_read_closes_without_reply(config, caplog):
    """A peer that closes before sending anything gets nothing back."""
    caplog.set_level(logging.ERROR)
    client = FakeSocket(b"")

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    assert client.sent == b""
    assert client.close_calls == 1
    assert any(getattr(r, "event", None) == "empty_read" for r in caplog.records)


def test_read_error_closes_without_reply(config, caplog):
    """Socket errors during the read are logged and contained."""
    caplog.set_level(logging.ERROR)
    client = FakeSocket(recv_error=ConnectionResetError("reset by peer"))

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    assert client.sent == b""
    assert client.close_calls == 1
    record = next(r for r in caplog.records if getattr(r, "event", None) == "read_error")
    assert record.error_type == "ConnectionResetError"


def test_write_error_is_contained(config, caplog):
    """A peer that vanishes mid-write does not escape the handler."""
    caplog.set_level(logging.ERROR)
    client = FakeSocket(b"GET / HTTP/1.1\r\n\r\n")
    client.sendall = MagicMock(side_effect=BrokenPipeError("gone"))

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    assert client.close_calls == 1
    assert any(getattr(r, "event", None) == "write_error" for r in caplog.records)


def test_shutdown_failure_is_logged_and_socket_still_closed(config, caplog):
    """A failing shutdown() is an error in the log, not a crash."""
    caplog.set_level(logging.ERROR)
    client = FakeSocket(
        b"GET / HTTP/1.1\r\n\r\n", shutdown_error=OSError("not connected")
    )

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    assert client.close_calls == 1
    assert any(
        getattr(r, "event", None) == "socket_shutdown_error" for r in caplog.records
    )


def test_unexpected_error_is_contained(config, caplog, monkeypatch):
    """Bugs in dispatch are logged with a traceback and the socket is closed."""
    caplog.set_level(logging.ERROR)
    monkeypatch.setattr(
        "mindy.transport.worker.dispatch", MagicMock(side_effect=RuntimeError("boom"))
    )
    client = FakeSocket(b"GET / HTTP/1.1\r\n\r\n")

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    assert client.close_calls == 1
    record = next(r for r in caplog.records if getattr(r, "event", None) == "worker_error")
    assert record.exc_info is not None


def test_request_summary_is_logged(config, caplog):
    """The peer, method, URI and version are logged before dispatch."""
    caplog.set_level(logging.INFO)
    client = FakeSocket(b"GET /page.html HTTP/1.0\r\n\r\n")

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    accepted = next(
        r for r in caplog.records if getattr(r, "event", None) == "connection_accepted"
    )
    summary = next(
        r for r in caplog.records if getattr(r, "event", None) == "request_received"
    )
    assert accepted.client == "127.0.0.1:50123"
    assert (summary.client, summary.method, summary.uri, summary.version) == (
        "127.0.0.1:50123",
        "GET",
        "/page.html",
        "HTTP/1.0",
    )
    assert summary.connection_id != "-"


def test_text_log_names_peer_and_request(config, tmp_path):
    """The plain-text log file records who asked for what."""
    log_file = tmp_path / "server.log"
    logger = logging.getLogger("mindy")
    old_level = logger.level
    configure_logging("INFO", log_file.as_posix())
    try:
        client = FakeSocket(b"GET /page.html HTTP/1.0\r\n\r\n")
        handle_connection(client, ("10.1.2.3", 4567), _context(config))
        flush_logging()
    finally:
        close_logging()
        logger.setLevel(old_level)

    text = log_file.read_text()
    assert "Connection accepted from 10.1.2.3:4567" in text
    assert "Request received: GET /page.html HTTP/1.0 from 10.1.2.3:4567" in text
    assert "Response sent: 200 for GET /page.html" in text


def test_socket_timeout_applied_when_configured(config):
    """A configured per-connection timeout is set on the socket."""
    client = FakeSocket(b"GET / HTTP/1.1\r\n\r\n")

    handle_connection(client, CLIENT_ADDRESS, _context(replace(config, socket_timeout=3)))

    assert client.timeout == 3


def test_no_socket_timeout_by_default(config):
    """Without a configured timeout the socket is left untouched."""
    client = FakeSocket(b"GET / HTTP/1.1\r\n\r\n")

    handle_connection(client, CLIENT_ADDRESS, _context(config))

    assert client.timeout == "unset"


def test_worker_registers_and_unregisters_with_lifecycle(config):
    """The handler thread is tracked only while it runs."""
    lifecycle = ServerLifecycle()
    seen = []
    client = FakeSocket(b"GET / HTTP/1.1\r\n\r\n")
    record_sendall = client.sendall

    def sendall(data):
        seen.append(lifecycle.has_worker(threading.current_thread()))
        record_sendall(data)

    client.sendall = sendall

    handle_connection(client, CLIENT_ADDRESS, _context(config, lifecycle))

    assert seen == [True]
    assert lifecycle.active_worker_count() == 0


def test_format_address():
    """Peer tuples render as host:port."""
    assert format_address(("10.0.0.1", 80)) == "10.0.0.1:80"
    assert format_address(("::1", 8080, 0, 0)) == "::1:8080"
    assert format_address("unix-peer") == "unix-peer"
