"""Turn the bytes of a single read into an HttpRequest."""

import re
from typing import Optional

from mindy.domain.http_types import HttpRequest

LINE_SPLIT = re.compile(r"\r?\n")
HEADER_END = re.compile(rb"\r?\n\r?\n")

# Header name -> HttpRequest attribute.
RECOGNIZED_HEADERS = {
    "host": "host",
    "accept": "accept",
    "accept-language": "accept_language",
    "accept-encoding": "accept_encoding",
    "connection": "connection",
    "content-type": "content_type",
    "user-agent": "user_agent",
}


class MalformedRequest(ValueError):
    """Raised when the request line cannot be split into method, URI and version."""


def split_header_block(data: bytes) -> tuple[bytes, bytes]:
    """Separate the head of the request from whatever follows the blank line."""
    match = HEADER_END.search(data)
    if match is None:
        return data, b""
    return data[: match.start()], data[match.end() :]


def parse_request_line(line: str) -> tuple[str, str, str]:
    """Split the request line on whitespace into method, URI and version."""
    tokens = line.split()
    if len(tokens) != 3:
        raise MalformedRequest(f"Invalid request line: {line!r}")
    method, uri, version = tokens
    return method, uri, version


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary.

    Only the first colon separates name from value; leading whitespace is
    stripped from the value and lines without a colon are skipped.
    """
    parsed = {}
    for line in lines:
        if ":" not in line:
            continue
        name, value = line.split(":", 1)
        parsed[name.strip().lower()] = value.lstrip()
    return parsed


def parse_content_length(value: Optional[str]) -> int:
    """Return the declared body length, or 0 when absent or unusable."""
    if value is None:
        return 0
    try:
        length = int(value.strip())
    except ValueError:
        return 0
    return max(0, length)


def parse_request(data: bytes, remote_address: str = "-") -> HttpRequest:
    """Parse one request from the bytes received in a single read."""
    head, remainder = split_header_block(data)
    lines = LINE_SPLIT.split(head.decode("iso-8859-1"))
    if not lines or not lines[0].strip():
        raise MalformedRequest("Empty request line")

    method, uri, version = parse_request_line(lines[0])
    headers = parse_headers(lines[1:])

    request = HttpRequest(
        method=method,
        uri=uri,
        version=version,
        headers=headers,
        remote_address=remote_address,
    )
    for header_name, attribute in RECOGNIZED_HEADERS.items():
        if header_name in headers:
            setattr(request, attribute, headers[header_name])
    request.content_length = parse_content_length(headers.get("content-length"))

    if request.content_length > 0:
        body = remainder.lstrip()[: request.content_length]
        request.body = body or None
    return request
