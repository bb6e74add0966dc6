"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request."""

    method: str
    uri: str
    version: str
    headers: dict[str, str] = field(default_factory=dict)
    host: Optional[str] = None
    accept: Optional[str] = None
    accept_language: Optional[str] = None
    accept_encoding: Optional[str] = None
    connection: Optional[str] = None
    content_type: Optional[str] = None
    user_agent: Optional[str] = None
    content_length: int = 0
    body: Optional[bytes] = None
    remote_address: str = "-"


@dataclass
class HttpResponse:
    """Represents an HTTP response to be sent to a client."""

    status_code: int
    reason: str
    headers: dict[str, str]
    body: bytes

    @property
    def status_line(self) -> str:
        return f"HTTP/1.1 {self.status_code} {self.reason}"
