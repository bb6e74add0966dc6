"""Per-connection identifiers carried into log records via contextvars."""

import contextvars
import logging
import uuid
from typing import Any, MutableMapping, Optional

_connection_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "connection_id", default=None
)


def generate_connection_id() -> str:
    """Generate a short identifier for one accepted connection."""
    return uuid.uuid4().hex[:12]


def get_connection_id() -> Optional[str]:
    """Retrieve the current connection ID from context."""
    return _connection_id_var.get()


def set_connection_id(connection_id: str) -> None:
    """Store a connection ID in the current context."""
    _connection_id_var.set(connection_id)


def clear_connection_id() -> None:
    """Remove the connection ID from the current context."""
    _connection_id_var.set(None)


class ConnectionLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that injects connection ID and component into log records."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        """Add connection_id and component to the extra dict."""
        if "extra" not in kwargs:
            kwargs["extra"] = {}
        else:
            kwargs["extra"] = dict(kwargs["extra"])

        connection_id = get_connection_id()
        kwargs["extra"]["connection_id"] = (
            connection_id if connection_id is not None else "-"
        )

        logger_name = self.logger.name
        if logger_name.startswith("mindy."):
            component = logger_name[len("mindy.") :]
        else:
            component = logger_name
        kwargs["extra"]["component"] = component

        return msg, kwargs
