"""Static file serving from the configured document root."""

import logging

from mindy.bootstrap.config import ServerConfig
from mindy.domain.connection_id import ConnectionLoggerAdapter
from mindy.domain.http_types import HttpRequest, HttpResponse
from mindy.domain.response_builders import (
    file_response,
    forbidden_response,
    internal_error_response,
    method_not_allowed_response,
    not_found_response,
)
from mindy.domain.sandbox import ForbiddenPath, resolve_document_path

STATIC_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("mindy.handlers.static"), {}
)


def serve_static(request: HttpRequest, config: ServerConfig) -> HttpResponse:
    """Answer a GET with the file the URI names under the document root."""
    try:
        resolved_path = resolve_document_path(
            config.root_dir, config.default_document, request.uri
        )
        is_regular_file = resolved_path.is_file()
    except ForbiddenPath:
        STATIC_LOGGER.warning(
            "Forbidden path access blocked",
            extra={"event": "forbidden_path", "uri": request.uri},
        )
        return forbidden_response()
    except OSError as error:
        STATIC_LOGGER.info(
            "File lookup failed",
            extra={
                "event": "file_not_found",
                "uri": request.uri,
                "error_type": type(error).__name__,
            },
        )
        return not_found_response()

    if not is_regular_file:
        STATIC_LOGGER.info(
            "File not found",
            extra={"event": "file_not_found", "path": resolved_path.as_posix()},
        )
        return not_found_response()

    try:
        file_handle = open(resolved_path, "rb")
    except OSError:
        STATIC_LOGGER.info(
            "File could not be opened",
            extra={"event": "file_not_found", "path": resolved_path.as_posix()},
        )
        return not_found_response()

    with file_handle:
        try:
            payload = file_handle.read()
        except OSError as error:
            STATIC_LOGGER.error(
                "File read failed",
                extra={
                    "event": "file_read_failed",
                    "path": resolved_path.as_posix(),
                    "error_type": type(error).__name__,
                },
            )
            return internal_error_response()

    STATIC_LOGGER.info(
        "File read operation complete",
        extra={
            "event": "file_read_complete",
            "path": resolved_path.as_posix(),
            "bytes_out": len(payload),
        },
    )
    return file_response(payload)


def dispatch(request: HttpRequest, config: ServerConfig) -> HttpResponse:
    """Route GET to the static responder and reject every other method."""
    if request.method == "GET":
        return serve_static(request, config)
    STATIC_LOGGER.warning(
        "Unsupported method",
        extra={"event": "method_not_allowed", "method": request.method},
    )
    return method_not_allowed_response()
