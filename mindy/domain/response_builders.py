"""Pure HTTP response builders."""

from mindy.domain.http_types import HttpResponse

CONTENT_TYPE = "text/html"

NOT_FOUND_BODY = b"<html><body><h1>Page not found.</h1></body></html>\n"
METHOD_NOT_ALLOWED_BODY = (
    b"<html><body><h1>Sorry, the server does not support this method yet."
    b"</h1></body></html>\n"
)
FORBIDDEN_BODY = b"<html><body><h1>Forbidden.</h1></body></html>\n"
INTERNAL_ERROR_BODY = (
    b"<html><body><h1>The page could not be read.</h1></body></html>\n"
)


def _html_response(status_code: int, reason: str, body: bytes) -> HttpResponse:
    headers = {
        "Content-Length": str(len(body)),
        "Content-Type": CONTENT_TYPE,
        "Connection": "close",
    }
    return HttpResponse(status_code, reason, headers, body)


def file_response(payload: bytes) -> HttpResponse:
    """Return a 200 OK response carrying the file bytes as text/html."""
    return _html_response(200, "OK", payload)


def not_found_response() -> HttpResponse:
    """Return the fixed 404 page."""
    return _html_response(404, "Not Found", NOT_FOUND_BODY)


def forbidden_response() -> HttpResponse:
    """Return a 403 for paths that escape the document root."""
    return _html_response(403, "Forbidden", FORBIDDEN_BODY)


def method_not_allowed_response() -> HttpResponse:
    """Produce a 405 response advertising GET as the only supported method."""
    response = _html_response(405, "Method Not Allowed", METHOD_NOT_ALLOWED_BODY)
    response.headers["Allow"] = "GET"
    return response


def internal_error_response() -> HttpResponse:
    """Return a 500 for files that opened but could not be read."""
    return _html_response(500, "Internal Server Error", INTERNAL_ERROR_BODY)
