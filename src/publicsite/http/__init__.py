"""
HTTP protocol pieces: status codes, request parsing, responses.

The content-type resolver lives in ``publicsite.http.mime_types`` and is
imported from there directly.
"""

from .status_codes import HTTPStatus
from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import HTTPResponse, ResponseBuilder, error_response, format_http_date

__all__ = [
    "HTTPStatus",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "HTTPResponse",
    "ResponseBuilder",
    "error_response",
    "format_http_date",
]
