"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every way a request for a public file can fail maps to exactly one
exception class here, and every class knows the HTTP status it turns into.

    ┌──────────────────────────┬────────┬──────────────────────────────────┐
    │ Exception                │ Status │ Raised when                      │
    ├──────────────────────────┼────────┼──────────────────────────────────┤
    │ Unavailable              │ 503    │ server is not in NORMAL status   │
    │ Forbidden                │ 403    │ path escapes the document root   │
    │ NotFound                 │ 404    │ file cannot be opened            │
    │ UnsupportedMediaType     │ 415    │ no content type for the path     │
    │ InternalError            │ 500    │ copying the file body failed     │
    └──────────────────────────┴────────┴──────────────────────────────────┘

All of them are terminal for the request: there is no retry and no
fallback content.

=============================================================================
"""

from typing import Optional

from .http.status_codes import HTTPStatus


class PublicSiteError(Exception):
    """
    Base class for request failures.

    Carries the HTTP status to answer with and the filesystem path
    involved (if any), so the handler can write the error-sink line
    without re-deriving either.
    """

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def sink_line(self) -> str:
        """Format the error-sink entry: ``path::status::error``."""
        return f"{self.path}::{int(self.status)}::{self.message}"


class Unavailable(PublicSiteError):
    status = HTTPStatus.SERVICE_UNAVAILABLE


class Forbidden(PublicSiteError):
    status = HTTPStatus.FORBIDDEN


class NotFound(PublicSiteError):
    status = HTTPStatus.NOT_FOUND


class UnsupportedMediaType(PublicSiteError):
    """Raised by the content-type resolver for unknown extensions."""

    status = HTTPStatus.UNSUPPORTED_MEDIA_TYPE

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(message or f"unsupported media type for {path!r}", path)


class InternalError(PublicSiteError):
    status = HTTPStatus.INTERNAL_SERVER_ERROR


class SinkOpenError(Exception):
    """
    Raised at startup when a log sink cannot be opened and the
    configuration asks for strict sinks.
    """

    def __init__(self, path: str, cause: OSError):
        super().__init__(f"cannot open log sink {path}: {cause}")
        self.path = path
        self.cause = cause
