"""
=============================================================================
HTTP RESPONSE
=============================================================================

Response object returned by the static handler and serialized by the
server onto the connection.

    HTTPResponse(status=200,                 HTTP/1.1 200 OK\r\n
                 headers={...},    ──►       Content-Type: text/html; ...\r\n
                 body=b"<html>")             Content-Length: 6\r\n
                                             Date: ...\r\n
                                             Server: publicsite/1.0\r\n
                                             \r\n
                                             <html>

Error responses are plain text: the body is the reason phrase or the
message the handler chose (the 503 variants carry a specific sentence).

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from .status_codes import HTTPStatus


PLAIN_TEXT = "text/plain; charset=utf-8"


@dataclass
class HTTPResponse:
    """Status, headers and body of a response."""

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (for plain-text error bodies)."""
        return self.body.decode("utf-8", errors="replace")

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def head_bytes(self, server_name: str = "publicsite/1.0") -> bytes:
        """
        Serialize status line and headers, including the blank line.

        Content-Length, Date and Server are filled in when missing.
        Content-Length always describes the full body, also for HEAD.
        """
        response_headers = dict(self.headers)
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in response_headers.items())
        lines.append("")
        return ("\r\n".join(lines) + "\r\n").encode("latin-1")

    def to_bytes(self, server_name: str = "publicsite/1.0", include_body: bool = True) -> bytes:
        """Serialize the whole response, ready for ``socket.sendall()``."""
        head = self.head_bytes(server_name)
        return head + self.body if include_body else head


class ResponseBuilder:
    """
    Fluent builder for responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type("image/png")
            .body(data)
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        return self.content_type(PLAIN_TEXT).body(text)

    def build(self) -> HTTPResponse:
        return HTTPResponse(status=self._status, headers=self._headers, body=self._body)


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always in GMT.

        Thu, 01 Jan 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    dt = dt.astimezone(timezone.utc)
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def error_response(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """
    Plain-text error response.

    The body is ``message`` if given, the reason phrase otherwise, and is
    newline-terminated like most servers' error pages.
    """
    status = HTTPStatus(status)
    return (ResponseBuilder()
        .status(status)
        .header("X-Content-Type-Options", "nosniff")
        .text(f"{message or status.phrase}\n")
        .build())
