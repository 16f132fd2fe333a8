"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes read from a connection into an ``HTTPRequest``.

The public site only needs the request line and the headers: there is no
request body to interpret. Parsing still validates the whole head so a
malformed request is answered with the right status instead of reaching
the static handler.

    GET /css/site.css?v=3 HTTP/1.1\r\n       ← request line
    Host: panel.example\r\n                  ← headers
    \r\n                                     ← end of head

    → HTTPRequest(method="GET", path="/css/site.css",
                  query="v=3", version="HTTP/1.1",
                  headers={"host": "panel.example"})

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import unquote, urlparse


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the HTTP status the client should receive:

        400 Bad Request                  malformed syntax
        405 Method Not Allowed           unknown method
        413 Payload Too Large            request over the size limit
        505 HTTP Version Not Supported   anything but HTTP/1.0 or 1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    ``path`` is URL-decoded and excludes the query string, so it can be
    mapped onto the filesystem directly. Header names are lowercased.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    query: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    client_address: tuple = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_head(self) -> bool:
        """HEAD requests get the GET headers without a body."""
        return self.method == "HEAD"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    Usage:
        parser = RequestParser(max_request_size=64 * 1024)
        request = parser.parse(raw_bytes, ("203.0.113.7", 51512))
    """

    VALID_METHODS = {
        "GET", "HEAD", "POST", "PUT", "DELETE",
        "PATCH", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*?)\s*$")

    def __init__(self, max_request_size: int = 64 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse raw HTTP request data.

        Args:
            data: Bytes of at least one complete request head.
            client_address: (ip, port) of the peer, kept for logging.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        head = data[:header_end].decode("latin-1")
        lines = head.split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request")

        method, path, query, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            query=query,
            headers=headers,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str) -> tuple:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        if uri.startswith("/"):
            target, _, query = uri.partition("?")
        else:
            # absolute-form, e.g. "GET http://panel.example/index.html HTTP/1.1"
            parsed = urlparse(uri)
            if not parsed.scheme:
                raise HTTPParseError(f"Invalid request target: {uri!r}")
            target, query = parsed.path or "/", parsed.query

        return method, unquote(target), query, version

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for line in lines:
            if not line:
                continue
            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Invalid header line: {line!r}")
            name, value = match.groups()
            name = name.lower()
            # Repeated headers are folded into one comma-separated value
            if name in headers:
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value
        return headers


def parse_request(data: bytes, client_address: Optional[tuple] = None) -> HTTPRequest:
    """Parse with a default RequestParser."""
    return RequestParser().parse(data, client_address or ("", 0))
