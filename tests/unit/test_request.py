"""
Unit tests for HTTP request parsing.
"""

import pytest

from publicsite.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/css/site.css"
        assert request.query == "v=3"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.get_header("Accept") == "text/css"
        assert request.get_header("X-Missing", "none") == "none"

    def test_path_is_url_decoded(self):
        request = parse_request(b"GET /my%20page.html HTTP/1.1\r\n\r\n")
        assert request.path == "/my page.html"

    def test_dotdot_is_left_for_the_handler(self):
        request = parse_request(b"GET /../secret.txt HTTP/1.1\r\n\r\n")
        assert request.path == "/../secret.txt"

    def test_double_slash_is_a_path_not_a_host(self):
        request = parse_request(b"GET //etc/passwd HTTP/1.1\r\n\r\n")
        assert request.path == "//etc/passwd"

    def test_absolute_form_target(self):
        request = parse_request(b"GET http://panel.example/about.html?x=1 HTTP/1.1\r\n\r\n")
        assert request.path == "/about.html"
        assert request.query == "x=1"

    def test_head_request(self):
        request = parse_request(b"HEAD / HTTP/1.0\r\n\r\n")
        assert request.is_head
        assert request.version == "HTTP/1.0"

    def test_repeated_headers_are_folded(self):
        request = parse_request(
            b"GET / HTTP/1.1\r\nAccept: text/html\r\nAccept: text/plain\r\n\r\n"
        )
        assert request.headers["accept"] == "text/html, text/plain"


class TestParseErrors:
    def test_incomplete_head(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n")
        assert exc_info.value.status_code == 400

    def test_invalid_request_line(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GARBAGE\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_unknown_method(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"BREW /pot HTTP/1.1\r\n\r\n")
        assert exc_info.value.status_code == 405

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")
        assert exc_info.value.status_code == 505

    def test_relative_target(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET index.html HTTP/1.1\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_bad_header_line(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nno-colon-here\r\n\r\n")

    def test_too_large(self):
        parser = RequestParser(max_request_size=32)
        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(b"GET /" + b"a" * 64 + b" HTTP/1.1\r\n\r\n")
        assert exc_info.value.status_code == 413


class TestHTTPRequest:
    def test_defaults(self):
        request = HTTPRequest(method="GET", path="/")
        assert request.version == "HTTP/1.1"
        assert request.headers == {}
        assert request.is_head is False
