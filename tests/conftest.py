"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from publicsite import PublicServer, ServerConfig, ServerStatus, StatusCell, StaticRequestHandler


INDEX_HTML = b"<!DOCTYPE html><html><body>home</body></html>"
FOO_TXT = b"hello from foo\n\x00\xffbinary-safe"


class RecordingSink:
    """In-memory sink that remembers every line written to it."""

    def __init__(self):
        self.lines: list = []
        self._lock = threading.Lock()
        self.closed = False

    def write(self, line: str) -> None:
        with self._lock:
            self.lines.append(line)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """Control panel base directory with a populated public/ folder."""
    public = tmp_path / "public"
    public.mkdir()
    (public / "index.html").write_bytes(INDEX_HTML)
    (public / "foo.txt").write_bytes(FOO_TXT)
    (public / "css").mkdir()
    (public / "css" / "site.css").write_text("body { color: #333; }")
    (public / "notes.unknownext").write_text("not servable")
    (tmp_path / "secret.txt").write_text("outside the document root")
    return tmp_path


@pytest.fixture
def document_root(site_dir: Path) -> str:
    return str(site_dir / "public") + "/"


@pytest.fixture
def error_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def load_time_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def status() -> StatusCell:
    return StatusCell(ServerStatus.NORMAL)


@pytest.fixture
def handler(document_root, status, error_sink, load_time_sink) -> StaticRequestHandler:
    return StaticRequestHandler(
        document_root=document_root,
        status=status,
        error_sink=error_sink,
        load_time_sink=load_time_sink,
    )


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /css/site.css?v=3 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/css\r\n"
        b"\r\n"
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def server_config(site_dir: Path, free_port: int) -> ServerConfig:
    return ServerConfig.for_base_dir(
        str(site_dir),
        free_port,
        host="127.0.0.1",
        min_workers=2,
        max_workers=4,
        shutdown_timeout=2.0,
        read_timeout=2.0,
        write_timeout=2.0,
    )


@pytest.fixture
def running_server(server_config: ServerConfig) -> Generator[PublicServer, None, None]:
    """A started server with file sinks under <site>/logs/."""
    server = PublicServer(server_config)
    server.start()
    yield server
    server.close()


def http_get(port: int, path: str, method: str = "GET", timeout: float = 5.0) -> tuple:
    """
    Minimal raw-socket client.

    Returns:
        (status_code, headers dict with lowercase names, body bytes)
    """
    request = (
        f"{method} {path} HTTP/1.1\r\n"
        f"Host: 127.0.0.1:{port}\r\n"
        f"Connection: close\r\n"
        f"\r\n"
    ).encode()

    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(request)
        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)

    raw = b"".join(chunks)
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status_code = int(lines[0].split(" ")[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return status_code, headers, body


@pytest.fixture
def client():
    """The raw-socket client as a fixture: ``client(port, path, method)``."""
    return http_get
