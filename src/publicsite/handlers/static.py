"""
=============================================================================
STATIC REQUEST HANDLER
=============================================================================

Serves every request of the public site. There is no routing: whatever
path arrives is mapped onto the document root.

=============================================================================
FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  handle(request)                                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  1. start = clock()                                                 │
    │  2. status?   DOWN / RESTARTING / MAINTENANCE ──► 503 (no file I/O) │
    │               NORMAL ──► continue                                   │
    │  3. "/"        → <root>index.html                                   │
    │     "/a/b.css" → <root>a/b.css                                      │
    │     (hardened: must stay inside <root>, else 403)                   │
    │  4. open file          fails ──► error sink path::404::err, 404     │
    │  5. content type       fails ──► error sink path::415::err, 415     │
    │  6. copy file to body  fails ──► error sink path::500::err, 500     │
    │  7. load-time sink: "<path> rendered in N.NNNNNN seconds"; 200      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

The 503 family is not written to the error sink; those refusals are
logged at DEBUG level only.

=============================================================================
PATH TRAVERSAL
=============================================================================

The legacy panel built the file path by plain concatenation, so
``GET /../logs/public_errors.log`` read outside the document root.
With ``harden_paths=True`` (the default) the joined path is resolved
(``..`` and symlinks followed) and must still lie under the resolved
document root; otherwise the request gets 403 and an error-sink line.
``harden_paths=False`` keeps the concatenation for compatibility.

=============================================================================
"""

import io
import logging
import os
import shutil
import time
from typing import Callable

from ..errors import (
    PublicSiteError, Unavailable, Forbidden, NotFound, InternalError,
)
from ..http.mime_types import resolve_content_type
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, error_response
from ..http.status_codes import HTTPStatus
from ..status import ServerStatus, StatusCell


logger = logging.getLogger(__name__)


UNAVAILABLE_MESSAGES = {
    # The listener is not running in these two states, so a request
    # seeing them has raced a stop() or restart().
    ServerStatus.DOWN: "The server is currently down and not serving requests.",
    ServerStatus.RESTARTING: "The server is currently restarting.",
    ServerStatus.MAINTENANCE: "The server is currently maintenance mode and not serving requests.",
}

INDEX_FILE = "index.html"

COPY_CHUNK_SIZE = 64 * 1024


class StaticRequestHandler:
    """
    Maps request paths onto the document root and serves the file.

    =========================================================================
    USAGE
    =========================================================================

        status = StatusCell(ServerStatus.NORMAL)
        handler = StaticRequestHandler(
            document_root="/srv/panel/public/",
            status=status,
            error_sink=LogSink.open("/srv/panel/logs/public_errors.log"),
            load_time_sink=LogSink.open("/srv/panel/logs/public_load_time.log"),
        )
        response = handler.handle(request)

    =========================================================================
    COLLABORATORS
    =========================================================================

    - status:          read once per request, never written here
    - error_sink:      anything with write(str); gets path::status::error
    - load_time_sink:  anything with write(str); gets one line per 200
    - resolver:        path -> Content-Type, raises UnsupportedMediaType
    - clock:           monotonic seconds, injectable for tests

    =========================================================================
    """

    def __init__(
        self,
        document_root: str,
        status: StatusCell,
        error_sink,
        load_time_sink,
        resolver: Callable[[str], str] = resolve_content_type,
        harden_paths: bool = True,
        clock: Callable[[], float] = time.perf_counter,
        index_file: str = INDEX_FILE,
    ):
        self.document_root = document_root
        self.status = status
        self.error_sink = error_sink
        self.load_time_sink = load_time_sink
        self.resolver = resolver
        self.harden_paths = harden_paths
        self.clock = clock
        self.index_file = index_file

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handle(request)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Answer one request.

        Never raises for request-level failures: every PublicSiteError
        becomes an error response here, after the error sink is written.
        A sink that fails to write is logged and does not change the
        response.
        """
        start = self.clock()

        try:
            self._check_status()
            path = self.filesystem_path(request.path)
            response = self._serve(path)
        except Unavailable as e:
            logger.debug(f"Refused {request.path}: {e.message}")
            return error_response(e.status, e.message)
        except PublicSiteError as e:
            self._record(self.error_sink, e.sink_line())
            logger.warning(f"{request.path} -> {int(e.status)}: {e.message}")
            return error_response(e.status)

        elapsed = max(self.clock() - start, 0.0)
        self._record(self.load_time_sink, f"{path} rendered in {elapsed:.6f} seconds")
        return response

    @staticmethod
    def _record(sink, line: str) -> None:
        try:
            sink.write(line)
        except Exception:
            logger.exception(f"Could not write to {sink!r}: {line}")

    # =========================================================================
    # STEPS
    # =========================================================================

    def _check_status(self) -> None:
        status = self.status.get()
        if not status.is_serving:
            raise Unavailable(UNAVAILABLE_MESSAGES[status])

    def filesystem_path(self, url_path: str) -> str:
        """
        Map a request path onto the document root.

        The single leading slash is dropped and the remainder is appended
        to the document root unchanged; an empty remainder means the index
        file.

        Raises:
            Forbidden: In hardened mode, when the result escapes the root.
        """
        relative = url_path[1:] if url_path.startswith("/") else url_path
        path = self.document_root + (relative or self.index_file)

        if self.harden_paths:
            self._ensure_inside_root(path)
        return path

    def _ensure_inside_root(self, path: str) -> None:
        try:
            root = os.path.realpath(self.document_root)
            resolved = os.path.realpath(path)
            inside = os.path.commonpath([root, resolved]) == root
        except ValueError as e:
            # embedded NUL bytes, or paths on different drives
            raise Forbidden(str(e), path) from e

        if not inside:
            raise Forbidden(f"resolves outside document root: {resolved}", path)

    def _serve(self, path: str) -> HTTPResponse:
        try:
            f = open(path, "rb")
        except (OSError, ValueError) as e:
            raise NotFound(str(e), path) from e

        with f:
            # UnsupportedMediaType propagates with its own status
            content_type = self.resolver(path)

            body = io.BytesIO()
            try:
                shutil.copyfileobj(f, body, COPY_CHUNK_SIZE)
            except OSError as e:
                raise InternalError(str(e), path) from e

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(content_type)
            .body(body.getvalue())
            .build())
