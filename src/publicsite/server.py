"""
=============================================================================
PUBLIC SITE SERVER
=============================================================================

Lifecycle manager for the public site: owns the listener, the worker
pool, the two log sinks, the shared status and the static handler.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          PublicServer                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   control panel ──start/stop/maintenance/resume/restart──►          │
    │                                   │                                 │
    │                                   ▼                                 │
    │                             StatusCell  ◄──── read per request      │
    │                                                        │            │
    │   SocketServer ──Connection──► ThreadPool ──► _process_connection   │
    │   (listener thread)            (one task       │ read head          │
    │                                 per conn)      │ parse              │
    │                                                │ GET/HEAD only      │
    │                                                ▼                    │
    │                                      StaticRequestHandler           │
    │                                        │             │              │
    │                                  error sink    load-time sink       │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    start()         bind, start workers and listener, status NORMAL
    maintenance()   status MAINTENANCE, listener keeps running (503s)
    resume()        MAINTENANCE → NORMAL
    stop()          status DOWN, stop accepting, give in-flight work
                    shutdown_timeout seconds
    restart()       status RESTARTING, stop(), start()
    close()         stop, close the sinks this server opened; final

=============================================================================
"""

import logging
import signal
import threading
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .handlers import StaticRequestHandler
from .http import HTTPParseError, HTTPRequest, HTTPResponse, HTTPStatus, RequestParser, error_response
from .http.mime_types import resolve_content_type
from .sinks import open_sink
from .status import ServerStatus, StatusCell


logger = logging.getLogger(__name__)

SERVED_METHODS = ("GET", "HEAD")


class PublicServer:
    """
    The public site server.

    =========================================================================
    USAGE
    =========================================================================

        config = ServerConfig.for_base_dir("/srv/panel", 8080)
        server = PublicServer(config)

        server.start()            # returns once listening
        server.maintenance()      # visitors get 503 maintenance page
        server.resume()
        server.stop()
        server.close()

        # or, blocking until SIGINT / SIGTERM:
        server.serve_forever()

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        resolver: Callable[[str], str] = resolve_content_type,
        error_sink=None,
        load_time_sink=None,
    ):
        """
        Args:
            config: Server configuration; defaults if omitted.
            resolver: Content-type resolver handed to the static handler.
            error_sink: Sink to use instead of opening config.error_log_path.
            load_time_sink: Sink to use instead of opening config.load_time_log_path.

        Raises:
            ValueError: If the configuration is invalid.
            SinkOpenError: If a sink cannot be opened and strict_logs is set.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self.status = StatusCell(ServerStatus.DOWN)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._owned_sinks = []
        if error_sink is None:
            error_sink = open_sink(self.config.error_log_path, self.config.strict_logs, logging.WARNING)
            self._owned_sinks.append(error_sink)
        if load_time_sink is None:
            load_time_sink = open_sink(self.config.load_time_log_path, self.config.strict_logs, logging.INFO)
            self._owned_sinks.append(load_time_sink)
        self.error_sink = error_sink
        self.load_time_sink = load_time_sink

        self.handler = StaticRequestHandler(
            document_root=self.config.document_root,
            status=self.status,
            error_sink=self.error_sink,
            load_time_sink=self.load_time_sink,
            resolver=resolver,
            harden_paths=self.config.harden_paths,
        )

        self._listener: Optional[SocketServer] = None
        self._pool: Optional[ThreadPool] = None
        self._listener_thread: Optional[threading.Thread] = None
        self._lifecycle_lock = threading.RLock()
        self._stopped = threading.Event()
        self._stopped.set()
        self._original_handlers: dict = {}
        self._closed = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._listener is not None

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) while running, configured address otherwise."""
        if self._listener is not None:
            return self._listener.address
        return (self.config.host, self.config.port)

    def start(self) -> Tuple[str, int]:
        """
        Start listening and serving. Returns once the socket is bound.

        Returns:
            The bound (host, port).

        Raises:
            OSError: If the listener cannot bind.
            RuntimeError: If the server has been closed.
        """
        with self._lifecycle_lock:
            if self._closed:
                raise RuntimeError("Cannot start: server has been closed")
            if self._listener is not None:
                return self._listener.address

            listener = SocketServer(self.config)
            listener.bind()

            pool = ThreadPool(
                min_workers=self.config.min_workers,
                max_workers=self.config.max_workers,
                queue_size=self.config.queue_size,
            )
            pool.start()

            thread = threading.Thread(
                target=listener.serve,
                args=(self._handle_connection,),
                name="publicsite-listener",
                daemon=True,
            )

            self._listener, self._pool, self._listener_thread = listener, pool, thread
            self._stopped.clear()
            self.status.set(ServerStatus.NORMAL)
            thread.start()

            logger.info("Public site serving %s on %s:%d", self.config.document_root, *listener.address)
            return listener.address

    def stop(self) -> bool:
        """
        Graceful shutdown.

        1. Status DOWN (left at RESTARTING during restart()), so queued
           requests are answered with 503.
        2. Stop accepting new connections.
        3. Let queued and in-flight requests finish, for at most
           ``config.shutdown_timeout`` seconds.

        Returns:
            True if everything finished within the grace period.
        """
        with self._lifecycle_lock:
            if self._listener is None:
                self.status.set(ServerStatus.DOWN)
                return True

            logger.info("Stopping public site...")
            if self.status.get() is not ServerStatus.RESTARTING:
                self.status.set(ServerStatus.DOWN)
            listener, pool, thread = self._listener, self._pool, self._listener_thread

            listener.shutdown()
            listener.wait_stopped(self.config.shutdown_timeout)
            drained = pool.shutdown(wait=True, timeout=self.config.shutdown_timeout)
            thread.join(timeout=1.0)

            self._listener = self._pool = self._listener_thread = None
            self.status.set(ServerStatus.DOWN)
            self._stopped.set()

            logger.info("Public site stopped")
            return drained

    def maintenance(self) -> None:
        """
        Switch to maintenance mode; every request gets the maintenance 503.

        Raises:
            RuntimeError: If the server is not running.
        """
        with self._lifecycle_lock:
            if self._listener is None:
                raise RuntimeError("Cannot enter maintenance mode: server is not running")
            previous = self.status.set(ServerStatus.MAINTENANCE)
            logger.info(f"Status {previous.name} -> MAINTENANCE")

    def resume(self) -> bool:
        """
        Leave maintenance mode.

        Returns:
            True if the server was in maintenance and is now NORMAL.
        """
        changed = self.status.transition(ServerStatus.MAINTENANCE, ServerStatus.NORMAL)
        if changed:
            logger.info("Status MAINTENANCE -> NORMAL")
        return changed

    def restart(self) -> Tuple[str, int]:
        """Stop and start again; requests racing the restart see RESTARTING."""
        with self._lifecycle_lock:
            logger.info("Restarting public site...")
            self.status.set(ServerStatus.RESTARTING)
            self.stop()
            return self.start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() has completed."""
        return self._stopped.wait(timeout)

    def close(self) -> None:
        """
        Stop if running, then close the sinks this server opened.

        A closed server cannot be started again.
        """
        with self._lifecycle_lock:
            self._closed = True
            self.stop()
            for sink in self._owned_sinks:
                sink.close()
            self._owned_sinks.clear()

    def __enter__(self) -> "PublicServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def serve_forever(self) -> None:
        """
        Configure logging, start, and block until SIGINT / SIGTERM or stop().
        """
        self.configure_logging()
        self.start()
        self._setup_signals()
        try:
            while not self.wait(timeout=0.5):
                pass
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._restore_signals()
            self.close()

    def configure_logging(self) -> None:
        """Configure the logging module from config.log_level."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("publicsite").setLevel(level)

    def _setup_signals(self) -> None:
        # signal.signal() only works on the main thread
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
            threading.Thread(target=self.stop, name="publicsite-stop", daemon=True).start()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Hand a new connection to the pool (runs on the listener thread)."""
        pool = self._pool
        try:
            submitted = pool is not None and pool.submit(
                self._process_connection, args=(conn,), on_cancel=conn.abort,
            )
        except RuntimeError:
            submitted = False

        if not submitted:
            logger.warning(f"[{conn.id}] Worker pool full, rejecting connection")
            self._send(conn, error_response(HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded"))
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """Read, parse, dispatch and answer one request (runs on a worker)."""
        with conn:
            try:
                raw = conn.read_request()
            except TimeoutError:
                self._send(conn, error_response(HTTPStatus.REQUEST_TIMEOUT))
                return
            except ValueError as e:
                logger.warning(f"[{conn.id}] {e}")
                self._send(conn, error_response(HTTPStatus.PAYLOAD_TOO_LARGE))
                return

            if raw is None:
                return

            try:
                request = self._parser.parse(raw, conn.address)
            except HTTPParseError as e:
                logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                self._send(conn, error_response(e.status_code))
                return

            response = self.dispatch(request)
            self._send(conn, response, include_body=not request.is_head)
            logger.debug(
                f'{conn.client_ip} "{request.method} {request.path} {request.version}" '
                f"{int(response.status)} {len(response.body)}"
            )

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Produce the response for a parsed request.

        Only GET and HEAD reach the static handler. An exception escaping
        the handler becomes a 500.
        """
        if request.method not in SERVED_METHODS:
            response = error_response(HTTPStatus.METHOD_NOT_ALLOWED)
            response.set_header("Allow", ", ".join(SERVED_METHODS))
            return response

        try:
            return self.handler.handle(request)
        except Exception as e:
            logger.exception(f"Handler error for {request.path}: {e}")
            return error_response(HTTPStatus.INTERNAL_SERVER_ERROR)

    def _send(self, conn: Connection, response: HTTPResponse, include_body: bool = True) -> bool:
        response.headers["Connection"] = "close"
        return conn.send_response(response.to_bytes(self.config.server_name, include_body=include_body))
