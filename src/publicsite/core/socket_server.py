"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket and the accept loop. Every accepted client is
wrapped in a ``Connection`` and parked in a selector until its first
bytes arrive; only then is it handed to the callback (the PublicServer),
which decides which thread runs it. A client that connects and sends
nothing therefore never occupies a worker, and is closed once it has
been idle for read_timeout.

    bind()              socket() → setsockopt() → bind() → listen()
      │
    serve(callback)     while running:
      │                     select()   ← 1 s timeout, so shutdown() is seen
      │                     listener readable → accept(), park Connection
      │                     client readable   → callback(Connection)
      │                     idle too long     → close
      │
    shutdown()          running = False; the loop exits within ~1 s
      │
    (loop exit)         parked clients and listening socket closed,
                        stopped event set

Binding and serving are separate steps so the caller can bind on the
calling thread (and learn the real port when 0 was requested) before the
loop moves to a background thread.

=============================================================================
"""

import logging
import selectors
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 1.0


class SocketServer:
    """
    Low-level TCP listener.

    Usage:
        listener = SocketServer(config)
        listener.bind()
        threading.Thread(target=listener.serve, args=(on_connection,)).start()
        ...
        listener.shutdown()
        listener.wait_stopped(5.0)
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._serving = False
        self._selector: Optional[selectors.BaseSelector] = None
        self._stopped = threading.Event()
        self._stopped.set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once bound, even if 0 was asked."""
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self, family: int) -> socket.socket:
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen.

        Returns:
            The bound address.

        Raises:
            OSError: If the address is in use or not permitted.
        """
        if self._socket is not None:
            return self.address

        infos = socket.getaddrinfo(
            self.config.host, self.config.port, type=socket.SOCK_STREAM
        )
        family, _, _, _, sockaddr = infos[0]

        sock = self._create_socket(family)
        try:
            sock.bind(sockaddr)
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self._socket = sock
        # Running from bind() on, so a shutdown() issued before serve()
        # gets going is not lost.
        self._running = True
        self._stopped.clear()
        logger.info("Listening on %s:%d", *self.address)
        return self.address

    def serve(self, connection_handler: Callable[[Connection], None]) -> None:
        """
        Run the accept loop until shutdown(). Blocks.

        Binds first if bind() was not called.
        """
        self.bind()
        self._serving = True
        self._selector = selectors.DefaultSelector()
        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]) -> None:
        selector = self._selector
        selector.register(self._socket, selectors.EVENT_READ, None)

        while self._running:
            for key, _ in selector.select(timeout=ACCEPT_POLL_INTERVAL):
                if key.data is None:
                    if not self._accept(selector):
                        return
                else:
                    # first bytes arrived; only now does the request cost a worker
                    selector.unregister(key.fileobj)
                    connection_handler(key.data)
            self._expire_idle(selector)

    def _accept(self, selector: selectors.BaseSelector) -> bool:
        try:
            client_socket, client_address = self._socket.accept()
        except (socket.timeout, BlockingIOError):
            return True
        except OSError as e:
            if self._running:
                logger.error(f"Accept error: {e}")
            return False

        logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

        conn = Connection(
            socket=client_socket,
            address=client_address,
            buffer_size=self.config.buffer_size,
            read_timeout=self.config.read_timeout,
            write_timeout=self.config.write_timeout,
            max_request_size=self.config.max_request_size,
        )
        selector.register(client_socket, selectors.EVENT_READ, conn)
        return True

    def _expire_idle(self, selector: selectors.BaseSelector) -> None:
        """Close connections that sent nothing within read_timeout."""
        for key in list(selector.get_map().values()):
            conn = key.data
            if conn is not None and conn.age > self.config.read_timeout:
                selector.unregister(key.fileobj)
                logger.debug(f"[{conn.id}] Idle connection closed after {conn.age:.1f}s")
                conn.abort()

    def shutdown(self) -> None:
        """Ask the accept loop to stop. Idempotent, callable from any thread."""
        self._running = False

    def _cleanup(self) -> None:
        self._running = False
        if self._selector is not None:
            for key in list(self._selector.get_map().values()):
                if key.data is not None:
                    key.data.abort()
            self._selector.close()
            self._selector = None
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        self._stopped.set()
        logger.info("Listener stopped")

    def close(self) -> None:
        """Close a socket that was bound but never served."""
        if not self._serving:
            self._cleanup()

    def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        """Wait until the accept loop has exited and the socket is closed."""
        return self._stopped.wait(timeout)
