"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps an accepted client socket with the two operations the public site
needs: read one request head, and write one response.

TCP is a byte stream, not a message protocol. A request head can arrive
split across several recv() calls, so reads accumulate into a buffer
until the blank line that ends the head (\r\n\r\n) shows up.

    recv() → b"GET /index.ht"
    recv() → b"ml HTTP/1.1\r\nHost: x\r\n"
    recv() → b"\r\n"                       ← head complete

Timeouts:
    read_timeout   applies while waiting for the request head
    write_timeout  applies while sending the response

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection.

    Usage:
        with Connection(sock, addr) as conn:
            raw = conn.read_request()
            conn.send_response(response_bytes)
    """

    socket: socket.socket
    address: tuple
    buffer_size: int = 8192
    read_timeout: float = 30.0
    write_timeout: float = 30.0
    max_request_size: int = 64 * 1024

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    def read_request(self) -> Optional[bytes]:
        """
        Read bytes up to and including the end of one request head.

        Any body bytes already received stay in the buffer; the public
        site ignores request bodies.

        Returns:
            The request head, or None if the client closed first.

        Raises:
            TimeoutError: If the head does not arrive within read_timeout.
            ValueError: If the head grows past max_request_size.
        """
        self.state = ConnectionState.READING
        self.socket.settimeout(self.read_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None

                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")
        except socket.timeout:
            raise TimeoutError("Request read timeout") from None

        head_end = self._buffer.find(b"\r\n\r\n") + 4
        head, self._buffer = self._buffer[:head_end], self._buffer[head_end:]
        self.state = ConnectionState.PROCESSING
        return head

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def send_response(self, data: bytes) -> bool:
        """
        Send response bytes with sendall().

        Returns:
            True on success, False if the peer went away or timed out.
        """
        self.state = ConnectionState.WRITING
        self.socket.settimeout(self.write_timeout)
        try:
            self.socket.sendall(data)
            return True
        except (socket.timeout, ConnectionResetError, BrokenPipeError, OSError) as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def close(self):
        """
        Shut down the write side, drain briefly, release the socket.

        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def abort(self):
        """Release the socket at once, without the graceful drain."""
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
