"""
Administrative server status.

The control panel flips the public site between a handful of modes. The
request handler only ever reads the current mode; the lifecycle manager
in ``publicsite.server`` is the only writer. Reads and writes go through
``StatusCell`` so a request never observes a half-applied transition.

    DOWN ──start()──► NORMAL ◄──resume()── MAINTENANCE
      ▲                 │  │                    ▲
      │               stop │ maintenance() ─────┘
      └─────────────────┘  │
                        restart()
                           ▼
                       RESTARTING ──► DOWN ──► NORMAL
"""

import threading
from enum import IntEnum


class ServerStatus(IntEnum):
    """
    Closed set of server modes.

    Values match the integers the control panel stores, so a status read
    from elsewhere can be converted with ``ServerStatus(value)``.
    """

    DOWN = 0
    NORMAL = 1
    MAINTENANCE = 2
    RESTARTING = 3

    @property
    def is_serving(self) -> bool:
        """True only when requests should reach the filesystem."""
        return self is ServerStatus.NORMAL


class StatusCell:
    """
    Thread-safe holder for the current ``ServerStatus``.

    Usage:
        cell = StatusCell()
        cell.set(ServerStatus.NORMAL)
        if cell.get() is ServerStatus.MAINTENANCE:
            ...
        cell.transition(ServerStatus.MAINTENANCE, ServerStatus.NORMAL)
    """

    def __init__(self, initial: ServerStatus = ServerStatus.DOWN):
        self._status = ServerStatus(initial)
        self._lock = threading.Lock()

    def get(self) -> ServerStatus:
        with self._lock:
            return self._status

    def set(self, status: ServerStatus) -> ServerStatus:
        """Store a new status and return the previous one."""
        status = ServerStatus(status)
        with self._lock:
            previous, self._status = self._status, status
        return previous

    def transition(self, expected: ServerStatus, new: ServerStatus) -> bool:
        """
        Compare-and-set.

        Returns:
            True if the status was ``expected`` and is now ``new``,
            False (and nothing changed) otherwise.
        """
        expected, new = ServerStatus(expected), ServerStatus(new)
        with self._lock:
            if self._status is not expected:
                return False
            self._status = new
            return True

    def __repr__(self) -> str:
        return f"StatusCell({self.get().name})"
