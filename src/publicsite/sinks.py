"""
=============================================================================
APPEND-ONLY LOG SINKS
=============================================================================

The public site keeps two plain-text logs next to its document root:

    public_errors.log       /srv/panel/public/missing.html::404::[Errno 2] ...
    public_load_time.log    /srv/panel/public/index.html rendered in 0.000412 seconds

Each ``write()`` appends exactly one line and flushes it before returning.
Lines from concurrent requests never interleave because writes are
serialized by a per-sink lock.

=============================================================================
WHEN A SINK CANNOT BE OPENED
=============================================================================

    strict=True   →  SinkOpenError, startup aborts
    strict=False  →  WARNING through logging, and a LoggerSink is returned
                     so the lines still end up in the process log

=============================================================================
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from .errors import SinkOpenError


logger = logging.getLogger(__name__)


class LogSink:
    """
    Thread-safe, append-only line writer backed by a file.

    Usage:
        with LogSink.open("/srv/panel/logs/public_errors.log") as sink:
            sink.write("index.html::404::no such file")
    """

    def __init__(self, stream: TextIO, name: str = "", timestamps: bool = True):
        self._stream = stream
        self._lock = threading.Lock()
        self.name = name or getattr(stream, "name", "<stream>")
        self.timestamps = timestamps

    @classmethod
    def open(cls, path: str, create_dirs: bool = True, timestamps: bool = True) -> "LogSink":
        """
        Open ``path`` for appending.

        Raises:
            OSError: If the file (or its directory) cannot be created.
        """
        target = Path(path)
        if create_dirs:
            target.parent.mkdir(parents=True, exist_ok=True)
        stream = open(target, "a", encoding="utf-8")
        return cls(stream, name=str(target), timestamps=timestamps)

    def _format(self, line: str) -> str:
        line = line.rstrip("\n")
        if self.timestamps:
            stamp = datetime.now().strftime("%Y/%m/%d %H:%M:%S")
            return f"{stamp} {line}\n"
        return f"{line}\n"

    def write(self, line: str) -> None:
        """Append one line and flush it."""
        entry = self._format(line)
        with self._lock:
            self._stream.write(entry)
            self._stream.flush()

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def close(self) -> None:
        with self._lock:
            if not self._stream.closed:
                self._stream.close()

    def __enter__(self) -> "LogSink":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class LoggerSink:
    """
    Stand-in sink that forwards lines to a ``logging`` logger.

    Used when a file sink cannot be opened and strict mode is off.
    """

    def __init__(self, name: str, level: int = logging.INFO, log: Optional[logging.Logger] = None):
        self.name = name
        self.level = level
        self._logger = log or logger
        self.closed = False

    def write(self, line: str) -> None:
        self._logger.log(self.level, "[%s] %s", self.name, line.rstrip("\n"))

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "LoggerSink":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"LoggerSink({self.name!r})"


def open_sink(path: Optional[str], strict: bool = False, level: int = logging.INFO):
    """
    Open a file sink according to the configured failure policy.

    Args:
        path: File to append to. ``None`` means no file was configured;
              a LoggerSink is returned without a warning.
        strict: Raise instead of degrading when the file cannot be opened.
        level: Logging level used by the LoggerSink fallback.

    Returns:
        A LogSink, or a LoggerSink if the file is unusable and strict is off.

    Raises:
        SinkOpenError: If the file cannot be opened and strict is on.
    """
    if path is None:
        return LoggerSink("unconfigured", level=level)

    try:
        return LogSink.open(path)
    except OSError as e:
        if strict:
            raise SinkOpenError(path, e) from e
        logger.warning(f"Could not open log sink {path}: {e}; writing to process log instead")
        return LoggerSink(path, level=level)
