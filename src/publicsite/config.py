"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the public site server.

=============================================================================
CONTROL PANEL LAYOUT
=============================================================================

The control panel keeps everything for the public site under one base
directory. ``ServerConfig.for_base_dir()`` derives the rest from it:

    <base>/
    ├── public/                      ← document root (served as-is)
    │   └── index.html               ← answer for "/"
    └── logs/
        ├── public_errors.log        ← error sink   (path::status::error)
        └── public_load_time.log     ← load-time sink (path rendered in N s)

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    Priority (highest to lowest):

    1. Command-line arguments        python -m publicsite --port 3000
    2. Environment variables         PUBLICSITE_PORT=3000 python -m publicsite
    3. Default values (this dataclass)

The request handler never reads the environment itself; it only sees the
values handed to it at construction time.

=============================================================================
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


ERROR_LOG_NAME = "public_errors.log"
LOAD_TIME_LOG_NAME = "public_load_time.log"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    """
    Configuration for the public site server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    CONTENT
    - document_root, harden_paths

    NETWORK
    - host, port, backlog, buffer_size, read_timeout, write_timeout

    LIFECYCLE
    - shutdown_timeout, min_workers, max_workers, queue_size

    LOG SINKS
    - error_log_path, load_time_log_path, strict_logs

    LOGGING
    - log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    document_root: str = "public/"
    """
    Directory all served files are resolved against. Request paths are
    appended to it verbatim, so it should end with a separator.
    """

    harden_paths: bool = True
    """
    Reject request paths that resolve outside document_root with 403.
    False reproduces the legacy behavior of plain string concatenation.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "localhost"
    port: int = 8080
    backlog: int = 128
    buffer_size: int = 8192
    max_request_size: int = 64 * 1024

    read_timeout: float = 30.0
    """Seconds to wait for a complete request on an accepted connection."""

    write_timeout: float = 30.0
    """Seconds allowed for sending a response."""

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    shutdown_timeout: float = 5.0
    """Grace period stop() gives in-flight requests before giving up."""

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100

    # ─────────────────────────────────────────────────────────────────────
    # LOG SINKS
    # ─────────────────────────────────────────────────────────────────────

    error_log_path: Optional[str] = None
    """Append-only file for ``path::status::error`` lines."""

    load_time_log_path: Optional[str] = None
    """Append-only file for ``path rendered in N seconds`` lines."""

    strict_logs: bool = False
    """
    True: a sink that cannot be opened aborts startup (SinkOpenError).
    False: warn and route that sink's lines to the logging module instead.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    server_name: str = "publicsite/1.0"

    @classmethod
    def for_base_dir(cls, base_dir: str, port: int, **overrides) -> "ServerConfig":
        """
        Build a configuration from the control panel's base directory.

        Args:
            base_dir: Directory holding ``public/`` and ``logs/``.
            port: Port the public site listens on.
            **overrides: Any other ServerConfig field.

        Example:
            config = ServerConfig.for_base_dir("/srv/panel", 8080)
            config.document_root     # '/srv/panel/public/'
        """
        base = Path(base_dir)
        logs = base / "logs"
        values = dict(
            document_root=os.path.join(str(base), "public", ""),
            port=port,
            error_log_path=str(logs / ERROR_LOG_NAME),
            load_time_log_path=str(logs / LOAD_TIME_LOG_NAME),
        )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        PUBLICSITE_BASE_DIR     Base directory (derives root and log paths)
        PUBLICSITE_ROOT         Document root (overrides the derived one)
        PUBLICSITE_HOST         Bind host (default: localhost)
        PUBLICSITE_PORT         Port (default: 8080)
        PUBLICSITE_WORKERS      Max worker threads (default: 16)
        PUBLICSITE_LOG_LEVEL    Logging level (default: INFO)
        PUBLICSITE_STRICT_LOGS  Fail startup on unusable sinks (default: off)

        =====================================================================
        """
        port = int(os.getenv("PUBLICSITE_PORT", "8080"))
        workers = int(os.getenv("PUBLICSITE_WORKERS", "16"))
        overrides = dict(
            host=os.getenv("PUBLICSITE_HOST", "localhost"),
            min_workers=min(cls.min_workers, workers),
            max_workers=workers,
            log_level=os.getenv("PUBLICSITE_LOG_LEVEL", "INFO"),
            strict_logs=_env_flag("PUBLICSITE_STRICT_LOGS"),
        )
        root = os.getenv("PUBLICSITE_ROOT")
        if root:
            overrides["document_root"] = root

        base_dir = os.getenv("PUBLICSITE_BASE_DIR")
        if base_dir:
            return cls.for_base_dir(base_dir, port, **overrides)
        return cls(port=port, **overrides)

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by PublicServer at construction so a bad value fails at
        startup instead of on the first request.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not self.document_root:
            raise ValueError("document_root must not be empty")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        for name in ("read_timeout", "write_timeout", "shutdown_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
