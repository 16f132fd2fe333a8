"""
=============================================================================
PUBLICSITE - STATIC SERVER FOR A CONTROL PANEL'S PUBLIC WEBSITE
=============================================================================

Serves the files under a control panel's ``public/`` directory, answers
503 while the panel has the site down, restarting or in maintenance, and
keeps two append-only logs: failures (``path::status::error``) and
render times (``path rendered in N seconds``).

    from publicsite import PublicServer, ServerConfig

    server = PublicServer(ServerConfig.for_base_dir("/srv/panel", 8080))
    server.start()
    ...
    server.maintenance()
    server.resume()
    server.stop()

Or from a shell:

    python -m publicsite --base-dir /srv/panel --port 8080

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .status import ServerStatus, StatusCell
from .sinks import LogSink, LoggerSink, open_sink
from .errors import (
    PublicSiteError,
    NotFound,
    UnsupportedMediaType,
    InternalError,
    Unavailable,
    Forbidden,
    SinkOpenError,
)
from .handlers import StaticRequestHandler
from .server import PublicServer

__all__ = [
    "ServerConfig",
    "ServerStatus",
    "StatusCell",
    "LogSink",
    "LoggerSink",
    "open_sink",
    "PublicSiteError",
    "NotFound",
    "UnsupportedMediaType",
    "InternalError",
    "Unavailable",
    "Forbidden",
    "SinkOpenError",
    "StaticRequestHandler",
    "PublicServer",
    "__version__",
]
