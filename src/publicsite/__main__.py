"""
=============================================================================
PUBLICSITE CLI ENTRY POINT
=============================================================================

    # Serve <base>/public/ and log to <base>/logs/
    python -m publicsite --base-dir /srv/panel --port 8080

    # Serve an arbitrary directory, logging only to the console
    python -m publicsite --root ./public/

    # Start in maintenance mode
    python -m publicsite --base-dir /srv/panel --maintenance

Environment variables (PUBLICSITE_*) supply defaults; flags override them.

=============================================================================
"""

import argparse
import os
import sys
from dataclasses import replace

from . import __version__
from .config import ServerConfig
from .errors import SinkOpenError
from .server import PublicServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="publicsite",
        description="Static server for a control panel's public website",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m publicsite --base-dir /srv/panel            # public/ + logs/
  python -m publicsite --root ./public/ --port 3000     # plain directory
  python -m publicsite --base-dir /srv/panel --maintenance
        """,
    )

    parser.add_argument(
        "--base-dir", "-b",
        default=None,
        help="Control panel directory holding public/ and logs/",
    )
    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Document root (overrides the one derived from --base-dir)",
    )
    parser.add_argument("--host", "-H", default=None, help="Host to bind to (default: localhost)")
    parser.add_argument("--port", "-p", type=int, default=None, help="Port to listen on (default: 8080)")
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Worker threads to start with (max is 4x this)",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--strict-logs",
        action="store_true",
        help="Refuse to start if a log file cannot be opened",
    )
    parser.add_argument(
        "--allow-traversal",
        action="store_true",
        help="Do not confine request paths to the document root (legacy behavior)",
    )
    parser.add_argument(
        "--maintenance",
        action="store_true",
        help="Start in maintenance mode",
    )
    parser.add_argument("--version", "-v", action="version", version=f"publicsite {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment defaults, then command-line overrides."""
    config = ServerConfig.from_env()
    port = args.port if args.port is not None else config.port

    if args.base_dir:
        derived = ServerConfig.for_base_dir(args.base_dir, port)
        config = replace(
            config,
            document_root=derived.document_root,
            error_log_path=derived.error_log_path,
            load_time_log_path=derived.load_time_log_path,
        )
    config.port = port

    if args.root:
        config.document_root = os.path.join(args.root, "")
    if args.host:
        config.host = args.host
    if args.workers:
        config.min_workers = args.workers
        config.max_workers = args.workers * 4
    if args.log_level:
        config.log_level = args.log_level
    if args.strict_logs:
        config.strict_logs = True
    if args.allow_traversal:
        config.harden_paths = False
    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = PublicServer(config)
    except (ValueError, SinkOpenError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not os.path.isdir(config.document_root):
        print(f"Warning: document root {config.document_root} does not exist", file=sys.stderr)

    server.configure_logging()
    try:
        if args.maintenance:
            server.start()
            server.maintenance()
        server.serve_forever()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        server.close()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
