"""
Request handlers.

The public site has exactly one: StaticRequestHandler, which answers
every path from the document root.
"""

from .static import StaticRequestHandler, UNAVAILABLE_MESSAGES

__all__ = ["StaticRequestHandler", "UNAVAILABLE_MESSAGES"]
