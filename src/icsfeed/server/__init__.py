"""HTTP feed server for icsfeed."""

from icsfeed.server.app import create_app, register_exception_handlers, serve

__all__ = [
    "create_app",
    "register_exception_handlers",
    "serve",
]
