"""
Middleware wrapped around the file manager handler.

    server = FileManagerServer(config)
    server.use(SomeMiddleware())
    server.run()

The access log is added first, so it is outermost.
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    # Base classes
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    # Built-in middleware
    "LoggingMiddleware",
    "RequestLog",
]
