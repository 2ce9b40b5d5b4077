"""Core application middleware utilities.

Imported in app_factory to compose the middleware stack in the intended order.
"""

from .logging_middleware import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
