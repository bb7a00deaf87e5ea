"""Middleware for the code runner API."""

from .logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
