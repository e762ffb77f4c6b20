"""FastAPI middleware components."""

from genealogy_buddy.api.middleware.exception_handler import setup_exception_handlers
from genealogy_buddy.api.middleware.logging import LoggingMiddleware
from genealogy_buddy.api.middleware.metrics import MetricsMiddleware

__all__ = [
    "LoggingMiddleware",
    "MetricsMiddleware",
    "setup_exception_handlers",
]
