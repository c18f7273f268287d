"""Shared core utilities for the order service and the checkout client.

Provides common health check and logging functionality.
"""

from .health import ServiceHealth, HealthStatus
from .logging_config import (
    setup_logging,
    get_logger,
    RequestLoggingMiddleware,
    SecurityFilter,
    set_request_context,
    generate_request_id,
    LoggerAdapter,
)

__all__ = [
    # Health checks
    "ServiceHealth",
    "HealthStatus",
    # Logging
    "setup_logging",
    "get_logger",
    "RequestLoggingMiddleware",
    "SecurityFilter",
    "set_request_context",
    "generate_request_id",
    "LoggerAdapter",
]
