"""
Core package
"""

from .exceptions import (
    CallAuditException,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    ConflictError,
    PreconditionError,
    UpstreamServiceError,
    MalformedAnalysisError,
    ConfigurationError
)

from .logging import (
    setup_logging,
    get_logger,
    api_logger,
    service_logger,
    pipeline_logger,
    ai_logger,
    db_logger
)

from .middleware import (
    RequestLoggingMiddleware,
    ExceptionHandlingMiddleware
)

__all__ = [
    # Exceptions
    "CallAuditException",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "ConflictError",
    "PreconditionError",
    "UpstreamServiceError",
    "MalformedAnalysisError",
    "ConfigurationError",

    # Logging
    "setup_logging",
    "get_logger",
    "api_logger",
    "service_logger",
    "pipeline_logger",
    "ai_logger",
    "db_logger",

    # Middleware
    "RequestLoggingMiddleware",
    "ExceptionHandlingMiddleware",
]
