"""
Shared domain foundations.

- BaseService: logging, config access, optional event emission
- BaseRepository: type-safe async data access
- Domain exceptions: caller-facing errors with stable error codes
- Constants: built-in gameplay values
"""

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    RpgDomainException,
    ValidationError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "RpgDomainException",
    "ConflictError",
    "ForbiddenError",
    "InvalidOperationError",
    "NotFoundError",
    "ValidationError",
    "get_error_severity",
    "is_transient_error",
    "should_alert",
]
