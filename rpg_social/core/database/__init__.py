"""
Database subsystem.

Async SQLAlchemy engine and session management, optimistic-concurrency
retry, and the ORM base classes and mixins for model definitions.
"""

from rpg_social.core.database.base import (
    Base,
    IdMixin,
    JSONType,
    TimestampMixin,
    ensure_utc,
    utc_now,
)
from rpg_social.core.database.retry_policy import (
    CONFLICT_EXCEPTIONS,
    DatabaseRetryConfig,
    DatabaseRetryPolicy,
)
from rpg_social.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "JSONType",
    "TimestampMixin",
    "ensure_utc",
    "utc_now",
    # Main service
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
    # Retry
    "CONFLICT_EXCEPTIONS",
    "DatabaseRetryConfig",
    "DatabaseRetryPolicy",
]
