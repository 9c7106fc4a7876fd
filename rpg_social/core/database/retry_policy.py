"""
Database Retry Policy - Optimistic Concurrency Resilience

Purpose
-------
Re-run a whole unit of database work when it loses a race. Every mutable
row (user progression, quest progress) carries a version column; SQLAlchemy
adds ``WHERE version = :old`` to each UPDATE and raises ``StaleDataError``
when another writer got there first. A concurrent duplicate insert into a
uniquely constrained table raises ``IntegrityError``. Both are resolved by
starting the operation again from a fresh read.

``OperationalError`` (lock timeouts, "database is locked", dropped
connections) is also replayed, but it is an infrastructure failure rather
than a lost race. It is left out of ``CONFLICT_EXCEPTIONS`` so services map
only real write conflicts to ``ConflictError``; an exhausted
``OperationalError`` reaches the caller unchanged.

Responsibilities
----------------
- Execute async operations with retry logic
- Classify errors as retriable or non-retriable
- Exponential backoff with jitter between attempts
- Structured logs for each failed attempt and for give-up

Non-Responsibilities
--------------------
- Transaction management (the operation opens its own transaction)
- Mapping exhausted retries to domain errors (callers do that)

Backoff Strategy
----------------
min(initial_ms * 2^(attempt-1), max_ms) + random(0, jitter_ms)

Configuration
-------------
- DATABASE_RETRY_MAX_ATTEMPTS
- DATABASE_RETRY_INITIAL_BACKOFF_MS
- DATABASE_RETRY_MAX_BACKOFF_MS
- DATABASE_RETRY_JITTER_MS

Retry Pattern
-------------
Retry the operation that creates the transaction, never work inside one:

```python
async def operation():
    async with DatabaseService.get_transaction() as session:
        ...

await retry_policy.execute(operation, operation_name="xp.award")
```
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from rpg_social.core.config.config import Config
from rpg_social.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Errors meaning "someone else wrote first": safe to replay from a fresh read
CONFLICT_EXCEPTIONS: Tuple[Type[BaseException], ...] = (StaleDataError, IntegrityError)


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class DatabaseRetryConfig:
    """
    Configuration for database retry behavior.

    Attributes
    ----------
    max_attempts : int
        Maximum number of attempts (including initial attempt).
    initial_backoff_ms : int
        Initial backoff duration in milliseconds.
    max_backoff_ms : int
        Maximum backoff duration in milliseconds.
    jitter_ms : int
        Maximum random jitter added to each backoff.
    retriable_exceptions : Tuple[Type[BaseException], ...]
        Exception types considered retriable.
    """

    max_attempts: int
    initial_backoff_ms: int
    max_backoff_ms: int
    jitter_ms: int
    retriable_exceptions: Tuple[Type[BaseException], ...] = (
        *CONFLICT_EXCEPTIONS,
        OperationalError,
    )

    @classmethod
    def from_config(cls) -> DatabaseRetryConfig:
        return cls(
            max_attempts=Config.DATABASE_RETRY_MAX_ATTEMPTS,
            initial_backoff_ms=Config.DATABASE_RETRY_INITIAL_BACKOFF_MS,
            max_backoff_ms=Config.DATABASE_RETRY_MAX_BACKOFF_MS,
            jitter_ms=Config.DATABASE_RETRY_JITTER_MS,
        )


# ============================================================================
# Retry Policy
# ============================================================================


class DatabaseRetryPolicy:
    """
    Execute async database operations with retry semantics.

    Usage
    -----
    >>> retry_policy = DatabaseRetryPolicy.from_config()
    >>> result = await retry_policy.execute(
    >>>     db_operation,
    >>>     operation_name="quests.update_progress",
    >>>     context={"user_id": 42},
    >>> )
    """

    def __init__(self, config: DatabaseRetryConfig) -> None:
        self._config = config

    @classmethod
    def from_config(cls) -> DatabaseRetryPolicy:
        return cls(DatabaseRetryConfig.from_config())

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def _is_retriable(self, exc: BaseException) -> bool:
        return isinstance(exc, self._config.retriable_exceptions)

    def _compute_backoff_ms(self, attempt: int) -> int:
        """Exponential backoff for ``attempt`` (1-indexed), capped and jittered."""
        exponent = max(attempt - 1, 0)
        capped = min(self._config.initial_backoff_ms * (2**exponent), self._config.max_backoff_ms)
        jitter = random.randint(0, self._config.jitter_ms) if self._config.jitter_ms > 0 else 0
        return capped + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str,
        context: Optional[dict[str, Any]] = None,
    ) -> T:
        """
        Execute ``operation`` and replay it on retriable failures.

        Parameters
        ----------
        operation : Callable[[], Awaitable[T]]
            Zero-argument async callable that opens its own transaction.
        operation_name : str
            Stable identifier for logging (e.g. "xp.award").
        context : Optional[dict[str, Any]]
            Additional structured context for logs.

        Raises
        ------
        BaseException
            The last exception when retries are exhausted, or the first
            non-retriable exception immediately.
        """
        ctx_extra = dict(context or {})
        ctx_extra["operation_name"] = operation_name

        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                if not self._is_retriable(exc):
                    raise

                error_type = type(exc).__name__
                if attempt >= self._config.max_attempts:
                    logger.error(
                        "Database operation retries exhausted",
                        extra={
                            **ctx_extra,
                            "attempt": attempt,
                            "error_type": error_type,
                            "max_attempts": self._config.max_attempts,
                        },
                    )
                    raise

                backoff_ms = self._compute_backoff_ms(attempt)
                logger.warning(
                    "Database operation conflicted; retrying",
                    extra={
                        **ctx_extra,
                        "attempt": attempt,
                        "error_type": error_type,
                        "backoff_ms": backoff_ms,
                    },
                )
                await asyncio.sleep(backoff_ms / 1000.0)
