"""
Domain exceptions for the progression engine.

Raised by services for business rule violations and caller mistakes. An
outer surface (HTTP handler, bot command) translates them into responses;
``error_code`` is stable and safe to switch on, ``message`` is for humans.

Every exception carries:
  - ``message``: human-readable description
  - ``details``: structured context (dict)
  - ``severity``: ``ErrorSeverity`` for logging/alerting decisions
  - ``is_retryable``: whether the caller may try again unchanged
  - ``error_code``: short, stable identifier
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from rpg_social.core.exceptions import ErrorSeverity, RpgInfrastructureException


class RpgDomainException(Exception):
    """
    Base exception for all domain-level errors.

    Example:
        >>> raise RpgDomainException("Award failed", {"reason": "user frozen"})
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class NotFoundError(RpgDomainException):
    """
    A referenced user, quest or level does not exist.

    Args:
        resource_type: e.g. "UserAccount", "QuestDefinition"
        identifier: Optional identifier of the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(RpgDomainException):
    """
    Malformed input: non-integer amount, unknown action type, badge without id.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message

        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class ConflictError(RpgDomainException):
    """
    A write lost every optimistic-concurrency retry, or would break a
    uniqueness rule (e.g. starting a quest twice).

    Retrying later with a fresh read can succeed.

    Args:
        resource_type: Kind of record that conflicted
        reason: Explanation of the conflict
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, resource_type: str, reason: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.reason = reason

        super().__init__(
            f"{resource_type} conflict: {reason}",
            details={"resource_type": resource_type, "identifier": identifier, "reason": reason},
            error_code=f"{resource_type.upper()}_CONFLICT",
        )


class ForbiddenError(RpgDomainException):
    """
    The caller is not allowed to act on the resource.

    Authorization lives outside this package; the error exists so outer
    layers and services share one code for it.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason

        super().__init__(
            f"Forbidden '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code="FORBIDDEN",
        )


class InvalidOperationError(RpgDomainException):
    """
    The action violates a game rule: level prerequisite not met, quest not
    active, record in a terminal state.

    Example:
        >>> raise InvalidOperationError("start_quest", "requires level 10")
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason

        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


def is_transient_error(exc: Exception) -> bool:
    """True when the failed operation may succeed if retried unchanged."""
    if isinstance(exc, (RpgDomainException, RpgInfrastructureException)):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    if isinstance(exc, (RpgDomainException, RpgInfrastructureException)):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
