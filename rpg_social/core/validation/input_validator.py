"""
Input validation layer.

Purpose
-------
Single source of truth for low-level input checks on everything that enters
a service: XP amounts, user and quest ids, action types, badge payloads,
usernames.

Responsibilities
----------------
- Validate and return inputs in their canonical type
- Enforce bounds on numbers and lengths on strings
- Validate choices against an allowed set
- Raise ValidationError with a field name and a readable reason

Non-Responsibilities
--------------------
- Business rules such as level prerequisites (service layer)
- Persistence constraints (database)

Observability
-------------
Every failure is logged at debug level with field_name, raw_value and reason.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, NoReturn, Optional

from rpg_social.core.logging.logger import get_logger
from rpg_social.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    logger.debug(
        "Input validation failed",
        extra={"field_name": field_name, "raw_value": repr(value), "reason": message},
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless validators. Each returns the validated value or raises
    ValidationError; none fail silently.
    """

    # =========================================================================
    # INTEGER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
        allow_zero: bool = True,
        strict: bool = False,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Args:
            value: Input value to validate
            field_name: Name of field for error messages/logging
            min_value: Minimum allowed value (inclusive)
            max_value: Maximum allowed value (inclusive)
            allow_zero: Whether zero is acceptable
            strict: Require an actual ``int`` (no bools, floats or numeric
                strings). Used where the caller's type is part of the contract.

        Raises:
            ValidationError: If validation fails
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if strict:
            if isinstance(value, bool) or not isinstance(value, int):
                _raise_validation_error(
                    field_name, value, f"Must be an integer, got {type(value).__name__}"
                )
            int_value = value
        else:
            if isinstance(value, float) and not value.is_integer():
                _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")
            try:
                int_value = int(value)
            except (ValueError, TypeError):
                _raise_validation_error(field_name, value, f"Must be a whole number, got '{value}'")

        if not allow_zero and int_value == 0:
            _raise_validation_error(field_name, int_value, "Cannot be zero")

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name, int_value, f"Must be at least {min_value}, got {int_value}"
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name, int_value, f"Cannot exceed {max_value}, got {int_value}"
            )

        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
        strict: bool = False,
    ) -> int:
        return InputValidator.validate_integer(
            value=value,
            field_name=field_name,
            min_value=1,
            max_value=max_value,
            allow_zero=False,
            strict=strict,
        )

    @staticmethod
    def validate_non_negative_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
        strict: bool = False,
    ) -> int:
        return InputValidator.validate_integer(
            value=value,
            field_name=field_name,
            min_value=0,
            max_value=max_value,
            allow_zero=True,
            strict=strict,
        )

    @staticmethod
    def validate_entity_id(value: Any, field_name: str = "user_id") -> int:
        """Database ids are strictly positive ints."""
        return InputValidator.validate_positive_integer(value, field_name=field_name, strict=True)

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        allowed_chars: Optional[str] = None,
    ) -> str:
        """
        Validate string input with optional length and character constraints.

        Args:
            value: Must be a ``str``; surrounding whitespace is stripped
            field_name: Name of field for error messages
            min_length: Minimum string length after stripping
            max_length: Maximum string length
            allowed_chars: Regex character class, e.g. ``'a-zA-Z0-9_'``
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if not isinstance(value, str):
            _raise_validation_error(field_name, value, f"Must be a string, got {type(value).__name__}")

        str_value = value.strip()

        if min_length is not None and len(str_value) < min_length:
            _raise_validation_error(field_name, str_value, f"Must be at least {min_length} characters")

        if max_length is not None and len(str_value) > max_length:
            _raise_validation_error(field_name, str_value, f"Cannot exceed {max_length} characters")

        if allowed_chars is not None and not re.fullmatch(f"[{allowed_chars}]+", str_value):
            _raise_validation_error(field_name, str_value, "Contains invalid characters")

        return str_value

    # =========================================================================
    # CHOICE VALIDATION
    # =========================================================================

    @staticmethod
    def validate_choice(
        value: Any,
        field_name: str,
        valid_choices: Iterable[str],
    ) -> str:
        """Case-insensitive membership check; returns the lowercased value."""
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if not isinstance(value, str):
            _raise_validation_error(field_name, value, f"Must be a string, got {type(value).__name__}")

        choices = {c.lower() for c in valid_choices}
        str_value = value.strip().lower()

        if str_value not in choices:
            _raise_validation_error(
                field_name,
                value,
                f"Invalid choice '{value}'. Must be one of: {', '.join(sorted(choices))}",
            )

        return str_value

    # =========================================================================
    # STRUCTURED PAYLOADS
    # =========================================================================

    @staticmethod
    def validate_mapping(
        value: Any,
        field_name: str,
        required_keys: Iterable[str] = (),
    ) -> Mapping[str, Any]:
        """Require a mapping carrying every key in ``required_keys``."""
        if not isinstance(value, Mapping):
            _raise_validation_error(field_name, value, f"Must be a mapping, got {type(value).__name__}")

        missing = [key for key in required_keys if key not in value]
        if missing:
            _raise_validation_error(field_name, value, f"Missing required keys: {', '.join(missing)}")

        return value
