"""
Input validation for LevelUp service entry points.

Purpose
-------
Single place for low-level input rules (types, bounds, identifier formats)
applied before a service touches storage. Failures raise `ValidationError`
and are logged at DEBUG with the field name and raw value.

Non-Responsibilities
--------------------
- Business rules such as badge eligibility (service layer)
- Database constraints (stores)
"""

from __future__ import annotations

import re
from typing import Any, NoReturn, Optional

from levelup.core.logging.logger import get_logger
from levelup.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_.:@\-]+$")

MAX_IDENTIFIER_LENGTH = 64
MAX_IDEMPOTENCY_KEY_LENGTH = 128


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless validators that return the normalized value or raise
    `ValidationError`.
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
    ) -> int:
        """
        Require a real `int` (bools and floats are rejected) within bounds.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")
        if isinstance(value, bool) or not isinstance(value, int):
            _raise_validation_error(
                field_name,
                value,
                f"Must be a whole number, got {type(value).__name__}",
            )

        if min_value is not None and value < min_value:
            _raise_validation_error(
                field_name, value, f"Must be at least {min_value}, got {value}"
            )
        if max_value is not None and value > max_value:
            _raise_validation_error(
                field_name, value, f"Cannot exceed {max_value}, got {value}"
            )
        return value

    @staticmethod
    def validate_non_negative_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value, field_name, min_value=0, max_value=max_value
        )

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        return InputValidator.validate_integer(
            value, field_name, min_value=1, max_value=max_value
        )

    # =========================================================================
    # IDENTIFIER VALIDATION
    # =========================================================================

    @staticmethod
    def validate_identifier(
        value: Any,
        field_name: str,
        max_length: int = MAX_IDENTIFIER_LENGTH,
    ) -> str:
        """
        Validate an opaque identifier (learner id, badge id, idempotency key).

        Identifiers are non-empty, at most `max_length` characters, and
        limited to letters, digits and `_ . : @ -`.
        """
        if not isinstance(value, str):
            _raise_validation_error(
                field_name, value, f"Must be a string, got {type(value).__name__}"
            )

        str_value = value.strip()
        if not str_value:
            _raise_validation_error(field_name, value, "Cannot be empty")
        if len(str_value) > max_length:
            _raise_validation_error(
                field_name, value, f"Cannot exceed {max_length} characters"
            )
        if not _IDENTIFIER_RE.match(str_value):
            _raise_validation_error(field_name, value, "Contains invalid characters")
        return str_value

    @staticmethod
    def validate_learner_id(value: Any) -> str:
        return InputValidator.validate_identifier(value, "learner_id")

    @staticmethod
    def validate_idempotency_key(value: Any) -> str:
        return InputValidator.validate_identifier(
            value, "idempotency_key", max_length=MAX_IDEMPOTENCY_KEY_LENGTH
        )
