"""
Validation primitives for LevelUp domain value objects.

Domain value objects are frozen dataclasses that check their invariants in
`__post_init__` and raise `DomainValidationError`. They are separate from the
SQLAlchemy rows in `levelup.database.models`; stores convert between the two.
"""

from __future__ import annotations

from typing import Optional


class DomainValidationError(Exception):
    """
    Raised when a domain value object is constructed with invalid data.

    Parameters
    ----------
    message : str
        Human-readable error message
    field : Optional[str]
        Field name that failed validation (if applicable)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: int, field_name: str) -> None:
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def validate_not_empty(value: str, field_name: str) -> None:
    if not value or not value.strip():
        raise DomainValidationError(
            f"{field_name} cannot be empty",
            field=field_name,
        )
