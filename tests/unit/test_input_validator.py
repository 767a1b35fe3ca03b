"""
Unit tests for InputValidator.
"""

import pytest

from levelup.core.validation.input_validator import InputValidator
from levelup.modules.shared.exceptions import ValidationError


@pytest.mark.unit
class TestIntegerValidation:
    """Test integer rules."""

    def test_accepts_int_within_bounds(self):
        assert InputValidator.validate_integer(5, "amount", min_value=0, max_value=10) == 5

    @pytest.mark.parametrize("value", [True, 1.0, "3", None])
    def test_rejects_non_int(self, value):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_integer(value, "amount")

        assert exc_info.value.field == "amount"

    def test_non_negative_allows_zero(self):
        assert InputValidator.validate_non_negative_integer(0, "amount") == 0

    def test_positive_rejects_zero(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_positive_integer(0, "limit")

    def test_max_value(self):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_integer(11, "limit", max_value=10)

        assert "Cannot exceed 10" in exc_info.value.validation_message


@pytest.mark.unit
class TestIdentifierValidation:
    """Test identifier rules."""

    def test_strips_whitespace(self):
        assert InputValidator.validate_learner_id("  learner-1 ") == "learner-1"

    @pytest.mark.parametrize("value", ["user@example.com", "badge:xp-hunter", "a_b.c", "42"])
    def test_accepts_allowed_characters(self, value):
        assert InputValidator.validate_identifier(value, "badge_id") == value

    @pytest.mark.parametrize("value", ["", "  ", "with space", "semi;colon", "x" * 65, 7])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_identifier(value, "badge_id")

    def test_idempotency_key_allows_longer_values(self):
        key = "attempt:" + "1" * 100

        assert InputValidator.validate_idempotency_key(key) == key
        with pytest.raises(ValidationError):
            InputValidator.validate_idempotency_key("k" * 129)
