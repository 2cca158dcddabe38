"""Tests for the exception hierarchy."""

import pytest

from nextbestmove.core.exceptions import (
    CalendarError,
    ConfigurationError,
    DatabaseError,
    IntegrationError,
    NextMoveError,
    PlanGenerationError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Every custom error is a NextMoveError."""

    @pytest.mark.parametrize(
        "exc_class",
        [ConfigurationError, ValidationError, DatabaseError, IntegrationError, PlanGenerationError],
    )
    def test_subclasses_base(self, exc_class):
        assert issubclass(exc_class, NextMoveError)

    def test_calendar_error_is_integration_error(self):
        assert issubclass(CalendarError, IntegrationError)

    def test_caught_by_base(self):
        """Callers can catch the base class."""
        with pytest.raises(NextMoveError):
            raise CalendarError("free/busy down")

    def test_message_preserved(self):
        assert str(PlanGenerationError("Plan already exists")) == "Plan already exists"
