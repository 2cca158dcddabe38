"""Core package - Configuration, logging, exceptions.

This package provides foundational infrastructure used by all other layers.

Modules:
    - config: Environment and configuration management
    - logging: Structured JSON logging
    - exceptions: Custom exception hierarchy
"""

from nextbestmove.core.exceptions import (
    CalendarError,
    ConfigurationError,
    DatabaseError,
    IntegrationError,
    NextMoveError,
    PlanGenerationError,
    ValidationError,
)

__all__ = [
    "NextMoveError",
    "ConfigurationError",
    "ValidationError",
    "DatabaseError",
    "IntegrationError",
    "CalendarError",
    "PlanGenerationError",
]
