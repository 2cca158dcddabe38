"""NextBestMove Exception Hierarchy.

All custom exceptions inherit from NextMoveError.

The pure decision engine (scoring, lanes, state machine, duration filter)
never raises for missing or odd data; these exceptions belong to the store,
the integrations and the orchestration flows around it.

Exception Hierarchy:
    NextMoveError (base)
    ├── ConfigurationError
    ├── ValidationError
    ├── DatabaseError
    ├── IntegrationError
    │   └── CalendarError
    └── PlanGenerationError
"""


class NextMoveError(Exception):
    """Base exception for all NextBestMove errors."""

    pass


class ConfigurationError(NextMoveError):
    """Configuration is invalid or missing.

    Raised when:
        - Configuration value cannot be parsed
        - Path is not writable
    """

    pass


class ValidationError(NextMoveError):
    """Data validation failed.

    Raised when:
        - estimated_minutes is zero or negative on write
        - Action is not tied to a relationship where one is required
        - Referenced record does not exist
    """

    pass


class DatabaseError(NextMoveError):
    """Database operation failed.

    Raised when:
        - Database file cannot be opened
        - Query execution fails
    """

    pass


class IntegrationError(NextMoveError):
    """External integration failed.

    Base class for integration-specific errors.
    """

    pass


class CalendarError(IntegrationError):
    """Calendar free/busy lookup failed.

    Raised when:
        - Access token is missing
        - Provider API call fails or returns an unexpected payload
    """

    pass


class PlanGenerationError(NextMoveError):
    """Daily plan could not be generated.

    Raised when:
        - A plan already exists for the date
        - The date is a weekend and the user excludes weekends
        - No candidate actions are available
    """

    pass
