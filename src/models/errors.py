"""Error types raised by the feedback pipeline."""


class FeedbackPulseError(Exception):
    """Base class for pipeline errors."""


class InvalidInputError(FeedbackPulseError):
    """Raised when a required input field is missing or unknown."""


class QueryExecutionError(FeedbackPulseError):
    """Raised when the feedback store fails to execute a query.

    The message is always generic so store internals never reach callers.
    """

    def __init__(self, message: str = "Database query failed"):
        super().__init__(message)
