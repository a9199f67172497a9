"""
Domain-specific exception hierarchy for the scheduling core.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for all scheduling-level errors."""


class TimezoneError(SchedulingError, ValueError):
    """Raised when a timezone identifier is not a recognized IANA zone."""

    def __init__(self, timezone_id: object, message: Optional[str] = None):
        self.timezone_id = timezone_id
        super().__init__(message or f"Unknown timezone identifier: {timezone_id!r}")


class ParseError(SchedulingError, ValueError):
    """Raised when a natural-language time expression cannot be interpreted."""

    def __init__(self, text: str, field: str, message: str):
        self.text = text
        self.field = field
        super().__init__(f"Could not parse {field} in {text!r}: {message}")


class ValidationError(SchedulingError, ValueError):
    """Raised on structural violations such as a non-positive party size."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid {field}: {message}")


class StateError(SchedulingError):
    """Raised when an appointment status transition is not permitted."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Transition {current} -> {target} is not allowed")


class CollaboratorError(SchedulingError):
    """Raised when an external store or profile lookup fails."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")
