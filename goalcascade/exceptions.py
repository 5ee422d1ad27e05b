"""
Custom exceptions for the goal cascade engine.
"""


class CascadeError(Exception):
    """Base exception for all cascade-related errors."""
    pass


class StoreReadFailure(CascadeError):
    """Raised when the goal store cannot be read."""
    pass


class StoreWriteFailure(CascadeError):
    """Raised when a write to the goal store fails."""
    pass


class InvalidStateTransition(CascadeError):
    """Raised when an operation is not allowed in the current state."""
    pass


class NotFoundError(CascadeError):
    """Raised when a requested milestone or patient is not found."""
    pass


class ValidationError(CascadeError):
    """Raised when validation fails for a record or operation."""
    pass


class ConfigurationError(CascadeError):
    """Raised when there's a configuration or setup issue."""
    pass
