"""
Common Exception Classes

This module defines the exceptions raised by the question engine. Structural
and integrity violations are raised as exceptions; grading problems caused by
odd learner input are recorded in step state instead and never raised.
"""

from typing import Optional, Any


class BaseError(Exception):
    """Base class for all custom exceptions."""

    # Whether the caller can recover by re-rendering and resubmitting.
    is_recoverable = False

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            original_exception: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception


class QuestionEngineError(BaseError):
    """Base class for errors raised by the attempt/usage core."""


class OutOfSequenceError(QuestionEngineError):
    """
    Raised when submitted data was rendered against an older state of an attempt.

    Either a stale page was resubmitted or another request advanced the attempt
    first. Callers should ask the user to reload and resubmit.
    """

    is_recoverable = True

    def __init__(self, usage_id: Any, slot: int, expected: int, actual: int):
        super().__init__(
            f"Submitted data for question {slot} in usage {usage_id} is out of "
            f"sequence: expected {expected} steps, attempt has {actual}"
        )
        self.usage_id = usage_id
        self.slot = slot
        self.expected = expected
        self.actual = actual


class UnknownSlotError(QuestionEngineError):
    """Raised when a slot number does not exist in a usage."""

    def __init__(self, slot: Any, usage_id: Any = None):
        super().__init__(f"There is no question in slot {slot} of usage {usage_id}")
        self.slot = slot
        self.usage_id = usage_id


class StepIndexOutOfBoundsError(QuestionEngineError):
    """Raised when asking an attempt for a step it does not have."""

    def __init__(self, index: int, num_steps: int):
        super().__init__(f"Step index {index} out of range (attempt has {num_steps} steps)")
        self.index = index
        self.num_steps = num_steps


class NotStartedError(QuestionEngineError):
    """Raised when an operation needs an attempt that has been started."""


class AlreadyStartedError(QuestionEngineError):
    """Raised when starting an attempt that already has steps."""


class ImmutableStepError(QuestionEngineError):
    """Raised when something tries to change a step that was loaded from storage."""

    def __init__(self, operation: str):
        super().__init__(f"Cannot {operation} on a read-only step")
        self.operation = operation


class InvalidVariableName(QuestionEngineError):
    """Raised when a cached variable is set without the internal-marker prefix."""

    def __init__(self, name: str):
        super().__init__(f"Cannot set variable '{name}': cached variable names must start with '_'")
        self.name = name


class BehaviourError(QuestionEngineError):
    """Raised when a behaviour is asked to do something it does not support."""


class UnknownBehaviourError(BehaviourError):
    """Raised when a behaviour name is not in the registry."""

    def __init__(self, name: str):
        super().__init__(f"Unknown behaviour: {name}")
        self.name = name


class GradingValueError(QuestionEngineError):
    """Raised when a manual mark falls outside the attempt's mark range."""

    def __init__(self, mark: Any, min_mark: float, max_mark: float):
        super().__init__(f"Mark {mark} is not between {min_mark} and {max_mark}")
        self.mark = mark
        self.min_mark = min_mark
        self.max_mark = max_mark


class DatabaseError(BaseError):
    """Exception raised for database-related errors."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the database error.

        Args:
            message: Error message
            original_exception: Original database exception
        """
        super().__init__(f"Database error: {message}", original_exception)


class ValidationError(BaseError):
    """Exception raised for validation errors."""

    def __init__(self, message: str, errors: Optional[dict] = None):
        """
        Initialize the validation error.

        Args:
            message: Error message
            errors: Dictionary of validation errors
        """
        super().__init__(f"Validation error: {message}")
        self.errors = errors or {}


class ConfigurationError(BaseError):
    """Exception raised for configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        """
        Initialize the configuration error.

        Args:
            message: Error message
            config_key: The configuration key that caused the error
        """
        super().__init__(f"Configuration error: {message}")
        self.config_key = config_key


class NotFoundError(BaseError):
    """Exception raised when a resource is not found."""

    def __init__(self, resource_type: str, resource_id: Any):
        """
        Initialize the not found error.

        Args:
            resource_type: Type of resource that wasn't found
            resource_id: ID of the resource that wasn't found
        """
        super().__init__(f"{resource_type} with ID {resource_id} not found")
        self.resource_type = resource_type
        self.resource_id = resource_id
