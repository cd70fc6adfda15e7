"""Service layer exception classes for Prep Cost.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── ItemNotFound
    ├── ValidationError
    │   └── YieldValidationError
    ├── SaveCancelled
    ├── SaveInProgress
    ├── PermissionDenied
    ├── DatabaseError
    └── SaveError
"""


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class ItemNotFound(ServiceError):
    """Raised when an item cannot be found by ID.

    Example:
        >>> raise ItemNotFound(123)
        ItemNotFound: Item with ID 123 not found
    """

    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"Item with ID {item_id} not found")


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class YieldValidationError(ValidationError):
    """Raised in block mode when an item's yield exceeds its ingredient mass.

    Args:
        outcomes: YieldOutcome objects describing each violation

    Example:
        >>> raise YieldValidationError([outcome])
        YieldValidationError: Validation failed: Sauce: yield 1001 g exceeds ingredients 1000 g
    """

    def __init__(self, outcomes: list):
        self.outcomes = outcomes
        super().__init__([outcome.message for outcome in outcomes])


class SaveCancelled(ServiceError):
    """Raised when the user declines to continue past a yield violation."""

    def __init__(self, outcome):
        self.outcome = outcome
        super().__init__(f"Save cancelled: {outcome.message}")


class SaveInProgress(ServiceError):
    """Raised when a save is requested while another save run is active."""

    def __init__(self):
        super().__init__("A save is already in progress for this edit session")


class PermissionDenied(ServiceError):
    """Raised when a save would modify an item the caller may not edit.

    Example:
        >>> raise PermissionDenied(42, "view")
        PermissionDenied: Item 42 is shared with 'view' access and cannot be changed
    """

    def __init__(self, item_id, share_level: str):
        self.item_id = item_id
        self.share_level = share_level
        super().__init__(
            f"Item {item_id} is shared with '{share_level}' access and cannot be changed"
        )


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


class SaveError(ServiceError):
    """Raised when a save run failed and was rolled back.

    The remote failure that triggered the rollback is kept as
    ``original_error`` and chained as ``__cause__``.
    """

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        self.user_message = message
        super().__init__(message)
