class PlanError(Exception):
    """Base class for errors raised by the plan data layer."""


class ValidationError(PlanError, ValueError):
    """Raised when a required field is empty or numeric input is malformed."""


class DuplicateNameError(ValidationError):
    """Raised when a template name is already taken."""

    def __init__(self, message: str = "Template name must be unique.") -> None:
        super().__init__(message)


class NotFoundError(PlanError, ValueError):
    """Raised when a referenced row does not exist."""


class StorageError(PlanError):
    """Raised when an underlying SQLite statement fails."""


class ConstraintError(StorageError):
    """Raised when a statement violates a table or index constraint."""


class ParseError(PlanError):
    """Raised when an import payload is not a valid export document."""
