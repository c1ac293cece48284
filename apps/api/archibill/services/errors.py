"""Workflow error kinds.

Each carries the user-facing message; the action boundary turns them into
error results. They subclass ValueError like the other service-level errors.
"""

from uuid import UUID


class ActionError(ValueError):
    """Base class for expected workflow failures."""

    default_message = "Unable to complete action"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(ActionError):
    default_message = "Invalid request"


class AuthenticationRequired(ActionError):
    default_message = "Not authenticated"


class AuthorizationDenied(ActionError):
    default_message = "You do not have permission to perform this action"


class OwnerInvariantViolation(ActionError):
    default_message = "A practice must have at least one owner"

    def __init__(self, message: str | None = None, practice_ids: list[UUID] | None = None):
        super().__init__(message)
        self.practice_ids = practice_ids or []


class NotFoundError(ActionError):
    default_message = "Not found"


class ConflictError(ActionError):
    default_message = "Conflict"
