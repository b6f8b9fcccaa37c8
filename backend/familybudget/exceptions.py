"""
Domain errors raised by the services layer.
Routes never catch these; the handlers registered in main.py map them to HTTP responses.
"""


class FamilyBudgetError(Exception):
    """Base class for all domain errors."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(FamilyBudgetError):
    """Missing or malformed input."""

    status_code = 400


class CategoryMismatchError(FamilyBudgetError):
    """Rule type does not match the type of its category."""

    status_code = 400


class AuthorizationError(FamilyBudgetError):
    """Caller is not a member of the family that owns the resource."""

    status_code = 403


class NotFoundError(FamilyBudgetError):
    status_code = 404


class ScheduleConflictError(FamilyBudgetError):
    """A rule's next occurrence changed while it was being processed."""

    status_code = 409
