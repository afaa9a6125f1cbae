# backend/app/errors.py
from __future__ import annotations


class DomainError(Exception):
    """
    Base for every business error the core raises.

    `status_code` and `kind` are what the HTTP boundary renders; services never
    build HTTP responses themselves.
    """

    status_code: int = 500
    kind: str = "Internal Server Error"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(DomainError):
    status_code = 404
    kind = "Not Found"
    default_message = "Requested resource not found"


class ConflictError(DomainError):
    status_code = 409
    kind = "Conflict"
    default_message = "The request conflicts with the current state of the resource"


class AuthorizationError(DomainError):
    status_code = 403
    kind = "Authorization Error"
    default_message = "You don't have permission to access this resource"


class ValidationError(DomainError):
    status_code = 400
    kind = "Validation Error"
    default_message = "Invalid input data"
