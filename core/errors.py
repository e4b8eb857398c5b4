"""
core/errors.py -- Application error taxonomy.

Services raise these; api/main.py maps them to HTTP responses through a
single exception handler. Each class carries its HTTP status so the mapping
lives next to the error rather than in a lookup table at the boundary.

Layer rule: core/ is the kernel. No imports from api/, auth/, or cache/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for every error the API reports as a structured response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(AppError):
    status_code = 400
    code = "bad_request"


class ValidationFailedError(BadRequestError):
    """Malformed or missing input.

    details is a list of {"field": ..., "message": ...} dicts, one per
    offending field.
    """

    code = "validation_error"

    def __init__(self, message: str = "Validation error", details: list[dict] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class UnauthorizedError(AppError):
    status_code = 401
    code = "unauthorized"


class InvalidTokenError(UnauthorizedError):
    """Bad signature, malformed structure, or expired token."""

    code = "invalid_token"

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class FeatureNotImplementedError(AppError):
    status_code = 501
    code = "not_implemented"
