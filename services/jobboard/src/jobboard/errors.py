from __future__ import annotations


class JobBoardError(Exception):
    """Base class for errors that are translated into API responses."""

    status_code = 500
    error = "internal_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidTokenError(JobBoardError):
    """Malformed, expired or badly signed token. The cause is not reported."""

    status_code = 401
    error = "invalid_token"

    def __init__(self, detail: str = "Invalid or expired token") -> None:
        super().__init__(detail)


class UnauthenticatedError(JobBoardError):
    status_code = 401
    error = "unauthenticated"

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(detail)


class ForbiddenError(JobBoardError):
    status_code = 403
    error = "forbidden"

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(detail)


class NotFoundError(JobBoardError):
    status_code = 404
    error = "not_found"


class ConflictError(JobBoardError):
    status_code = 409
    error = "conflict"


class ValidationFailedError(JobBoardError):
    status_code = 422
    error = "validation_failed"
