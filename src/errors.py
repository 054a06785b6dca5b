"""Error taxonomy shared by services and the API layer.

Services raise these; the API layer maps them to ``{"message": ...}``
responses with the carried status code.
"""


class AppError(Exception):
    """Base class for errors with a client-safe message and HTTP status."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Missing, blank, or malformed input."""

    status_code = 400
    default_message = "Invalid request"


class ConflictError(AppError):
    """Duplicate username or email."""

    status_code = 409
    default_message = "User already exists"


class UnauthenticatedError(AppError):
    """No credential was presented, or credentials did not match."""

    status_code = 401
    default_message = "Access denied. Please log in."


class InvalidTokenError(AppError):
    """Token has a bad signature, is expired or malformed, or names an unknown account."""

    status_code = 403
    default_message = "Invalid token. Please log in again."


class UnauthorizedError(InvalidTokenError):
    """Refresh token is not the account's active refresh token."""

    status_code = 401
    default_message = "Invalid refresh token"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class InternalError(AppError):
    status_code = 500
    default_message = "Internal server error"
