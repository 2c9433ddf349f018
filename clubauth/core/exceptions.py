"""
Domain exceptions.

Services raise these; the application turns them into
``{"success": false, "error": <message>}`` responses using ``status_code``.
"""


class AuthError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AuthError):
    """Malformed or unusable input."""

    status_code = 400
    error = "validation_error"


class ConflictError(AuthError):
    """Uniqueness violation (email, google_id, etlab_username, credential_id)."""

    status_code = 400
    error = "conflict"


class UnauthorizedError(AuthError):
    """Missing, invalid or expired credentials or tokens."""

    status_code = 401
    error = "unauthorized"


class InvalidTokenError(UnauthorizedError):
    """Token failed signature, structure, type or expiry checks."""


class TokenExpiredError(InvalidTokenError):
    """Token is well formed and correctly signed but past its ``exp``."""


class ForbiddenError(AuthError):
    """Authenticated caller is not allowed to perform the action."""

    status_code = 403
    error = "forbidden"


class NotFoundError(AuthError):
    status_code = 404
    error = "not_found"


class UpstreamError(AuthError):
    """An external API answered with an error."""

    status_code = 502
    error = "bad_gateway"


class UpstreamUnavailableError(UpstreamError):
    status_code = 503
    error = "service_unavailable"


class UpstreamTimeoutError(UpstreamError):
    status_code = 504
    error = "gateway_timeout"


class DatabaseError(AuthError):
    """Persistence layer I/O failure."""

    status_code = 500
    error = "database_error"
