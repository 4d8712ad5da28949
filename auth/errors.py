"""
auth/errors.py -- Error taxonomy for the auth core.

Every failure the controller or store can report to a caller is an AuthError
subclass carrying the HTTP status, a stable machine-readable code, and a
message that is safe to show to clients. api/main.py turns any AuthError into
the standard {"message", "code"} error body.

Anything that is NOT an AuthError is an internal failure: the outermost
exception handler logs it with a traceback and answers 500 with no detail.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 400
    code: str = "auth_error"
    message: str = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InputValidationError(AuthError):
    """Missing, empty, or malformed input."""

    status_code = 400
    code = "validation_error"
    message = "All fields are required."


class DuplicateIdentityError(AuthError):
    """Username or email already belongs to another user."""

    status_code = 409
    code = "duplicate_identity"
    message = "User already exists."


class InvalidCredentialsError(AuthError):
    """Unknown email OR wrong password.

    Deliberately one error for both cases so the response does not reveal
    whether an account exists for the submitted email.
    """

    status_code = 400
    code = "invalid_credentials"
    message = "Invalid credentials."


class UnauthenticatedError(AuthError):
    status_code = 401
    code = "unauthenticated"
    message = "Authentication required."


class ForbiddenError(AuthError):
    status_code = 403
    code = "forbidden"
    message = "Insufficient permissions."


class NotFoundError(AuthError):
    status_code = 404
    code = "not_found"
    message = "User not found."


class StoreUnavailableError(AuthError):
    """The credential store could not complete a write in bounded time.

    Retryable: the client may repeat the request. api/main.py adds a
    Retry-After header to the 503 response.
    """

    status_code = 503
    code = "store_unavailable"
    message = "Service temporarily unavailable. Please retry."
    retry_after: int = 1
