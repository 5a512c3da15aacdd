"""
auth/errors.py -- Error taxonomy for the auth layer.

Two tiers:

  Primitive errors are raised by the building blocks (hasher, token service,
  revocation store, user store). They carry internal detail and are never
  shown to clients.

  Request errors (RequestError subclasses) carry the client-facing envelope:
  an HTTP status, a short message and an itemized list of FieldError values.
  Use-cases and the authentication gate convert primitive or unexpected
  errors into request errors at their boundary; api/main.py renders them.

Token verification failures are classified with the closed TokenErrorKind
enum so callers switch on an explicit kind rather than on exception names.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from enum import Enum

from auth.models import FieldError

# ---------------------------------------------------------------------------
# Primitive errors
# ---------------------------------------------------------------------------


class AuthError(Exception):
    """Base class for every error raised by the auth package."""


class EmptyInputError(AuthError, ValueError):
    """A required secret (password) was empty or None."""


class HashingError(AuthError):
    """The bcrypt primitive failed while hashing."""


class ConfigurationError(AuthError):
    """Operator-fixable misconfiguration, e.g. no signing secret."""


class SigningError(AuthError):
    """Token could not be signed (bad TTL or encoder failure)."""


class TokenErrorKind(str, Enum):
    EXPIRED = "expired"
    INVALID = "invalid"
    FAILED = "failed"


class TokenError(AuthError):
    """Token verification failed. Inspect .kind, not the message."""

    def __init__(self, kind: TokenErrorKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class InvalidTokenFormatError(AuthError, ValueError):
    """A token argument was not a non-empty string."""


class DuplicateEmailError(AuthError):
    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Email already in use: {email}")


class DuplicateUsernameError(AuthError):
    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"Username already in use: {username}")


# ---------------------------------------------------------------------------
# Request errors -- rendered as {status, message, errors}
# ---------------------------------------------------------------------------


class RequestError(AuthError):
    """An outcome that maps directly onto an HTTP error response."""

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, errors: list[FieldError] | None = None, message: str | None = None) -> None:
        self.message = message or self.default_message
        self.errors: list[FieldError] = list(errors or [])
        super().__init__(self.message)


class ValidationFailedError(RequestError):
    status_code = 400
    default_message = "Validation failed"


class AuthenticationFailedError(RequestError):
    """401. One generic message for every credential or token failure."""

    status_code = 401
    default_message = "Authentication failed"


class ServerError(RequestError):
    status_code = 500
    default_message = "Server error"

    @classmethod
    def general(cls, message: str) -> "ServerError":
        return cls([FieldError("general", message)])
