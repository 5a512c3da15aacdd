"""
auth/service.py -- Register / login / logout use-cases.

Each use-case validates its input, orchestrates the hasher, the token service
and the user store, and converts every failure into a RequestError:

  - field problems           -> ValidationFailedError (400, full itemized list)
  - credential mismatch      -> AuthenticationFailedError (401, one generic message)
  - anything unexpected      -> ServerError (500), real cause logged here

Validation collects every field error before returning so the client can
show them all at once. Login uses the same message for "no such email" and
"wrong password", and burns a bcrypt round on the unknown-email path so
timing does not tell them apart either.

Layer rule: no imports from api/. HTTP concerns (cookies, status codes on the
wire) stay in the route layer.
"""

from __future__ import annotations

import logging
import re

from auth.errors import (
    AuthenticationFailedError,
    DuplicateEmailError,
    DuplicateUsernameError,
    RequestError,
    ServerError,
    ValidationFailedError,
)
from auth.models import AuthSession, FieldError, Principal
from auth.passwords import PasswordHasher, validate_password_strength
from auth.revocation import RevocationStore
from auth.store import UserStore
from auth.tokens import TokenService

logger = logging.getLogger("homehost.auth")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

INVALID_CREDENTIALS = FieldError("general", "Invalid email or password")
EMAIL_IN_USE = FieldError("email", "Email already in use")
USERNAME_IN_USE = FieldError("username", "Username already in use")


def is_valid_email(email: str | None) -> bool:
    """Loose local@domain.tld shape check -- deliverability is not our problem."""
    return bool(email) and _EMAIL_RE.match(email) is not None


def _email_errors(email: str | None) -> list[FieldError]:
    if not email:
        return [FieldError("email", "Email is required")]
    if not is_valid_email(email):
        return [FieldError("email", "Invalid email format")]
    return []


class AuthService:
    """The three session state transitions plus the profile projection."""

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        revocations: RevocationStore,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.revocations = revocations

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(
        self,
        email: str | None,
        username: str | None,
        password: str | None,
        confirm_password: str | None,
    ) -> AuthSession:
        errors = _email_errors(email)
        if not username:
            errors.append(FieldError("username", "Username is required"))
        if not password:
            errors.append(FieldError("password", "Password is required"))
        else:
            strength = validate_password_strength(password)
            if not strength.valid:
                errors.append(FieldError("password", strength.message))
        if password != confirm_password:
            errors.append(FieldError("confirmPassword", "Passwords do not match"))
        if errors:
            raise ValidationFailedError(errors)

        normalized = email.lower()
        try:
            if self.store.find_by_email(normalized) is not None:
                raise ValidationFailedError([EMAIL_IN_USE])
            hashed = self.hasher.hash(password)
            user = self.store.create(normalized, username, hashed)
            # A failure past this point leaves the record in place; a retry
            # then gets "Email already in use".
            token = self.tokens.issue(user.id)
        except RequestError:
            raise
        except DuplicateEmailError as exc:
            raise ValidationFailedError([EMAIL_IN_USE]) from exc
        except DuplicateUsernameError as exc:
            raise ValidationFailedError([USERNAME_IN_USE]) from exc
        except Exception as exc:
            logger.exception("Registration failed")
            raise ServerError.general("Server error during registration") from exc

        logger.info("Registered user id=%s", user.id)
        return AuthSession(principal=user.to_principal(), token=token)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str | None, password: str | None) -> AuthSession:
        errors = _email_errors(email)
        if not password:
            errors.append(FieldError("password", "Password is required"))
        if errors:
            raise ValidationFailedError(errors)

        try:
            user = self.store.find_by_email(email.lower())
            if user is None:
                self.hasher.verify_dummy(password)
                raise AuthenticationFailedError([INVALID_CREDENTIALS])
            if not self.hasher.verify(password, user.hashed_password):
                raise AuthenticationFailedError([INVALID_CREDENTIALS])
            token = self.tokens.issue(user.id)
        except RequestError:
            raise
        except Exception as exc:
            logger.exception("Login failed")
            raise ServerError.general("Server error during login") from exc

        logger.info("Login succeeded for user id=%s", user.id)
        return AuthSession(principal=user.to_principal(), token=token)

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout(self, token: str | None) -> bool:
        """Best-effort revocation. Never raises; returns True if the token was revoked."""
        if not token:
            return False
        try:
            return self.revocations.revoke(token)
        except Exception as exc:
            logger.warning("Token revocation failed during logout: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    @staticmethod
    def profile(principal: Principal) -> dict:
        """Public profile fields, keyed the way the web client reads them."""
        return {
            "id": principal.id,
            "username": principal.username,
            "email": principal.email,
            "createdAt": principal.created_at,
            "updatedAt": principal.updated_at,
        }
