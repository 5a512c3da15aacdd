"""
auth/passwords.py -- Credential hashing and password strength policy.

Security design decisions:
  Hashing: bcrypt used directly (no passlib wrapper). The cost factor is
       injected through the PasswordHasher constructor -- 12 in production,
       as low as 4 in tests. Hashing errors are wrapped in HashingError;
       verification errors are never fatal and read as "no match". Both hash()
       and verify() use only the first 72 UTF-8 bytes, the most bcrypt reads.

  Timing equalization: verify_dummy() runs a full bcrypt comparison against
       a throwaway digest built in the constructor. Login calls it when the email is unknown, so the
       response time does not reveal whether an account exists.

  Policy: validate_password_strength() is a pure function. Rules run in a
       fixed order and stop at the first failure.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import re

import bcrypt

from auth.errors import EmptyInputError, HashingError
from auth.models import ValidationResult

logger = logging.getLogger("homehost.auth")

DEFAULT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8

# bcrypt only reads the first 72 bytes of its input; newer releases raise instead.
BCRYPT_MAX_BYTES = 72

_NUMBER_OR_SPECIAL = re.compile(r"""[0-9!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]""")


class PasswordHasher:
    """bcrypt wrapper with an explicit, fixed cost factor.

    Usage:
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
        digest = hasher.hash("correct horse 1")
        hasher.verify("correct horse 1", digest)  # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds
        # Built up front so the first unknown-email login is not measurably slower.
        self._dummy_hash = self.hash("homehost_timing_dummy")

    def hash(self, plaintext: str | None) -> str:
        """Return a bcrypt digest (salt and cost embedded) of plaintext.

        Raises EmptyInputError for empty/None input and HashingError if
        bcrypt itself fails. Input past 72 UTF-8 bytes is cut, as in
        verify().
        """
        if not plaintext:
            raise EmptyInputError("Password cannot be empty")
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            return bcrypt.hashpw(_encode(plaintext), salt).decode("utf-8")
        except Exception as exc:
            raise HashingError(f"Failed to hash password: {exc}") from exc

    def verify(self, plaintext: str | None, digest: str | None) -> bool:
        """Return True iff digest matches plaintext. Never raises."""
        if not plaintext or not digest:
            return False
        try:
            return bcrypt.checkpw(_encode(plaintext), digest.encode("utf-8"))
        except Exception as exc:
            logger.warning("Password verification error treated as mismatch: %s", exc)
            return False

    def verify_dummy(self, plaintext: str | None) -> bool:
        """Burn one bcrypt comparison and return False."""
        self.verify(plaintext or "x", self._dummy_hash)
        return False


def _encode(plaintext: str) -> bytes:
    return plaintext.encode("utf-8")[:BCRYPT_MAX_BYTES]


def validate_password_strength(password: str | None) -> ValidationResult:
    """Check a password against the static strength rules."""
    if not password:
        return ValidationResult(valid=False, message="Password cannot be empty")
    if len(password) < MIN_PASSWORD_LENGTH:
        return ValidationResult(valid=False, message="Password must be at least 8 characters long")
    if not _NUMBER_OR_SPECIAL.search(password):
        return ValidationResult(
            valid=False,
            message="Password must contain at least one number or special character",
        )
    return ValidationResult(valid=True, message="Password meets strength requirements")
