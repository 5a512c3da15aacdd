"""
auth/tokens.py -- JWT issuance/verification and the session cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry user_id (the subject, passed
       through exactly as given -- including None), iat, exp and a random jti.
       The subject lives in a private claim rather than "sub" because jose
       insists that "sub" is a string and homehost user ids are integers.

  Secret: injected into TokenService by the lifespan, never read from the
       environment here. An empty secret is legal at construction time; every
       issue()/verify() call checks it and raises ConfigurationError.

  Errors: verify() raises TokenError with a closed TokenErrorKind. jose
       checks the signature before the claims, so an expired token only
       reaches the ExpiredSignatureError branch once its signature is proven
       valid -- that is what makes EXPIRED distinguishable from INVALID.

  Cookie: httpOnly, samesite=lax, secure in production, 24h max-age.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ConfigurationError, SigningError, TokenError, TokenErrorKind
from auth.models import TokenClaims

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("homehost.auth")

_ALGORITHM = "HS256"
_SUBJECT_CLAIM = "user_id"
DEFAULT_TTL = "1d"

# ---------------------------------------------------------------------------
# TTL parsing
# ---------------------------------------------------------------------------

_TTL_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*([a-z]*)\s*$")

_TTL_UNITS: dict[str, int] = {
    "": 1,
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 7 * 86400,
    "week": 7 * 86400,
    "weeks": 7 * 86400,
}


def parse_ttl(ttl: str | int | float | timedelta) -> timedelta:
    """Convert "1 day", "24h", "60m", "-1s", 3600 or a timedelta into a timedelta.

    Raises ValueError for anything else. Negative values are allowed.
    """
    if isinstance(ttl, timedelta):
        return ttl
    if isinstance(ttl, bool):
        raise ValueError(f"Unsupported TTL: {ttl!r}")
    if isinstance(ttl, (int, float)):
        return timedelta(seconds=ttl)
    if isinstance(ttl, str):
        match = _TTL_RE.match(ttl.lower())
        if match and match.group(2) in _TTL_UNITS:
            return timedelta(seconds=float(match.group(1)) * _TTL_UNITS[match.group(2)])
    raise ValueError(f"Unsupported TTL: {ttl!r}")


# ---------------------------------------------------------------------------
# Issuer / verifier
# ---------------------------------------------------------------------------


class TokenService:
    """Signs and verifies expiring bearer tokens with one shared secret."""

    def __init__(self, secret_key: str, default_ttl: str | int | timedelta = DEFAULT_TTL) -> None:
        self._secret_key = secret_key
        self.default_ttl = default_ttl

    def _require_secret(self) -> str:
        if not self._secret_key:
            raise ConfigurationError("JWT secret is not configured")
        return self._secret_key

    def issue(self, subject: Any, ttl: str | int | float | timedelta | None = None) -> str:
        """Encode a signed token for subject that expires after ttl."""
        secret = self._require_secret()
        try:
            lifetime = parse_ttl(self.default_ttl if ttl is None else ttl)
            now = datetime.now(timezone.utc)
            payload = {
                _SUBJECT_CLAIM: subject,
                "iat": now,
                "exp": now + lifetime,
                "jti": secrets.token_hex(16),
            }
            return jwt.encode(payload, secret, algorithm=_ALGORITHM)
        except Exception as exc:
            raise SigningError(f"Failed to generate token: {exc}") from exc

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify token, returning its claims.

        Raises ConfigurationError when no secret is set and TokenError
        (EXPIRED / INVALID / FAILED) for every verification failure.
        """
        secret = self._require_secret()
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenError(TokenErrorKind.EXPIRED, "Token has expired") from exc
        except JWTError as exc:
            raise TokenError(TokenErrorKind.INVALID, "Invalid token") from exc
        except Exception as exc:
            raise TokenError(TokenErrorKind.FAILED, f"Token verification failed: {exc}") from exc

        if _SUBJECT_CLAIM not in payload or "exp" not in payload:
            raise TokenError(TokenErrorKind.INVALID, "Invalid token")

        issued_at = payload.get("iat")
        return TokenClaims(
            subject=payload[_SUBJECT_CLAIM],
            issued_at=datetime.fromtimestamp(issued_at, timezone.utc) if issued_at is not None else None,
            expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc),
            token_id=payload.get("jti"),
            claims=payload,
        )


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, settings: Settings) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: HTTPS-only when ENVIRONMENT=production.
    max_age: 24h by default, matching the default token TTL.
    """
    response.set_cookie(
        settings.cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        max_age=settings.cookie_max_age,
        domain=settings.cookie_domain,
    )


def clear_auth_cookie(response, settings: Settings) -> None:
    """Expire the session cookie client-side. Attributes must match set_auth_cookie."""
    response.delete_cookie(
        settings.cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        domain=settings.cookie_domain,
    )
