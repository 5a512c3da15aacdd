"""
auth/revocation.py -- Process-wide store of revoked session tokens.

Pattern: expiring-entry map (same idea as a TTL cache). Each revoked token is
kept only until its own "exp" -- after that the signature check rejects it
anyway, so the entry is purged. Memory is bounded by the number of
tokens revoked within one token lifetime, not by process uptime.

Keys are SHA-256 digests of the raw token, so the store never holds a usable
credential.

Thread safety: route handlers run in Starlette's threadpool, so every read and
write goes through a single lock.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections.abc import Callable

from auth.errors import InvalidTokenFormatError, TokenError
from auth.tokens import TokenService

logger = logging.getLogger("homehost.auth")


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationStore:
    """Revoked-token registry. The only component that mutates the revoked set.

    Usage:
        store = RevocationStore(token_service)
        store.revoke(token)      # True -- token was valid and is now revoked
        store.is_revoked(token)  # True
        store.clear()            # test / ops reset
    """

    def __init__(self, tokens: TokenService, clock: Callable[[], float] = time.time) -> None:
        self._tokens = tokens
        self._clock = clock
        self._entries: dict[str, float] = {}  # digest -> token expiry (epoch seconds)
        self._lock = threading.Lock()

    def revoke(self, token: str) -> bool:
        """Revoke a still-valid token. Returns False if it no longer verifies.

        Raises InvalidTokenFormatError when token is not a non-empty string.
        """
        if not token or not isinstance(token, str):
            raise InvalidTokenFormatError("Invalid token format")
        try:
            claims = self._tokens.verify(token)
        except TokenError as exc:
            logger.info("Skipping revocation of unusable token: %s", exc)
            return False

        now = self._clock()
        with self._lock:
            self._purge_locked(now)
            self._entries[_digest(token)] = claims.expires_at.timestamp()
        return True

    def is_revoked(self, token: str) -> bool:
        """Membership test. Fails closed: non-string or empty input counts as revoked."""
        if not token or not isinstance(token, str):
            return True
        key = _digest(token)
        with self._lock:
            expires_at = self._entries.get(key)
            if expires_at is None:
                return False
            if expires_at <= self._clock():
                del self._entries[key]
                return False
            return True

    def purge_expired(self) -> int:
        """Drop entries whose token has expired. Returns the number removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, expires_at in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)
