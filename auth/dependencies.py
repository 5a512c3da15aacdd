"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_current_user() is the authentication gate for protected routes. Per
request it:
  1. reads the session token from the auth cookie (cookie only -- the
     Authorization header is accepted by logout but not here),
  2. verifies signature and expiry,
  3. rejects tokens revoked by an earlier logout,
  4. loads the user the token points at,
  5. attaches the Principal to request.state and returns it.

Steps 2-4 all fail with the same 401 body so a client cannot tell which check
tripped. Anything that is not a token problem (missing secret, database
down) is a 500 and is logged.

Layer rule: may import from fastapi (Request) because this module is part of
the dependency injection system. No imports from api/.
"""

from __future__ import annotations

import logging

from fastapi import Request

from auth.errors import AuthenticationFailedError, ServerError, TokenError
from auth.models import FieldError, Principal

logger = logging.getLogger("homehost.auth")

TOKEN_MISSING = FieldError("auth", "Authentication token missing")
TOKEN_INVALID = FieldError("auth", "Invalid authentication token")


def get_current_user(request: Request) -> Principal:
    """Require a valid session cookie. Raises AuthenticationFailedError (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: Principal = Depends(get_current_user)): ...
    """
    state = request.app.state
    token = request.cookies.get(state.settings.cookie_name)
    if not token:
        raise AuthenticationFailedError([TOKEN_MISSING])

    try:
        claims = state.tokens.verify(token)
    except TokenError as exc:
        logger.info("Rejected session token (%s)", exc.kind.value)
        raise AuthenticationFailedError([TOKEN_INVALID]) from exc
    except Exception as exc:
        logger.exception("Token verification error in authentication gate")
        raise ServerError.general("Server error during authentication") from exc

    if state.revocations.is_revoked(token):
        logger.info("Rejected revoked session token")
        raise AuthenticationFailedError([TOKEN_INVALID])

    try:
        user = state.user_store.find_by_id(claims.subject)
    except Exception as exc:
        logger.exception("User lookup error in authentication gate")
        raise ServerError.general("Server error during authentication") from exc
    if user is None:
        raise AuthenticationFailedError([TOKEN_INVALID])

    principal = user.to_principal()
    request.state.principal = principal
    return principal
