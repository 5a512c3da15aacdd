"""
api/routes/auth.py -- Session endpoints.

Routes (mounted under /api):
  POST /register  -- create account; sets session cookie; 201
  POST /login     -- password login; sets session cookie; 200
  POST /logout    -- clears cookie, revokes token best-effort; always 200
  GET  /me        -- current user profile (requires session cookie)

The handlers only unpack the body, call AuthService and
turn the result into a response with the cookie attached. Validation, error
classification and logging live in auth/service.py; errors raised there
propagate as RequestError and are rendered by the handler in api/main.py.

Security:
  POST /login and /register are rate-limited per IP (LOGIN_RATE_LIMIT).
  Cache-Control: no-store on responses that carry a token.
  Handlers are sync def so bcrypt runs in the threadpool, off the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    LoginRequest,
    LogoutResponse,
    ProfileResponse,
    ProfileUser,
    RegisterRequest,
    SessionResponse,
    UserSummary,
)
from auth.dependencies import get_current_user
from auth.models import AuthSession, Principal
from auth.service import AuthService
from auth.tokens import clear_auth_cookie, set_auth_cookie

# Auth policy:
# - POST /api/register: public
# - POST /api/login:    public
# - POST /api/logout:   public -- clearing a cookie needs no prior auth
# - GET  /api/me:       requires session cookie (get_current_user)
router = APIRouter()


def _session_response(request: Request, session: AuthSession, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=SessionResponse(
            user=UserSummary.from_principal(session.principal),
            token=session.token,
        ).model_dump(),
    )
    set_auth_cookie(resp, session.token, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/register", response_model=SessionResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and start a session. All field errors are reported together."""
    service: AuthService = request.app.state.auth_service
    session = service.register(body.email, body.username, body.password, body.confirm_password)
    return _session_response(request, session, 201)


@limiter.limit(login_rate_limit)
@router.post("/login", response_model=SessionResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Wrong email and wrong password produce the identical 401 body.
    """
    service: AuthService = request.app.state.auth_service
    session = service.login(body.email, body.password)
    return _session_response(request, session, 200)


@router.post("/logout", response_model=LogoutResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the session cookie and revoke the token if one was sent.

    Accepts the token from "Authorization: Bearer" (scheme matched
    case-insensitively) or the cookie. The response is the same whether or not revocation succeeded.
    """
    settings = request.app.state.settings
    service: AuthService = request.app.state.auth_service

    token: str | None = None
    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer":
        token = credentials.strip() or None
    if not token:
        token = request.cookies.get(settings.cookie_name)

    service.logout(token)

    resp = JSONResponse(content=LogoutResponse().model_dump())
    clear_auth_cookie(resp, settings)
    return resp


@router.get("/me", response_model=ProfileResponse)
def me(current_user: Principal = Depends(get_current_user)) -> ProfileResponse:
    """Return the profile of the authenticated user. Never includes the password hash."""
    return ProfileResponse(user=ProfileUser(**AuthService.profile(current_user)))
