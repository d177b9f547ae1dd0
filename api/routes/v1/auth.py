"""
api/routes/v1/auth.py -- Account endpoints: register, login, logout, password.

Routes:
  POST /api/v1/auth/register         -- create account; sets JWT cookie
  POST /api/v1/auth/login            -- username-or-email login; sets JWT cookie
  POST /api/v1/auth/logout           -- clears cookie; 200
  GET  /api/v1/auth/me               -- current user (requires auth)
  POST /api/v1/auth/change-password  -- store a new password hash

Security:
  POST /login is rate-limited per IP (Settings.login_rate_limit).
  Cache-Control: no-store on responses that carry a token.
  change-password requires a session unless trust_client_actor is set, and the
  session user must be the account being changed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    UserOut,
    envelope_response,
)
from auth.dependencies import get_current_user
from auth.tokens import clear_auth_cookie, create_access_token, set_auth_cookie
from core.config import get_settings
from core.models import User
from core.service import SocialService

# Auth policy:
# - POST /api/v1/auth/register:        public
# - POST /api/v1/auth/login:           public, rate limited
# - POST /api/v1/auth/logout:          public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:              requires auth (get_current_user)
# - POST /api/v1/auth/change-password: requires auth unless trust_client_actor
router = APIRouter()

_settings = get_settings()


def _with_session(resp: JSONResponse, user: User) -> JSONResponse:
    token = create_access_token(user.id, user.username)
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/register", status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account. Validation order: password, username, email."""
    service: SocialService = request.app.state.service
    result = service.register(body.username, body.email, body.password)
    resp = envelope_response(result, success_status=201)
    if result.ok:
        _with_session(resp, result.value)
    return resp


@limiter.limit(_settings.login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with a username or email plus password; set JWT cookie.

    An unknown account is reported on the field that was looked up (email or
    username) with 404. A wrong password is 401 on "password".
    """
    service: SocialService = request.app.state.service
    result = service.login(body.text, body.password)
    resp = envelope_response(result, unauthorized_status=401)
    if result.ok:
        _with_session(resp, result.value)
    else:
        resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout")
def logout() -> JSONResponse:
    """Clear the JWT cookie and end the session."""
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.from_domain(user)


@router.post("/auth/change-password")
def change_password(request: Request, body: ChangePasswordRequest) -> JSONResponse:
    service: SocialService = request.app.state.service
    if not service.settings.trust_client_actor:
        user = get_current_user(request)
        if body.text not in (user.username, user.email):
            raise HTTPException(
                status_code=403,
                detail={"code": "unauthorized", "field": "text", "message": "User not authorized"},
            )
    return envelope_response(service.change_password(body.text, body.new_password))
