"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by register and login.
  2. Authorization: Bearer <token> header -- API clients.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
resolve_actor() decides which user id a mutating request acts as, honouring
Settings.trust_client_actor.

Layer rule: no imports from api/. auth/dependencies.py may import from fastapi
(for HTTPException/Request) because this module is part of the FastAPI
dependency injection system.
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request

from auth.tokens import decode_access_token
from core.models import User


def try_get_current_user(request: Request) -> User | None:
    """Attempt to authenticate the request via cookie or Bearer header.

    Returns the authenticated User on success, None on any failure.
    Never raises -- callers that need a hard 401 should use get_current_user().
    """
    store = request.app.state.store

    token: str | None = request.cookies.get("access_token")
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if token:
        payload = decode_access_token(token)
        if payload:
            user = store.get_user(payload["user_id"])
            # The subject must still name the same account the id resolves to.
            if user is not None and user.username == payload.get("sub"):
                return user
    return None


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthenticated", "field": "token", "message": "Authentication required."},
        )
    return user


def resolve_actor(request: Request, claimed_user_id: Optional[int]) -> int:
    """Return the id of the user a mutating request acts as.

    trust_client_actor=True: the client-supplied id is used as-is (it must
    be present). Otherwise the session decides, and a client-supplied id
    that names somebody else is refused with 403.
    """
    settings = request.app.state.service.settings
    if settings.trust_client_actor:
        if claimed_user_id is None:
            raise HTTPException(
                status_code=422,
                detail={"code": "validation_failed", "field": "userId", "message": "user_id is required."},
            )
        return claimed_user_id

    user = get_current_user(request)
    if claimed_user_id is not None and claimed_user_id != user.id:
        raise HTTPException(
            status_code=403,
            detail={"code": "unauthorized", "field": "userId", "message": "User not authorized"},
        )
    return user.id
