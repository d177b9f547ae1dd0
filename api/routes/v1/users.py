"""
api/routes/v1/users.py -- User profiles, follows, profile image, account deletion.

Routes:
  GET    /api/v1/users                              -- every user with blogs and follow lists
  GET    /api/v1/users/{id}                         -- one user profile
  GET    /api/v1/users/{id}/comments?roots_only=    -- comment threads authored by the user
  DELETE /api/v1/users/{id}                         -- delete account (policy from settings)
  PUT    /api/v1/users/{id}/image                   -- set the profile image reference
  POST   /api/v1/users/{id}/followers               -- follower starts following {id}
  DELETE /api/v1/users/{id}/followers/{follower_id} -- follower stops following {id}

Reads are public. Writes act as resolve_actor() decides: the session user,
or the client-supplied id when trust_client_actor is set.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import FollowRequest, ImageUploadRequest, envelope_response
from auth.dependencies import resolve_actor
from core.service import SocialService

router = APIRouter()


def _require_self(request: Request, user_id: int) -> None:
    """Account-level writes are only allowed on the actor's own account."""
    actor_id = resolve_actor(request, user_id)
    if actor_id != user_id:
        raise HTTPException(
            status_code=403,
            detail={"code": "unauthorized", "field": "userId", "message": "User not authorized"},
        )


@router.get("/users")
def list_users(request: Request) -> JSONResponse:
    service: SocialService = request.app.state.service
    return envelope_response(service.get_all_users())


@router.get("/users/{user_id}")
def get_user(request: Request, user_id: int) -> JSONResponse:
    service: SocialService = request.app.state.service
    return envelope_response(service.get_user(user_id))


@router.get("/users/{user_id}/comments")
def get_user_comments(request: Request, user_id: int, roots_only: bool = False) -> JSONResponse:
    """Every comment the user wrote, each with two levels of replies and its blog."""
    service: SocialService = request.app.state.service
    return envelope_response(service.get_comments_of_user(user_id, roots_only=roots_only))


@router.delete("/users/{user_id}")
def delete_user(request: Request, user_id: int) -> JSONResponse:
    service: SocialService = request.app.state.service
    _require_self(request, user_id)
    return envelope_response(service.delete_user(user_id))


@router.put("/users/{user_id}/image")
def upload_image(request: Request, user_id: int, body: ImageUploadRequest) -> JSONResponse:
    service: SocialService = request.app.state.service
    _require_self(request, user_id)
    return envelope_response(service.upload_image(body.image, user_id))


@router.post("/users/{user_id}/followers")
def follow_user(request: Request, user_id: int, body: FollowRequest) -> JSONResponse:
    """The follower (session user, or body.follower_id when trusted) follows user_id."""
    service: SocialService = request.app.state.service
    follower_id = resolve_actor(request, body.follower_id)
    return envelope_response(service.follow_user(user_id, follower_id))


@router.delete("/users/{user_id}/followers/{follower_id}")
def unfollow_user(request: Request, user_id: int, follower_id: int) -> JSONResponse:
    service: SocialService = request.app.state.service
    follower_id = resolve_actor(request, follower_id)
    return envelope_response(service.unfollow_user(user_id, follower_id))
