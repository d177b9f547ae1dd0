"""
api/routes/v1/comments.py -- Edit and delete a single comment.

Routes:
  PATCH  /api/v1/comments/{id}            -- replace the body (author only)
  DELETE /api/v1/comments/{id}?user_id=   -- delete with replies per policy (author only)

Creating comments lives under /blogs/{id}/comments because a comment cannot
exist without its blog.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import CommentUpdate, envelope_response
from auth.dependencies import resolve_actor
from core.service import SocialService

router = APIRouter()


@router.patch("/comments/{comment_id}")
def update_comment(request: Request, comment_id: int, body: CommentUpdate) -> JSONResponse:
    service: SocialService = request.app.state.service
    actor_id = resolve_actor(request, body.user_id)
    return envelope_response(service.update_comment(comment_id, body.comment, actor_id))


@router.delete("/comments/{comment_id}")
def delete_comment(request: Request, comment_id: int, user_id: Optional[int] = None) -> JSONResponse:
    service: SocialService = request.app.state.service
    actor_id = resolve_actor(request, user_id)
    return envelope_response(service.delete_comment(comment_id, actor_id))
