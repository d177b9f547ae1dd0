"""
api/routes/v1/blogs.py -- Blog CRUD, likes, and the comments hanging off a blog.

Routes:
  GET    /api/v1/blogs                          -- all blogs with author and comments
  POST   /api/v1/blogs                          -- create (201)
  GET    /api/v1/blogs/{id}                     -- one blog with author, comments, likes
  PUT    /api/v1/blogs/{id}                     -- replace title/description/body/tags (owner only)
  DELETE /api/v1/blogs/{id}?user_id=            -- delete (owner only, policy from settings)
  POST   /api/v1/blogs/{id}/like                -- toggle the actor's like; {"liked": bool}
  GET    /api/v1/blogs/{id}/comments?roots_only= -- comment threads, three levels deep
  POST   /api/v1/blogs/{id}/comments            -- add a comment or a reply (201)

Not-found is checked before ownership: a missing blog is 404 even for a
caller who would not own it.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import BlogWrite, CommentCreate, LikeRequest, envelope_response
from auth.dependencies import resolve_actor
from core.service import SocialService

router = APIRouter()


@router.get("/blogs")
def list_blogs(request: Request) -> JSONResponse:
    service: SocialService = request.app.state.service
    return envelope_response(service.get_all_blogs())


@router.post("/blogs", status_code=201)
def create_blog(request: Request, body: BlogWrite) -> JSONResponse:
    service: SocialService = request.app.state.service
    actor_id = resolve_actor(request, body.user_id)
    result = service.create_blog(body.title, body.description, body.body, body.tags, actor_id)
    return envelope_response(result, success_status=201)


@router.get("/blogs/{blog_id}")
def get_blog(request: Request, blog_id: int) -> JSONResponse:
    service: SocialService = request.app.state.service
    return envelope_response(service.get_blog(blog_id))


@router.put("/blogs/{blog_id}")
def update_blog(request: Request, blog_id: int, body: BlogWrite) -> JSONResponse:
    service: SocialService = request.app.state.service
    actor_id = resolve_actor(request, body.user_id)
    return envelope_response(
        service.update_blog(blog_id, body.title, body.description, body.body, body.tags, actor_id)
    )


@router.delete("/blogs/{blog_id}")
def delete_blog(request: Request, blog_id: int, user_id: Optional[int] = None) -> JSONResponse:
    service: SocialService = request.app.state.service
    actor_id = resolve_actor(request, user_id)
    return envelope_response(service.delete_blog(blog_id, actor_id))


@router.post("/blogs/{blog_id}/like")
def toggle_like(request: Request, blog_id: int, body: LikeRequest) -> JSONResponse:
    service: SocialService = request.app.state.service
    actor_id = resolve_actor(request, body.user_id)
    return envelope_response(service.toggle_like(blog_id, actor_id))


@router.get("/blogs/{blog_id}/comments")
def get_blog_comments(request: Request, blog_id: int, roots_only: bool = False) -> JSONResponse:
    service: SocialService = request.app.state.service
    return envelope_response(service.get_comments_on_blog(blog_id, roots_only=roots_only))


@router.post("/blogs/{blog_id}/comments", status_code=201)
def create_comment(request: Request, blog_id: int, body: CommentCreate) -> JSONResponse:
    service: SocialService = request.app.state.service
    actor_id = resolve_actor(request, body.user_id)
    result = service.create_comment(blog_id, body.comment, actor_id, parent_id=body.parent_id)
    return envelope_response(result, success_status=201)
