"""
API request and response models for the Inkwell REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: core/ models = domain truth; api/ models = API contract.

Request models carry only shape constraints (types, maximum lengths). The
domain rules (minimum lengths, email shape, ordering of checks) live in
core/validation.py so that the same rules apply to the CLI and to tests that
call SocialService directly.
"""

from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from core.errors import ErrorKind
from core.models import Blog, BlogDetail, Comment, CommentNode, Like, User, UserProfile
from core.service import Envelope

# ---------------------------------------------------------------------------
# Status mapping
# ---------------------------------------------------------------------------

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.VALIDATION_FAILED: 422,
    ErrorKind.CONSTRAINT_VIOLATION: 409,
    ErrorKind.UNKNOWN: 500,
}


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    username: str = Field(max_length=255)
    email: str = Field(max_length=255)
    password: str = Field(max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    text is a username, or an email address when it contains '@'.
    """

    text: str = Field(min_length=1, max_length=255)
    password: str = Field(max_length=255)


class ChangePasswordRequest(BaseModel):
    text: str = Field(min_length=1, max_length=255)
    new_password: str = Field(max_length=255)


class FollowRequest(BaseModel):
    follower_id: Optional[int] = None


class ImageUploadRequest(BaseModel):
    image: str = Field(max_length=2048)


class BlogWrite(BaseModel):
    """Request body for POST /api/v1/blogs and PUT /api/v1/blogs/{id}.

    user_id is optional when the actor comes from the session.
    """

    title: str = Field(max_length=255)
    description: str = Field(default="", max_length=10_000)
    body: str
    tags: list[str] = Field(default_factory=list, max_length=50)
    user_id: Optional[int] = None


class LikeRequest(BaseModel):
    user_id: Optional[int] = None


class CommentCreate(BaseModel):
    comment: str = Field(max_length=10_000)
    user_id: Optional[int] = None
    parent_id: Optional[int] = None


class CommentUpdate(BaseModel):
    comment: str = Field(max_length=10_000)
    user_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public view of a user. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    image: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            image=user.image,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class BlogOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    body: str
    tags: list[str]
    user_id: int
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, blog: Blog) -> "BlogOut":
        return cls(
            id=blog.id,
            title=blog.title,
            description=blog.description,
            body=blog.body,
            tags=list(blog.tags),
            user_id=blog.user_id,
            created_at=blog.created_at,
            updated_at=blog.updated_at,
        )


class CommentOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    body: str
    user_id: int
    blog_id: int
    parent_id: Optional[int] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, comment: Comment) -> "CommentOut":
        return cls(
            id=comment.id,
            body=comment.body,
            user_id=comment.user_id,
            blog_id=comment.blog_id,
            parent_id=comment.parent_id,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )


class LikeOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    blog_id: int


class UserProfileOut(UserOut):
    """A user with their blogs and both directions of the follow graph."""

    blogs: list[BlogOut] = Field(default_factory=list)
    followers: list[UserOut] = Field(default_factory=list)
    following: list[UserOut] = Field(default_factory=list)

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserProfileOut":
        base = UserOut.from_domain(profile.user)
        return cls(
            **base.model_dump(),
            blogs=[BlogOut.from_domain(b) for b in profile.blogs],
            followers=[UserOut.from_domain(u) for u in profile.followers],
            following=[UserOut.from_domain(u) for u in profile.following],
        )


class BlogDetailOut(BlogOut):
    author: Optional[UserOut] = None
    comments: list[CommentOut] = Field(default_factory=list)
    likes: list[LikeOut] = Field(default_factory=list)

    @classmethod
    def from_detail(cls, detail: BlogDetail) -> "BlogDetailOut":
        base = BlogOut.from_domain(detail.blog)
        return cls(
            **base.model_dump(),
            author=UserOut.from_domain(detail.author) if detail.author else None,
            comments=[CommentOut.from_domain(c) for c in detail.comments],
            likes=[LikeOut(user_id=lk.user_id, blog_id=lk.blog_id) for lk in detail.likes],
        )


class CommentNodeOut(CommentOut):
    """One comment in a thread.

    children is null when the level below was not loaded, and [] when it was
    loaded and has no replies.
    """

    author: Optional[UserOut] = None
    blog: Optional[BlogOut] = None
    children: Optional[list["CommentNodeOut"]] = None

    @classmethod
    def from_node(cls, node: CommentNode) -> "CommentNodeOut":
        base = CommentOut.from_domain(node.comment)
        return cls(
            **base.model_dump(),
            author=UserOut.from_domain(node.author) if node.author else None,
            blog=BlogOut.from_domain(node.blog) if node.blog else None,
            children=[cls.from_node(c) for c in node.children] if node.children is not None else None,
        )


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    field: Optional[str] = None
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Envelope rendering
# ---------------------------------------------------------------------------


def to_payload(value: Any) -> Any:
    """Convert a facade payload (dataclass, list of them, bool, None) to JSON-ready data."""
    if isinstance(value, list):
        return [to_payload(v) for v in value]
    if isinstance(value, UserProfile):
        return UserProfileOut.from_profile(value).model_dump()
    if isinstance(value, User):
        return UserOut.from_domain(value).model_dump()
    if isinstance(value, BlogDetail):
        return BlogDetailOut.from_detail(value).model_dump()
    if isinstance(value, Blog):
        return BlogOut.from_domain(value).model_dump()
    if isinstance(value, CommentNode):
        return CommentNodeOut.from_node(value).model_dump()
    if isinstance(value, Comment):
        return CommentOut.from_domain(value).model_dump()
    if isinstance(value, Like):
        return LikeOut(user_id=value.user_id, blog_id=value.blog_id).model_dump()
    return value


def envelope_body(envelope: Envelope) -> dict:
    return {
        "error": envelope.error.to_dict() if envelope.error is not None else None,
        envelope.key: to_payload(envelope.value),
    }


def envelope_response(envelope: Envelope, success_status: int = 200, unauthorized_status: int = 403) -> JSONResponse:
    """Render an Envelope as a JSONResponse whose status follows the error kind.

    Login passes unauthorized_status=401: a wrong password is an
    authentication failure, not an ownership one.
    """
    if envelope.ok:
        status = success_status
    elif envelope.error.kind is ErrorKind.UNAUTHORIZED:
        status = unauthorized_status
    else:
        status = STATUS_BY_KIND[envelope.error.kind]
    return JSONResponse(status_code=status, content=envelope_body(envelope))
