"""
core/service.py -- The domain facade: every user-visible operation in one place.

SocialService receives its collaborators by injection:
  store    -- storage.store.EntityStore (or any object with the same methods)
  hasher   -- anything with hash(plain) and verify(digest, plain)
  settings -- core.config.Settings, for the policy switches

Each public method returns an Envelope. Expected failures (DomainError and
its subclasses, including StoreError) become envelope errors; anything else
is logged with a traceback and reported as ErrorKind.UNKNOWN. Nothing raises
out of the facade.

Check order inside an operation is part of the contract:
  existence (NotFound) -> ownership (Unauthorized) -> input rules
  (ValidationFailed) -> store write (ConstraintViolation).

Layer rule: core/ is the kernel. No imports from api/, auth/, or storage/
outside of TYPE_CHECKING.
"""

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Protocol

from core.comment_tree import build_comment_tree
from core.config import Settings
from core.errors import DomainError, NotFound, Unauthorized, ValidationFailed
from core.models import Blog, BlogDetail, Comment, CommentNode, DeletePolicy, Follow, Like, User, UserProfile
from core.ownership import require_owner
from core.relationships import ToggleOutcome, connect, disconnect, require_endpoints, toggle
from core.validation import (
    validate_blog,
    validate_comment_body,
    validate_image_ref,
    validate_password,
    validate_registration,
)

if TYPE_CHECKING:
    from storage.store import EntityStore

logger = logging.getLogger("inkwell.service")


class PasswordHasher(Protocol):
    def hash(self, plain: str) -> str: ...

    def verify(self, hashed: str, plain: str) -> bool: ...


@dataclass
class Envelope:
    """Uniform result of a facade operation.

    key names the payload slot ("user", "blog", "deleted", ...). On failure
    value holds the operation's default (None, or False for deletes).
    """

    key: str
    value: Any = None
    error: Optional[DomainError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "error": self.error.to_dict() if self.error is not None else None,
            self.key: self.value,
        }


def _enveloped(key: str, default: Any = None):
    """Run the wrapped operation and fold its outcome into an Envelope."""

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs) -> Envelope:
            try:
                return Envelope(key, fn(self, *args, **kwargs))
            except DomainError as exc:
                logger.info("%s rejected: %r", fn.__name__, exc)
                return Envelope(key, default, exc)
            except Exception as exc:
                logger.exception("Unexpected failure in %s", fn.__name__)
                return Envelope(key, default, DomainError("unknown", str(exc)))

        return wrapper

    return decorator


class SocialService:
    """Orchestrates validation, ownership, edge toggling and comment trees."""

    def __init__(self, store: "EntityStore", hasher: PasswordHasher, settings: Settings) -> None:
        self.store = store
        self.hasher = hasher
        self.settings = settings

    @property
    def delete_policy(self) -> DeletePolicy:
        return DeletePolicy(self.settings.delete_policy)

    # ------------------------------------------------------------------
    # Lookups shared by several operations
    # ------------------------------------------------------------------

    def _require_user(self, user_id: int, field: str = "id") -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFound(field, "User not found")
        return user

    def _require_blog(self, blog_id: int, field: str = "id") -> Blog:
        blog = self.store.get_blog(blog_id)
        if blog is None:
            raise NotFound(field, "Blog not found")
        return blog

    def _require_comment(self, comment_id: int, field: str = "id") -> Comment:
        comment = self.store.get_comment(comment_id)
        if comment is None:
            raise NotFound(field, "Comment not found")
        return comment

    def _lookup_login(self, text: str) -> User:
        """An @ in text means an email lookup, otherwise a username lookup."""
        if "@" in text:
            user = self.store.get_user_by_email(text)
            field = "email"
        else:
            user = self.store.get_user_by_username(text)
            field = "username"
        if user is None:
            raise NotFound(field, "User not found")
        return user

    def _profile(self, user: User) -> UserProfile:
        return UserProfile(
            user=user,
            blogs=self.store.list_blogs(user_id=user.id),
            followers=self.store.list_followers(user.id),
            following=self.store.list_following(user.id),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @_enveloped("users")
    def get_all_users(self) -> list[UserProfile]:
        return [self._profile(u) for u in self.store.list_users()]

    @_enveloped("user")
    def get_user(self, user_id: int) -> UserProfile:
        return self._profile(self._require_user(user_id))

    @_enveloped("comments")
    def get_comments_of_user(self, user_id: int, roots_only: bool = False) -> list[CommentNode]:
        self._require_user(user_id, "userId")
        return build_comment_tree(self.store, user_id=user_id, roots_only=roots_only)

    @_enveloped("blogs")
    def get_all_blogs(self) -> list[BlogDetail]:
        blogs = self.store.list_blogs()
        authors = self.store.users_by_ids(b.user_id for b in blogs)
        return [
            BlogDetail(blog=b, author=authors.get(b.user_id), comments=self.store.list_comments(blog_id=b.id))
            for b in blogs
        ]

    @_enveloped("blog")
    def get_blog(self, blog_id: int) -> BlogDetail:
        blog = self._require_blog(blog_id)
        return BlogDetail(
            blog=blog,
            author=self.store.get_user(blog.user_id),
            comments=self.store.list_comments(blog_id=blog.id),
            likes=self.store.list_likes(blog.id),
        )

    @_enveloped("comments")
    def get_comments_on_blog(self, blog_id: int, roots_only: bool = False) -> list[CommentNode]:
        self._require_blog(blog_id, "blogId")
        return build_comment_tree(self.store, blog_id=blog_id, roots_only=roots_only)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    @_enveloped("user")
    def register(self, username: str, email: str, password: str) -> User:
        data = validate_registration(username, email, password)
        user_id = self.store.create_user(
            User(username=data.username, email=data.email, hashed_password=self.hasher.hash(data.password))
        )
        logger.info("Registered user %d (%s)", user_id, data.username)
        return self.store.get_user(user_id)

    @_enveloped("user")
    def login(self, text: str, password: str) -> User:
        user = self._lookup_login(text)
        if not user.hashed_password or not self.hasher.verify(user.hashed_password, password):
            raise Unauthorized("password", "Incorrect password")
        return user

    @_enveloped("user")
    def change_password(self, text: str, new_password: str) -> User:
        user = self._lookup_login(text)
        validate_password(new_password, field="newPassword")
        self.store.update_user(user.id, hashed_password=self.hasher.hash(new_password))
        logger.info("Password changed for user %d", user.id)
        return self.store.get_user(user.id)

    @_enveloped("user")
    def upload_image(self, image: str, user_id: int) -> User:
        self._require_user(user_id, "userId")
        self.store.update_user(user_id, image=validate_image_ref(image))
        return self.store.get_user(user_id)

    @_enveloped("deleted", default=False)
    def delete_user(self, user_id: int) -> bool:
        self._require_user(user_id, "userId")
        deleted = self.store.delete_user(user_id, self.delete_policy)
        logger.info("Deleted user %d (policy=%s)", user_id, self.delete_policy.value)
        return deleted

    # ------------------------------------------------------------------
    # Follows
    # ------------------------------------------------------------------

    @_enveloped("user")
    def follow_user(self, user_id: int, follower_id: int) -> UserProfile:
        """follower_id starts following user_id. Returns the follower's profile."""
        edge = Follow(follower_id=follower_id, followee_id=user_id)
        require_endpoints(self.store, edge)
        if follower_id == user_id and not self.settings.allow_self_follow:
            raise ValidationFailed("followerId", "Users cannot follow themselves")
        connect(self.store, edge, reject_duplicate=self.settings.reject_duplicate_follow)
        return self._profile(self.store.get_user(follower_id))

    @_enveloped("user")
    def unfollow_user(self, user_id: int, follower_id: int) -> UserProfile:
        """follower_id stops following user_id. Returns the follower's profile."""
        disconnect(self.store, Follow(follower_id=follower_id, followee_id=user_id))
        return self._profile(self.store.get_user(follower_id))

    # ------------------------------------------------------------------
    # Blogs
    # ------------------------------------------------------------------

    @_enveloped("blog")
    def create_blog(
        self,
        title: str,
        description: str,
        body: str,
        tags: Optional[list[str]],
        user_id: int,
    ) -> Blog:
        data = validate_blog(title, description, body, tags, user_id, self.settings.require_content)
        blog_id = self.store.create_blog(
            Blog(
                title=data.title,
                description=data.description,
                body=data.body,
                tags=list(data.tags),
                user_id=data.user_id,
            )
        )
        logger.info("User %d created blog %d", user_id, blog_id)
        return self.store.get_blog(blog_id)

    @_enveloped("blog")
    def update_blog(
        self,
        blog_id: int,
        title: str,
        description: str,
        body: str,
        tags: Optional[list[str]],
        user_id: int,
    ) -> Blog:
        blog = self._require_blog(blog_id)
        require_owner(user_id, blog.user_id)
        data = validate_blog(title, description, body, tags, user_id, self.settings.require_content)
        self.store.update_blog(
            blog_id,
            title=data.title,
            description=data.description,
            body=data.body,
            tags=list(data.tags),
        )
        return self.store.get_blog(blog_id)

    @_enveloped("deleted", default=False)
    def delete_blog(self, blog_id: int, user_id: int) -> bool:
        blog = self._require_blog(blog_id)
        require_owner(user_id, blog.user_id)
        deleted = self.store.delete_blog(blog_id, self.delete_policy)
        logger.info("User %d deleted blog %d", user_id, blog_id)
        return deleted

    @_enveloped("liked", default=False)
    def toggle_like(self, blog_id: int, user_id: int) -> bool:
        """Returns True when the like now exists, False when it was removed."""
        return toggle(self.store, Like(user_id=user_id, blog_id=blog_id)) is ToggleOutcome.CREATED

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    @_enveloped("comment")
    def create_comment(self, blog_id: int, comment: str, user_id: int, parent_id: Optional[int] = None) -> Comment:
        self._require_blog(blog_id, "blogId")
        self._require_user(user_id, "userId")
        if parent_id is not None:
            parent = self._require_comment(parent_id, "parent_id")
            if parent.blog_id != blog_id:
                raise ValidationFailed("parent_id", "Parent comment belongs to another blog")
        body = validate_comment_body(comment, self.settings.require_content)
        comment_id = self.store.create_comment(
            Comment(body=body, user_id=user_id, blog_id=blog_id, parent_id=parent_id)
        )
        return self.store.get_comment(comment_id)

    @_enveloped("comment")
    def update_comment(self, comment_id: int, comment: str, user_id: int) -> Comment:
        existing = self._require_comment(comment_id)
        require_owner(user_id, existing.user_id)
        self.store.update_comment(comment_id, validate_comment_body(comment, self.settings.require_content))
        return self.store.get_comment(comment_id)

    @_enveloped("deleted", default=False)
    def delete_comment(self, comment_id: int, user_id: int) -> bool:
        existing = self._require_comment(comment_id)
        require_owner(user_id, existing.user_id)
        return self.store.delete_comment(comment_id, self.delete_policy)
