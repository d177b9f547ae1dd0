from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

USERNAME_MIN_LENGTH = 3
PASSWORD_MIN_LENGTH = 6
# bcrypt refuses to hash more than this many bytes.
PASSWORD_MAX_BYTES = 72

# local-part@domain, where the domain has at least one character on each side
# of the @ and no whitespace anywhere. Deliberately loose: deliverability is
# not this layer's concern.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"

# Root, child, grandchild. The comment tree builder never reads deeper.
COMMENT_TREE_DEPTH = 3


class DeletePolicy(str, Enum):
    CASCADE = "cascade"
    RESTRICT = "restrict"


class EdgeKind(str, Enum):
    LIKE = "like"
    FOLLOW = "follow"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass
class User:
    username: str
    email: str
    id: Optional[int] = None
    hashed_password: Optional[str] = None
    image: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Blog:
    title: str
    description: str
    body: str
    user_id: int
    tags: list[str] = field(default_factory=list)
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Comment:
    body: str
    user_id: int
    blog_id: int
    parent_id: Optional[int] = None  # None for a root comment
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


# ---------------------------------------------------------------------------
# Edges -- composite keys with no identity of their own
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Like:
    user_id: int
    blog_id: int

    kind = EdgeKind.LIKE


@dataclass(frozen=True)
class Follow:
    follower_id: int
    followee_id: int

    kind = EdgeKind.FOLLOW


Edge = Union[Like, Follow]


# ---------------------------------------------------------------------------
# Read models assembled by the facade
# ---------------------------------------------------------------------------


@dataclass
class UserProfile:
    user: User
    blogs: list[Blog] = field(default_factory=list)
    followers: list[User] = field(default_factory=list)
    following: list[User] = field(default_factory=list)


@dataclass
class BlogDetail:
    blog: Blog
    author: Optional[User] = None
    comments: list[Comment] = field(default_factory=list)
    likes: list[Like] = field(default_factory=list)


@dataclass
class CommentNode:
    """One comment plus its replies, as far down as the builder loaded them.

    children is None when the level below was not loaded (the depth cap),
    and an empty list when it was loaded and there are no replies.
    """

    comment: Comment
    author: Optional[User] = None
    blog: Optional[Blog] = None
    children: Optional[list[CommentNode]] = None
