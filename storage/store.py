"""
storage/store.py -- SQLAlchemy-backed persistence layer for Inkwell.

Uses SQLAlchemy Core (not ORM) so the dataclasses in core/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. EntityStore is the single repository
handle that the domain facade receives by injection. The _row_to_* functions
are the mappers. Nothing outside this module touches SQL.

Errors: write failures are raised as core.errors.StoreError with an
ErrorKind and the name of the offending field. When the database rejects a
write, the store re-queries the constrained columns to find out which one
collided. Driver exception text is never inspected.

Edges: likes and follows have composite primary keys, so the database
itself guarantees an edge is never duplicated. add_edge/remove_edge/has_edge
work on core.models.Like and core.models.Follow keys.

Cascades: deleting a user, blog or comment follows an explicit DeletePolicy
and runs inside a single transaction. CASCADE removes dependent content
(including every reply below a removed comment); RESTRICT refuses while
owned content remains. Edges are always removed together with an endpoint.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = EntityStore()                               # SQLite default
    store = EntityStore("postgresql://user:pw@host/db") # PostgreSQL
    user_id = store.create_user(User(username="ada", email="ada@example.com", hashed_password=h))
    store.add_edge(Follow(follower_id=user_id, followee_id=other_id))
    store.close()
"""

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    or_,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from core.errors import ErrorKind, StoreError
from core.models import Blog, Comment, DeletePolicy, Edge, EdgeKind, Like, User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'inkwell.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("image", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    sqlite_autoincrement=True,
)

_blogs = Table(
    "blogs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("body", Text, nullable=False),
    Column("tags", Text),  # JSON array serialized as text
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_blogs_user_id", "user_id"),
    sqlite_autoincrement=True,
)

_comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("body", Text, nullable=False),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("blog_id", Integer, ForeignKey("blogs.id"), nullable=False),
    Column("parent_id", Integer, ForeignKey("comments.id")),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_comments_blog_id", "blog_id"),
    Index("ix_comments_user_id", "user_id"),
    Index("ix_comments_parent_id", "parent_id"),
    sqlite_autoincrement=True,
)

_likes = Table(
    "likes",
    metadata,
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
    Column("blog_id", Integer, ForeignKey("blogs.id"), primary_key=True),
    Column("created_at", String(32), nullable=False),
)

_follows = Table(
    "follows",
    metadata,
    Column("follower_id", Integer, ForeignKey("users.id"), primary_key=True),
    Column("followee_id", Integer, ForeignKey("users.id"), primary_key=True),
    Column("created_at", String(32), nullable=False),
)

_EDGE_TABLES: dict[EdgeKind, Table] = {
    EdgeKind.LIKE: _likes,
    EdgeKind.FOLLOW: _follows,
}

# Field reported when an edge insert collides with an existing edge.
_EDGE_DUPLICATE_FIELD: dict[EdgeKind, str] = {
    EdgeKind.LIKE: "userId",
    EdgeKind.FOLLOW: "followerId",
}

# Columns that update_* may touch. Anything else is a programming error.
_USER_MUTABLE = {"hashed_password", "image"}
_BLOG_MUTABLE = {"title", "description", "body", "tags", "user_id"}


# ---------------------------------------------------------------------------
# SQLite connection pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign key enforcement on every new SQLite connection.

    SQLite PRAGMAs are per-connection and are not inherited by new connections
    from the pool, so this runs on the engine "connect" event.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# SQLite INTEGER is a signed 64-bit value; larger ids can never name a row.
_MIN_ROWID = -(2**63)
_MAX_ROWID = 2**63 - 1


def _storable_id(value: int) -> bool:
    return _MIN_ROWID <= value <= _MAX_ROWID


def _edge_clause(edge: Edge):
    table = _EDGE_TABLES[edge.kind]
    clauses = [table.c[name] == value for name, value in asdict(edge).items()]
    return clauses[0] & clauses[1]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class EntityStore:
    """Repository for users, blogs, comments and the like/follow edges."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a user and return its id.

        Raises StoreError(CONSTRAINT_VIOLATION) naming "username" or "email"
        when either is already taken.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            try:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        email=user.email,
                        hashed_password=user.hashed_password,
                        image=user.image,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                raise self._user_conflict(conn, user) from exc
            return result.inserted_primary_key[0]

    def _user_conflict(self, conn: Connection, user: User) -> StoreError:
        taken = conn.execute(select(_users.c.id).where(_users.c.username == user.username)).first()
        if taken is not None:
            return StoreError(ErrorKind.CONSTRAINT_VIOLATION, "username", "Username already taken")
        taken = conn.execute(select(_users.c.id).where(_users.c.email == user.email)).first()
        if taken is not None:
            return StoreError(ErrorKind.CONSTRAINT_VIOLATION, "email", "Email already registered")
        return StoreError(ErrorKind.CONSTRAINT_VIOLATION, "id", "User could not be created")

    def get_user(self, user_id: int) -> Optional[User]:
        if not _storable_id(user_id):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        """Exact, case-sensitive match."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def users_by_ids(self, user_ids: Iterable[int]) -> dict[int, User]:
        ids = set(user_ids)
        if not ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().where(_users.c.id.in_(ids))).fetchall()
        return {r.id: _row_to_user(r) for r in rows}

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable user fields. Returns False if user_id was not found.

        Accepted fields: hashed_password, image. Unknown keys raise ValueError.
        """
        unknown = set(fields) - _USER_MUTABLE
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(updated_at=_now_iso(), **fields)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int, policy: DeletePolicy = DeletePolicy.CASCADE) -> bool:
        """Delete a user. Returns False if not found.

        CASCADE removes the user's blogs (with every comment and like on
        them), the user's own comments and their replies, the user's likes and
        both directions of follow edges. RESTRICT raises StoreError while the
        user still owns blogs or comments.
        """
        with self.engine.begin() as conn:
            if conn.execute(select(_users.c.id).where(_users.c.id == user_id)).first() is None:
                return False
            blog_ids = list(conn.execute(select(_blogs.c.id).where(_blogs.c.user_id == user_id)).scalars())
            own_comment_ids = set(
                conn.execute(select(_comments.c.id).where(_comments.c.user_id == user_id)).scalars()
            )
            if policy is DeletePolicy.RESTRICT and (blog_ids or own_comment_ids):
                raise StoreError(ErrorKind.CONSTRAINT_VIOLATION, "userId", "User still owns blogs or comments")

            comment_ids = own_comment_ids | set(
                conn.execute(select(_comments.c.id).where(_comments.c.blog_id.in_(blog_ids))).scalars()
            )
            _delete_comments(conn, _with_descendants(conn, comment_ids))
            conn.execute(_likes.delete().where(or_(_likes.c.user_id == user_id, _likes.c.blog_id.in_(blog_ids))))
            conn.execute(_blogs.delete().where(_blogs.c.user_id == user_id))
            conn.execute(
                _follows.delete().where(or_(_follows.c.follower_id == user_id, _follows.c.followee_id == user_id))
            )
            conn.execute(_users.delete().where(_users.c.id == user_id))
        return True

    # ------------------------------------------------------------------
    # Follow queries
    # ------------------------------------------------------------------

    def list_followers(self, user_id: int) -> list[User]:
        """Users who follow user_id."""
        query = (
            _users.select()
            .join(_follows, _follows.c.follower_id == _users.c.id)
            .where(_follows.c.followee_id == user_id)
            .order_by(_users.c.id)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def list_following(self, user_id: int) -> list[User]:
        """Users that user_id follows."""
        query = (
            _users.select()
            .join(_follows, _follows.c.followee_id == _users.c.id)
            .where(_follows.c.follower_id == user_id)
            .order_by(_users.c.id)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Blogs
    # ------------------------------------------------------------------

    def create_blog(self, blog: Blog) -> int:
        """Insert a blog and return its id.

        Raises StoreError(CONSTRAINT_VIOLATION, "userId") if the owner does not exist.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            try:
                result = conn.execute(
                    _blogs.insert().values(
                        title=blog.title,
                        description=blog.description,
                        body=blog.body,
                        tags=json.dumps(list(blog.tags)),
                        user_id=blog.user_id,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                raise StoreError(ErrorKind.CONSTRAINT_VIOLATION, "userId", "User does not exist") from exc
            return result.inserted_primary_key[0]

    def get_blog(self, blog_id: int) -> Optional[Blog]:
        if not _storable_id(blog_id):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_blogs.select().where(_blogs.c.id == blog_id)).fetchone()
        return _row_to_blog(row) if row is not None else None

    def list_blogs(self, user_id: Optional[int] = None) -> list[Blog]:
        """All blogs in insertion order, optionally only those owned by user_id."""
        query = _blogs.select().order_by(_blogs.c.id)
        if user_id is not None:
            query = query.where(_blogs.c.user_id == user_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_blog(r) for r in rows]

    def blogs_by_ids(self, blog_ids: Iterable[int]) -> dict[int, Blog]:
        ids = set(blog_ids)
        if not ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(_blogs.select().where(_blogs.c.id.in_(ids))).fetchall()
        return {r.id: _row_to_blog(r) for r in rows}

    def update_blog(self, blog_id: int, **fields) -> bool:
        """Update blog fields. Returns False if blog_id was not found.

        Accepted fields: title, description, body, tags, user_id.
        """
        unknown = set(fields) - _BLOG_MUTABLE
        if unknown:
            raise ValueError(f"Unknown blog fields: {unknown!r}")
        if "tags" in fields:
            fields["tags"] = json.dumps(list(fields["tags"]))
        with self.engine.connect() as conn:
            try:
                result = conn.execute(
                    _blogs.update().where(_blogs.c.id == blog_id).values(updated_at=_now_iso(), **fields)
                )
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                raise StoreError(ErrorKind.CONSTRAINT_VIOLATION, "userId", "User does not exist") from exc
        return result.rowcount > 0

    def delete_blog(self, blog_id: int, policy: DeletePolicy = DeletePolicy.CASCADE) -> bool:
        """Delete a blog. Returns False if not found.

        CASCADE removes its comments (and any reply hanging below them) and
        its likes. RESTRICT raises StoreError while comments remain. Likes
        never block a delete.
        """
        with self.engine.begin() as conn:
            if conn.execute(select(_blogs.c.id).where(_blogs.c.id == blog_id)).first() is None:
                return False
            comment_ids = set(conn.execute(select(_comments.c.id).where(_comments.c.blog_id == blog_id)).scalars())
            if policy is DeletePolicy.RESTRICT and comment_ids:
                raise StoreError(ErrorKind.CONSTRAINT_VIOLATION, "id", "Blog still has comments")
            _delete_comments(conn, _with_descendants(conn, comment_ids))
            conn.execute(_likes.delete().where(_likes.c.blog_id == blog_id))
            conn.execute(_blogs.delete().where(_blogs.c.id == blog_id))
        return True

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def create_comment(self, comment: Comment) -> int:
        """Insert a comment and return its id.

        Raises StoreError(CONSTRAINT_VIOLATION) naming the reference that does
        not exist (userId, blogId or parent_id).
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            try:
                result = conn.execute(
                    _comments.insert().values(
                        body=comment.body,
                        user_id=comment.user_id,
                        blog_id=comment.blog_id,
                        parent_id=comment.parent_id,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                raise self._comment_conflict(conn, comment) from exc
            return result.inserted_primary_key[0]

    def _comment_conflict(self, conn: Connection, comment: Comment) -> StoreError:
        checks = [
            ("blogId", _blogs, comment.blog_id),
            ("userId", _users, comment.user_id),
            ("parent_id", _comments, comment.parent_id),
        ]
        for field_name, table, ref in checks:
            if ref is None:
                continue
            if conn.execute(select(table.c.id).where(table.c.id == ref)).first() is None:
                return StoreError(ErrorKind.CONSTRAINT_VIOLATION, field_name, f"Referenced {field_name} does not exist")
        return StoreError(ErrorKind.CONSTRAINT_VIOLATION, "id", "Comment could not be created")

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        if not _storable_id(comment_id):
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_comments.select().where(_comments.c.id == comment_id)).fetchone()
        return _row_to_comment(row) if row is not None else None

    def list_comments(
        self,
        blog_id: Optional[int] = None,
        user_id: Optional[int] = None,
        roots_only: bool = False,
    ) -> list[Comment]:
        """Comments filtered by blog and/or author, in insertion order."""
        query = _comments.select().order_by(_comments.c.id)
        if blog_id is not None:
            query = query.where(_comments.c.blog_id == blog_id)
        if user_id is not None:
            query = query.where(_comments.c.user_id == user_id)
        if roots_only:
            query = query.where(_comments.c.parent_id.is_(None))
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_comment(r) for r in rows]

    def list_replies(self, parent_ids: Iterable[int]) -> list[Comment]:
        """Direct replies to any of parent_ids, in insertion order. One level only."""
        ids = set(parent_ids)
        if not ids:
            return []
        query = _comments.select().where(_comments.c.parent_id.in_(ids)).order_by(_comments.c.id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_comment(r) for r in rows]

    def update_comment(self, comment_id: int, body: str) -> bool:
        """Replace a comment's body. Returns False if comment_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _comments.update().where(_comments.c.id == comment_id).values(body=body, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_comment(self, comment_id: int, policy: DeletePolicy = DeletePolicy.CASCADE) -> bool:
        """Delete a comment. Returns False if not found.

        CASCADE also removes every reply below it, at any depth. RESTRICT
        raises StoreError while replies exist.
        """
        with self.engine.begin() as conn:
            if conn.execute(select(_comments.c.id).where(_comments.c.id == comment_id)).first() is None:
                return False
            subtree = _with_descendants(conn, {comment_id})
            if policy is DeletePolicy.RESTRICT and len(subtree) > 1:
                raise StoreError(ErrorKind.CONSTRAINT_VIOLATION, "id", "Comment has replies")
            _delete_comments(conn, subtree)
        return True

    # ------------------------------------------------------------------
    # Edges (likes, follows)
    # ------------------------------------------------------------------

    def has_edge(self, edge: Edge) -> bool:
        table = _EDGE_TABLES[edge.kind]
        with self.engine.connect() as conn:
            row = conn.execute(select(func.count()).select_from(table).where(_edge_clause(edge))).scalar()
        return (row or 0) > 0

    def add_edge(self, edge: Edge) -> None:
        """Insert an edge.

        Raises StoreError(CONSTRAINT_VIOLATION) if the edge already exists or
        one of its endpoints has disappeared.
        """
        table = _EDGE_TABLES[edge.kind]
        with self.engine.connect() as conn:
            try:
                conn.execute(table.insert().values(created_at=_now_iso(), **asdict(edge)))
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                raise StoreError(
                    ErrorKind.CONSTRAINT_VIOLATION,
                    _EDGE_DUPLICATE_FIELD[edge.kind],
                    f"{edge.kind.value.capitalize()} could not be created",
                ) from exc

    def remove_edge(self, edge: Edge) -> bool:
        """Delete an edge in one statement. Returns True if a row was removed."""
        table = _EDGE_TABLES[edge.kind]
        with self.engine.connect() as conn:
            result = conn.execute(table.delete().where(_edge_clause(edge)))
            conn.commit()
        return result.rowcount > 0

    def list_likes(self, blog_id: int) -> list[Like]:
        query = _likes.select().where(_likes.c.blog_id == blog_id).order_by(_likes.c.created_at, _likes.c.user_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [Like(user_id=r.user_id, blog_id=r.blog_id) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Cascade helpers (run inside the caller's transaction)
# ---------------------------------------------------------------------------


def _with_descendants(conn: Connection, comment_ids: set[int]) -> set[int]:
    """Return comment_ids plus every reply below them, at any depth."""
    found = set(comment_ids)
    frontier = set(comment_ids)
    while frontier:
        children = set(conn.execute(select(_comments.c.id).where(_comments.c.parent_id.in_(frontier))).scalars())
        frontier = children - found
        found |= frontier
    return found


def _delete_comments(conn: Connection, comment_ids: set[int]) -> None:
    # One statement, so the self-referencing parent_id key is checked only
    # after the whole subtree is gone.
    if comment_ids:
        conn.execute(_comments.delete().where(_comments.c.id.in_(comment_ids)))


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        image=row.image,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_blog(row) -> Blog:
    return Blog(
        id=row.id,
        title=row.title,
        description=row.description,
        body=row.body,
        tags=json.loads(row.tags) if row.tags else [],
        user_id=row.user_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        body=row.body,
        user_id=row.user_id,
        blog_id=row.blog_id,
        parent_id=row.parent_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
