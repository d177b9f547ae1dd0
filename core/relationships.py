"""
core/relationships.py -- Existence toggling for like and follow edges.

An edge is a composite key with no identity of its own, so the only
operations are "make it exist" and "make it not exist". Endpoints are
checked before anything is written; a missing endpoint is reported as
NotFound and the store is left untouched.

toggle() removes first and inserts only when nothing was removed. The
delete is a single conditional statement, so two racing toggles cannot both
observe "absent" and then both delete. If the insert collides with an edge
a concurrent caller just created, the edge exists and the outcome is
CREATED.

Layer rule: the store is received as an argument. No imports from storage/.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING

from core.errors import ConstraintViolation, ErrorKind, NotFound, StoreError
from core.models import Edge, EdgeKind

if TYPE_CHECKING:
    from storage.store import EntityStore

logger = logging.getLogger("inkwell.relationships")


class ToggleOutcome(str, Enum):
    CREATED = "created"
    DELETED = "deleted"


def require_endpoints(store: "EntityStore", edge: Edge) -> None:
    """Raise NotFound naming the first endpoint of edge that does not exist.

    Likes check the blog before the user. Follows check the followee
    (reported as userId) before the follower.
    """
    if edge.kind is EdgeKind.LIKE:
        if store.get_blog(edge.blog_id) is None:
            raise NotFound("blogId", "Blog not found")
        if store.get_user(edge.user_id) is None:
            raise NotFound("userId", "User not found")
        return

    if store.get_user(edge.followee_id) is None:
        raise NotFound("userId", "User not found")
    if store.get_user(edge.follower_id) is None:
        raise NotFound("followerId", "Follower not found")


def toggle(store: "EntityStore", edge: Edge) -> ToggleOutcome:
    """Flip the existence of edge and report which way it went."""
    require_endpoints(store, edge)

    if store.remove_edge(edge):
        logger.info("Removed %s edge %r", edge.kind.value, edge)
        return ToggleOutcome.DELETED

    try:
        store.add_edge(edge)
    except StoreError as exc:
        if exc.kind is not ErrorKind.CONSTRAINT_VIOLATION or not store.has_edge(edge):
            raise
        logger.info("Concurrent toggle already created %s edge %r", edge.kind.value, edge)
        return ToggleOutcome.CREATED

    logger.info("Created %s edge %r", edge.kind.value, edge)
    return ToggleOutcome.CREATED


def connect(store: "EntityStore", edge: Edge, reject_duplicate: bool = False) -> bool:
    """Ensure edge exists. Returns True if this call inserted it.

    With reject_duplicate, an edge that already exists raises
    ConstraintViolation instead of being a no-op.
    """
    require_endpoints(store, edge)

    if store.has_edge(edge):
        if reject_duplicate:
            field = "followerId" if edge.kind is EdgeKind.FOLLOW else "userId"
            raise ConstraintViolation(field, f"{edge.kind.value.capitalize()} already exists")
        return False

    try:
        store.add_edge(edge)
    except StoreError as exc:
        if exc.kind is ErrorKind.CONSTRAINT_VIOLATION and store.has_edge(edge) and not reject_duplicate:
            return False
        raise

    logger.info("Connected %s edge %r", edge.kind.value, edge)
    return True


def disconnect(store: "EntityStore", edge: Edge) -> bool:
    """Ensure edge does not exist. Returns True if this call removed it."""
    require_endpoints(store, edge)
    removed = store.remove_edge(edge)
    if removed:
        logger.info("Disconnected %s edge %r", edge.kind.value, edge)
    return removed
