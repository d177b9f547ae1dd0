"""
core/comment_tree.py -- Materialises threaded comments to a fixed depth.

Given a blog or a user, every directly matching comment becomes a top-level
node. Each node gets its replies, and each reply gets its own replies. That
is three levels (node, child, grandchild) and no more: grandchildren are
returned with children=None, meaning "not loaded", and nothing below them is
ever queried.

Each level is one store call (list_replies over all parent ids at that
level), so building a tree costs three queries regardless of its width,
plus one batch lookup for the attached author or blog.

Sibling order is insertion order (ascending id). There is no other sort key.
"""

from typing import TYPE_CHECKING, Optional

from core.models import COMMENT_TREE_DEPTH, Comment, CommentNode

if TYPE_CHECKING:
    from storage.store import EntityStore


def _group_by_parent(replies: list[Comment]) -> dict[int, list[Comment]]:
    grouped: dict[int, list[Comment]] = {}
    for reply in replies:
        grouped.setdefault(reply.parent_id, []).append(reply)
    return grouped


def _attach_level(store: "EntityStore", nodes: list[CommentNode], remaining: int) -> None:
    """Load replies for nodes, recursing until remaining levels are used up."""
    if remaining <= 0 or not nodes:
        return
    by_parent = _group_by_parent(store.list_replies(n.comment.id for n in nodes))
    children: list[CommentNode] = []
    for node in nodes:
        node.children = [CommentNode(comment=c) for c in by_parent.get(node.comment.id, [])]
        children.extend(node.children)
    _attach_level(store, children, remaining - 1)


def build_comment_tree(
    store: "EntityStore",
    *,
    blog_id: Optional[int] = None,
    user_id: Optional[int] = None,
    roots_only: bool = False,
) -> list[CommentNode]:
    """Return the matching comments as trees three levels deep.

    Exactly one of blog_id or user_id is expected. Top-level nodes of a blog
    query carry their author; those of a user query carry their blog.
    roots_only keeps only comments without a parent at the top level.
    """
    if (blog_id is None) == (user_id is None):
        raise ValueError("build_comment_tree needs exactly one of blog_id or user_id")

    top = store.list_comments(blog_id=blog_id, user_id=user_id, roots_only=roots_only)
    nodes = [CommentNode(comment=c) for c in top]

    if blog_id is not None:
        authors = store.users_by_ids(c.user_id for c in top)
        for node in nodes:
            node.author = authors.get(node.comment.user_id)
    else:
        blogs = store.blogs_by_ids(c.blog_id for c in top)
        for node in nodes:
            node.blog = blogs.get(node.comment.blog_id)

    # The top level counts as the first of the loaded levels.
    _attach_level(store, nodes, COMMENT_TREE_DEPTH - 1)
    return nodes
