"""
core/ownership.py -- Decides whether an actor may change a resource.

The guard compares ids and nothing else. Where the actor id comes from
(verified session or client-supplied) is decided by the API layer; see
auth/dependencies.resolve_actor and Settings.trust_client_actor.
"""

from enum import Enum
from typing import Optional

from core.errors import Unauthorized


class Access(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


def authorize(actor_id: Optional[int], owner_id: Optional[int]) -> Access:
    """Return ALLOWED only when the actor is the recorded owner."""
    if actor_id is None or actor_id != owner_id:
        return Access.DENIED
    return Access.ALLOWED


def require_owner(actor_id: Optional[int], owner_id: Optional[int]) -> None:
    """Raise Unauthorized unless authorize() allows the actor."""
    if authorize(actor_id, owner_id) is Access.DENIED:
        raise Unauthorized("userId", "User not authorized")
