#Purpose: Caller validation shared by every engine.
#The caller's role is never taken from the request: it is re-read from the
#latest snapshot using the authenticated session's user id.

from typing import Optional

from accounts.models import STAFF_ROLES, Role
from accounts.users import AnyUser
from .errors import Unauthorized
from .store import StoreSnapshot


def require_role(snapshot: StoreSnapshot, actor_id: Optional[str], *roles: Role, message: str) -> AnyUser:
    """
    Returns the acting user if they exist and hold one of `roles`, otherwise raises Unauthorized.
    """
    actor = snapshot.find_user(actor_id)
    if actor is None or actor.role not in roles:
        raise Unauthorized(message)
    return actor


def require_staff(snapshot: StoreSnapshot, actor_id: Optional[str]) -> AnyUser:
    return require_role(snapshot, actor_id, *STAFF_ROLES, message="Not authorized.")
