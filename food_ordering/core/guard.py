"""
Authorization Guard

Single place where role and ownership rules are decided.

Every protected action has a policy made of an optional allowed-role set and
an ownership rule. Route handlers load the target resource, describe it as a
``Resource`` and call ``enforce()`` before touching the store, so a denied
request never has side effects.

Ownership rules:
    - none: role check only
    - owner: caller must be ``resource.owner_id``
    - manager: caller must be ``resource.manager_id`` (the owner of the
      restaurant an order was placed with)
    - owner_or_manager: either of the above

Admins always pass the ownership check.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from food_ordering.core.exceptions import AuthorizationError
from food_ordering.models import Role

logger = logging.getLogger(__name__)

INSUFFICIENT_ROLE = "insufficient role"
NOT_THE_OWNER = "not the owner"


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as carried by a verified token."""
    user_id: int
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class Resource:
    """Ownership facts about the target of an action."""
    kind: str
    owner_id: Optional[int] = None
    manager_id: Optional[int] = None

    @classmethod
    def user(cls, user_id: int) -> "Resource":
        return cls(kind="user", owner_id=user_id)

    @classmethod
    def restaurant(cls, owner_id: int) -> "Resource":
        return cls(kind="restaurant", owner_id=owner_id)

    @classmethod
    def order(cls, user_id: int, restaurant_owner_id: Optional[int]) -> "Resource":
        return cls(kind="order", owner_id=user_id, manager_id=restaurant_owner_id)


class Ownership(str, enum.Enum):
    NONE = "none"
    OWNER = "owner"
    MANAGER = "manager"
    OWNER_OR_MANAGER = "owner_or_manager"


class Action(str, enum.Enum):
    USER_LIST = "user.list"
    USER_READ = "user.read"
    USER_UPDATE = "user.update"
    USER_DELETE = "user.delete"
    USER_CHANGE_ROLE = "user.change_role"
    RESTAURANT_CREATE = "restaurant.create"
    RESTAURANT_UPDATE = "restaurant.update"
    RESTAURANT_DELETE = "restaurant.delete"
    MENU_CREATE = "menu.create"
    ORDER_READ = "order.read"
    ORDER_LIST_ALL = "order.list_all"
    ORDER_SET_STATUS = "order.set_status"
    ORDER_CANCEL = "order.cancel"


@dataclass(frozen=True)
class Policy:
    roles: Optional[frozenset[Role]] = None
    ownership: Ownership = Ownership.NONE


_ADMIN = frozenset({Role.ADMIN})
_STAFF = frozenset({Role.ADMIN, Role.RESTAURANT_OWNER})

POLICIES: dict[Action, Policy] = {
    Action.USER_LIST: Policy(roles=_ADMIN),
    Action.USER_READ: Policy(ownership=Ownership.OWNER),
    Action.USER_UPDATE: Policy(ownership=Ownership.OWNER),
    Action.USER_DELETE: Policy(ownership=Ownership.OWNER),
    Action.USER_CHANGE_ROLE: Policy(roles=_ADMIN),
    Action.RESTAURANT_CREATE: Policy(roles=_STAFF),
    Action.RESTAURANT_UPDATE: Policy(roles=_STAFF, ownership=Ownership.OWNER),
    Action.RESTAURANT_DELETE: Policy(roles=_STAFF, ownership=Ownership.OWNER),
    Action.MENU_CREATE: Policy(roles=_STAFF, ownership=Ownership.OWNER),
    Action.ORDER_READ: Policy(ownership=Ownership.OWNER_OR_MANAGER),
    Action.ORDER_LIST_ALL: Policy(roles=_STAFF),
    Action.ORDER_SET_STATUS: Policy(roles=_STAFF, ownership=Ownership.MANAGER),
    Action.ORDER_CANCEL: Policy(ownership=Ownership.OWNER),
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)


def _owns(identity: Identity, policy: Policy, resource: Optional[Resource]) -> bool:
    if policy.ownership == Ownership.NONE or identity.is_admin:
        return True
    if resource is None:
        return False

    is_owner = resource.owner_id is not None and resource.owner_id == identity.user_id
    is_manager = resource.manager_id is not None and resource.manager_id == identity.user_id

    if policy.ownership == Ownership.OWNER:
        return is_owner
    if policy.ownership == Ownership.MANAGER:
        return is_manager
    return is_owner or is_manager


def authorize_role(identity: Identity, action: Action) -> Decision:
    """Check only the role half of an action's policy."""
    policy = POLICIES[action]
    if policy.roles is not None and identity.role not in policy.roles:
        return Decision(allowed=False, reason=INSUFFICIENT_ROLE)
    return ALLOW


def authorize(
    identity: Identity,
    action: Action,
    resource: Optional[Resource] = None,
) -> Decision:
    """
    Decide whether ``identity`` may perform ``action`` on ``resource``.

    Args:
        identity: Verified caller
        action: The action being attempted
        resource: Ownership facts of the target; required for
            ownership-gated actions (a missing resource denies)

    Returns:
        Decision: allowed, or denied with a reason
    """
    decision = authorize_role(identity, action)
    if not decision:
        return decision

    if not _owns(identity, POLICIES[action], resource):
        return Decision(allowed=False, reason=NOT_THE_OWNER)

    return ALLOW


def _deny(identity: Identity, action: Action, decision: Decision) -> None:
    if not decision:
        logger.warning(
            f"Denied {action.value} for user #{identity.user_id} "
            f"({identity.role.value}): {decision.reason}"
        )
        raise AuthorizationError(f"Access denied: {decision.reason}")


def enforce_role(identity: Identity, action: Action) -> None:
    """Raise AuthorizationError unless the caller's role fits ``action``."""
    _deny(identity, action, authorize_role(identity, action))


def enforce(
    identity: Identity,
    action: Action,
    resource: Optional[Resource] = None,
) -> None:
    """
    Raise AuthorizationError unless ``authorize`` allows the action.

    Raises:
        AuthorizationError: 403 carrying the deny reason
    """
    _deny(identity, action, authorize(identity, action, resource))
