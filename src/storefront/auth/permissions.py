"""
Permission labels and authorization guards for the storefront.

This module provides:
- The closed set of permission labels a user can hold
- Which permissions unlock which privileged mutations
- Guard functions that raise when a caller may not proceed

Guards are pure predicates evaluated fresh on every call.
"""

from enum import Enum
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Optional

from loguru import logger

from ..errors import AuthenticationError, AuthorizationError, ValidationError

if TYPE_CHECKING:
    from ..context import RequestContext
    from ..models import User


class Permission(str, Enum):
    """
    Enum of all permission labels.

    Values match the names stored on the user record.
    """
    ADMIN = "ADMIN"
    USER = "USER"
    ITEMCREATE = "ITEMCREATE"
    ITEMUPDATE = "ITEMUPDATE"
    ITEMDELETE = "ITEMDELETE"
    PERMISSIONUPDATE = "PERMISSIONUPDATE"


# Permissions granted to every new account
DEFAULT_PERMISSIONS: List[Permission] = [Permission.USER]

# Map privileged mutations to the permissions that unlock them
MUTATION_PERMISSIONS: Dict[str, FrozenSet[Permission]] = {
    "deleteItem": frozenset({Permission.ADMIN, Permission.ITEMDELETE}),
    "updatePermissions": frozenset({Permission.ADMIN, Permission.PERMISSIONUPDATE}),
    "users": frozenset({Permission.ADMIN, Permission.PERMISSIONUPDATE}),
}


def parse_permissions(names: Iterable[str]) -> List[Permission]:
    """
    Convert permission names to Permission values, keeping order.

    Duplicates are dropped.

    Raises:
        ValidationError: If a name is not a known permission
    """
    parsed: List[Permission] = []
    for name in names:
        try:
            permission = Permission(name)
        except ValueError:
            raise ValidationError(f"Unknown permission: {name}") from None
        if permission not in parsed:
            parsed.append(permission)
    return parsed


def has_permission(user: "User", allowed: Iterable[Permission]) -> bool:
    """
    Check whether the user holds at least one of the allowed permissions.

    Args:
        user: User to check
        allowed: Permissions that would grant access

    Returns:
        bool: True if the two sets intersect
    """
    return bool(set(user.permissions) & set(allowed))


def require_authenticated(ctx: "RequestContext") -> str:
    """
    Require a logged-in caller.

    Returns:
        str: The caller's user id

    Raises:
        AuthenticationError: If no valid session is attached to the request
    """
    if not ctx.caller_id:
        raise AuthenticationError("You must be logged in to do that!")
    return ctx.caller_id


def require_permission(user: "User", allowed: Iterable[Permission]) -> None:
    """
    Require one of the allowed permissions.

    Raises:
        AuthorizationError: If the user's permissions don't intersect allowed
    """
    allowed = frozenset(allowed)
    if not has_permission(user, allowed):
        required = ", ".join(sorted(p.value for p in allowed))
        held = ", ".join(p.value for p in user.permissions) or "none"
        logger.warning(f"Permission denied for user {user.id}: requires one of {required}")
        raise AuthorizationError(
            f"You do not have sufficient permissions: {required}. You have: {held}"
        )


def require_owner_or_permission(
    user: "User",
    owner_id: str,
    allowed: Optional[Iterable[Permission]] = None,
) -> None:
    """
    Require that the user owns the resource or holds an allowed permission.

    Args:
        user: Acting user
        owner_id: Owner of the resource being acted on
        allowed: Permissions that override ownership; None means owner only

    Raises:
        AuthorizationError: If neither condition holds
    """
    if user.id == owner_id:
        return
    if allowed is None:
        logger.warning(f"User {user.id} denied access to resource owned by {owner_id}")
        raise AuthorizationError("You do not own that!")
    require_permission(user, allowed)
