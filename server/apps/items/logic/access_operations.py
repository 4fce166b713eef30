"""Business logic for resolving effective permissions."""

import logging
from typing import TYPE_CHECKING, Final

from server.apps.items.exceptions import AccessDeniedError
from server.apps.items.models import Item, Permission

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser, AnonymousUser

logger = logging.getLogger(__name__)

NO_PERMISSION: Final = 'none'

_PERMISSION_RANK: Final = {
    NO_PERMISSION: 0,
    Permission.READ.value: 1,
    Permission.WRITE.value: 2,
    Permission.ADMIN.value: 3,
}


def resolve_permission(item: Item, user_id: int | None) -> str:
    """Compute the effective permission of a user on an item.

    The owner always holds admin. Anyone else holds exactly the
    permission of their access entry, or none without one. Permissions
    are never inherited from ancestor folders.

    Uses the prefetched access list when available, so resolving for
    many items in a listing does not hit the database per item.

    Args:
        item: Item to resolve against.
        user_id: Acting user ID (None for anonymous).

    Returns:
        One of 'none', 'read', 'write', 'admin'.
    """
    if user_id is None:
        return NO_PERMISSION
    if item.owner_id == user_id:
        return Permission.ADMIN.value

    for entry in item.access_entries.all():
        if entry.user_id == user_id:
            return entry.permission
    return NO_PERMISSION


def permission_rank(permission: str) -> int:
    """Position of a permission in the total order none < read < write < admin."""
    return _PERMISSION_RANK[permission]


def has_at_least(item: Item, user_id: int | None, required: str) -> bool:
    """Check whether the user's effective permission meets a minimum.

    Args:
        item: Item to check.
        user_id: Acting user ID.
        required: Minimum permission ('read', 'write' or 'admin').

    Returns:
        True if resolved permission >= required.
    """
    actual = resolve_permission(item, user_id)
    return permission_rank(actual) >= permission_rank(required)


def require_permission(
    item: Item,
    user: 'AbstractBaseUser | AnonymousUser',
    required: str,
) -> str:
    """Ensure the user holds at least the required permission.

    Args:
        item: Item the operation targets.
        user: Acting user.
        required: Minimum permission.

    Returns:
        The resolved permission.

    Raises:
        AccessDeniedError: If the resolved permission is insufficient.
    """
    actual = resolve_permission(item, user.pk)
    if permission_rank(actual) < permission_rank(required):
        logger.warning(
            'Access denied: user=%s item=%d required=%s actual=%s',
            user.pk,
            item.pk,
            required,
            actual,
        )
        raise AccessDeniedError(
            item_id=item.pk,
            user_id=user.pk,
            required=required,
            actual=actual,
        )
    return actual
