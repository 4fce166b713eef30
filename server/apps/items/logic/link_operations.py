"""Business logic for time-limited public links."""

import logging
import secrets
from datetime import datetime
from typing import Any, Final

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from server.apps.items.logic.access_operations import require_permission
from server.apps.items.logic.item_operations import bump_version, get_item
from server.apps.items.logic.listing_operations import (
    ListedItem,
    signed_url_for,
)
from server.apps.items.models import Item, Permission

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)

# Token entropy in bytes (urlsafe encoding yields 43 chars)
_TOKEN_BYTES: Final = 32

_LINK_FIELDS: Final = (
    'shared_link',
    'expiration_date',
    'version',
    'last_modified_on',
    'last_modified_by',
)


def is_link_valid(item: Item, now: datetime | None = None) -> bool:
    """Check whether an item's shared link currently grants access.

    Expiry is evaluated here, at read time; expired tokens are never
    purged in advance.

    Args:
        item: Item to check.
        now: Reference time, current time when None.

    Returns:
        True if a link is set and has no expiry or expires strictly
        after now.
    """
    if not item.shared_link:
        return False
    if item.expiration_date is None:
        return True
    return item.expiration_date > (now or timezone.now())


def create_shared_link(
    item_id: int,
    user: _User,
    expiration_date: datetime | None = None,
) -> Item:
    """Issue a fresh unguessable link for an item (needs write).

    Any previous link is replaced.

    Args:
        item_id: ID of item to share.
        user: Acting user.
        expiration_date: When the link stops working, None for never.

    Returns:
        Updated Item instance.

    Raises:
        Item.DoesNotExist: If the item doesn't exist.
        AccessDeniedError: If the user lacks write on the item.
        ValidationError: If the expiration date is not in the future.
    """
    item = get_item(item_id)
    require_permission(item, user, Permission.WRITE)

    if expiration_date is not None:
        if timezone.is_naive(expiration_date):
            expiration_date = timezone.make_aware(expiration_date)
        if expiration_date <= timezone.now():
            raise ValidationError('Expiration date must be in the future')

    token = secrets.token_urlsafe(_TOKEN_BYTES)
    fresh = _set_link(item_id, user, token, expiration_date)
    logger.info(
        'Shared link created: item=%d expires=%s',
        item_id,
        expiration_date,
    )
    return fresh


def remove_shared_link(item_id: int, user: _User) -> Item:
    """Revoke an item's shared link (needs write).

    Args:
        item_id: ID of the shared item.
        user: Acting user.

    Returns:
        Updated Item instance.

    Raises:
        Item.DoesNotExist: If the item doesn't exist.
        AccessDeniedError: If the user lacks write on the item.
    """
    item = get_item(item_id)
    require_permission(item, user, Permission.WRITE)

    fresh = _set_link(item_id, user, None, None)
    logger.info('Shared link removed: item=%d', item_id)
    return fresh


def get_item_by_link(token: str) -> ListedItem:
    """Resolve a shared link for anonymous retrieval.

    Args:
        token: Link token.

    Returns:
        The shared item with a signed URL for files.

    Raises:
        Item.DoesNotExist: If no item has the token or the link expired.
        StorageFailureError: If a signed URL cannot be generated.
    """
    item = Item.objects.filter(shared_link=token).first() if token else None
    if item is None or not is_link_valid(item):
        logger.info('Rejected shared link lookup')
        raise Item.DoesNotExist('Shared link not found or expired')
    return ListedItem(item=item, signed_url=signed_url_for(item))


def _set_link(
    item_id: int,
    user: _User,
    token: str | None,
    expiration_date: datetime | None,
) -> Item:
    with transaction.atomic():
        fresh = Item.objects.select_for_update().get(pk=item_id)
        fresh.shared_link = token
        fresh.expiration_date = expiration_date
        bump_version(fresh, user)
        fresh.save(update_fields=_LINK_FIELDS)
    return fresh
