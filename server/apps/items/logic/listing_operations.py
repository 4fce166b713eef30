"""Business logic for listing and fetching items."""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Final

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models import Q, QuerySet

from server.apps.items.infrastructure.storage import get_signed_url
from server.apps.items.logic.access_operations import require_permission
from server.apps.items.logic.item_operations import build_full_path, get_item
from server.apps.items.models import AccessEntry, Item, ItemType, Permission

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)

SORTABLE_FIELDS: Final = frozenset((
    'name',
    'created_on',
    'last_modified_on',
    'size_bytes',
    'item_type',
    'version',
    'file_created_on',
    'last_accessed_on',
))
SORT_ORDERS: Final = frozenset(('asc', 'desc'))
_DEFAULT_SORT_FIELD: Final = 'name'
_DEFAULT_SORT_ORDER: Final = 'asc'


@dataclass(frozen=True, slots=True)
class ItemFilters:
    """Optional listing filters.

    ``parent_folder_id`` of None restricts the listing to root-level
    items; there is no "any parent" mode.
    """

    parent_folder_id: int | None = None
    search: str = ''
    start_date: datetime | None = None
    end_date: datetime | None = None
    item_type: str | None = None
    owner_id: int | None = None


@dataclass(frozen=True, slots=True)
class ListedItem:
    """An item with its per-response signed URL (files only)."""

    item: Item
    signed_url: str | None = None


@dataclass(frozen=True, slots=True)
class ItemPage:
    """One page of listing results."""

    items: list[ListedItem]
    page: int
    total_pages: int
    total_items: int
    page_size: int


@dataclass(frozen=True, slots=True)
class ItemDetail:
    """A single item as seen by a specific user."""

    item: Item
    permission: str
    is_owner: bool
    full_path: str
    signed_url: str | None = None


def visible_items(user: _User) -> QuerySet[Item]:
    """Items the user owns or holds an access entry on.

    Args:
        user: Acting user.

    Returns:
        QuerySet scoped to the user's visibility.
    """
    shared_ids = AccessEntry.objects.filter(user=user).values('item_id')
    return Item.objects.filter(Q(owner=user) | Q(pk__in=shared_ids))


def signed_url_for(item: Item) -> str | None:
    """Fresh signed retrieval URL for a file, None for folders.

    Raises:
        StorageFailureError: If signing fails.
    """
    if not item.is_file or not item.content:
        return None
    return get_signed_url(
        item.content.name,
        expire=settings.ITEMS_SIGNED_URL_EXPIRY,
    )


def list_items(  # noqa: WPS211
    user: _User,
    filters: ItemFilters | None = None,
    page: int = 1,
    page_size: int | None = None,
    sort_by: str = _DEFAULT_SORT_FIELD,
    sort_order: str = _DEFAULT_SORT_ORDER,
) -> ItemPage:
    """List items visible to the user, filtered, sorted and paginated.

    The visibility scope is always applied. Files get a freshly signed
    retrieval URL, computed per call and never persisted.

    Args:
        user: Acting user.
        filters: Optional filters, root level when omitted.
        page: 1-based page number.
        page_size: Items per page, settings default when None.
        sort_by: Model field to sort by (see SORTABLE_FIELDS).
        sort_order: 'asc' or 'desc'.

    Returns:
        ItemPage with results and pagination metadata.

    Raises:
        ValidationError: If pagination, sorting or filters are invalid.
        StorageFailureError: If a signed URL cannot be generated.
    """
    filters = filters or ItemFilters()
    if page_size is None:
        page_size = settings.ITEMS_DEFAULT_PAGE_SIZE
    _validate_listing(filters, page, page_size, sort_by, sort_order)

    queryset = _apply_filters(visible_items(user), filters)
    total_items = queryset.count()

    ordering = sort_by if sort_order == 'asc' else f'-{sort_by}'
    offset = (page - 1) * page_size
    page_items = queryset.order_by(ordering, 'pk').prefetch_related(
        'access_entries',
    )[offset:offset + page_size]

    listed = [
        ListedItem(item=item, signed_url=signed_url_for(item))
        for item in page_items
    ]
    logger.debug(
        'Listed %d of %d items for user %s (page %d)',
        len(listed),
        total_items,
        user.pk,
        page,
    )
    return ItemPage(
        items=listed,
        page=page,
        total_pages=math.ceil(total_items / page_size),
        total_items=total_items,
        page_size=page_size,
    )


def get_item_detail(item_id: int, user: _User) -> ItemDetail:
    """Fetch one item with the caller's permission and full path.

    Args:
        item_id: ID of the item.
        user: Acting user.

    Returns:
        ItemDetail for the caller.

    Raises:
        Item.DoesNotExist: If the item doesn't exist.
        AccessDeniedError: If the caller has no permission at all.
        StorageFailureError: If a signed URL cannot be generated.
    """
    item = get_item(item_id)
    permission = require_permission(item, user, Permission.READ)
    return ItemDetail(
        item=item,
        permission=permission,
        is_owner=item.owner_id == user.pk,
        full_path=build_full_path(item),
        signed_url=signed_url_for(item),
    )


def _validate_listing(
    filters: ItemFilters,
    page: int,
    page_size: int,
    sort_by: str,
    sort_order: str,
) -> None:
    if page < 1:
        raise ValidationError('Page must be at least 1')
    if not 1 <= page_size <= settings.ITEMS_MAX_PAGE_SIZE:
        raise ValidationError(
            f'Page size must be between 1 and {settings.ITEMS_MAX_PAGE_SIZE}',
        )
    if sort_by not in SORTABLE_FIELDS:
        raise ValidationError(f'Cannot sort by {sort_by!r}')
    if sort_order not in SORT_ORDERS:
        raise ValidationError(f'Unknown sort order {sort_order!r}')
    if filters.item_type is not None and filters.item_type not in ItemType.values:
        raise ValidationError(f'Unknown item type {filters.item_type!r}')
    if (
        filters.start_date is not None
        and filters.end_date is not None
        and filters.start_date > filters.end_date
    ):
        raise ValidationError('Start date is after end date')


def _apply_filters(
    queryset: QuerySet[Item],
    filters: ItemFilters,
) -> QuerySet[Item]:
    if filters.parent_folder_id is None:
        queryset = queryset.filter(parent_folder__isnull=True)
    else:
        queryset = queryset.filter(parent_folder_id=filters.parent_folder_id)

    if filters.search:
        queryset = queryset.filter(
            Q(name__icontains=filters.search)
            | Q(description__icontains=filters.search),
        )
    if filters.start_date is not None:
        queryset = queryset.filter(created_on__gte=filters.start_date)
    if filters.end_date is not None:
        queryset = queryset.filter(created_on__lte=filters.end_date)
    if filters.item_type is not None:
        queryset = queryset.filter(item_type=filters.item_type)
    if filters.owner_id is not None:
        queryset = queryset.filter(owner_id=filters.owner_id)
    return queryset
