"""Business logic for item hierarchy operations.

Permission checks against a parent folder and the write of the child
are separate steps: if the parent's access list changes in between,
the child write still goes through. Versions are always computed from
a row re-read under ``select_for_update``; concurrent editors resolve
as last-writer-wins.
"""

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Final

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from server.apps.items.exceptions import StorageFailureError
from server.apps.items.infrastructure.storage import delete_blob
from server.apps.items.logic.access_operations import require_permission
from server.apps.items.logic.content_pipeline import (
    IncomingContent,
    ProcessedContent,
    discard_content,
    process_content,
)
from server.apps.items.models import AccessEntry, Item, ItemType, Permission

# User type for Django's dynamic user model
_User = Any

User = get_user_model()
logger = logging.getLogger(__name__)

_NAME_MAX_LENGTH: Final = 255
_PATH_SEPARATOR: Final = '/'
_PARENT_FIELD: Final = 'parent_folder_id'
_LINK_FIELD: Final = 'shared_link'

# Fields a caller may set on update; anything else is silently ignored
MUTABLE_FIELDS: Final = frozenset((
    'name',
    'description',
    'is_archived',
    'is_hidden',
    'custom_properties',
    'user_tags',
    _PARENT_FIELD,
    'is_encrypted',
    'compression_type',
    _LINK_FIELD,
))

# Fields a caller may set on create
CREATE_FIELDS: Final = frozenset((
    'name',
    'description',
    'is_hidden',
    'custom_properties',
    'user_tags',
    'is_encrypted',
    'compression_type',
    'original_location',
    'originating_device_id',
))


@dataclass(frozen=True, slots=True)
class DeletionReport:
    """Outcome of a hard delete.

    The metadata record is always gone once a report exists. Storage
    keys whose deletion failed are listed in ``orphaned_keys``.
    """

    item_id: int
    deleted_keys: list[str] = field(default_factory=list)
    orphaned_keys: list[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        """Whether every blob of the item was removed."""
        return not self.orphaned_keys


def get_item(item_id: int) -> Item:
    """Fetch an item with its access list.

    Args:
        item_id: ID of the item.

    Returns:
        Item instance with prefetched access entries.

    Raises:
        Item.DoesNotExist: If the item doesn't exist.
    """
    return Item.objects.prefetch_related('access_entries').get(pk=item_id)


def create_item(
    user: _User,
    attributes: Mapping[str, object],
    content: IncomingContent | None = None,
    parent_folder_id: int | None = None,
) -> Item:
    """Create a folder, or a file when content is supplied.

    For files the content pipeline runs before the record is built, so
    a file record is never persisted without its content fields. If the
    database write fails, the uploaded blobs are rolled back.

    Args:
        user: Acting user, becomes the owner.
        attributes: Initial attributes (see CREATE_FIELDS).
        content: Optional raw content.
        parent_folder_id: Folder to create the item in, None for root.

    Returns:
        Created Item instance.

    Raises:
        Item.DoesNotExist: If the parent folder doesn't exist.
        AccessDeniedError: If the user lacks write on the parent.
        ValidationError: If attributes are malformed or the parent
            is not a folder.
        StorageFailureError: If the content upload fails.
    """
    parent = None
    if parent_folder_id is not None:
        parent = _get_parent_folder(parent_folder_id, user)

    fields = clean_attributes(attributes, CREATE_FIELDS)
    if content is not None:
        original_name = clean_name(content.filename)
        fields.setdefault('name', original_name)
    elif 'name' in fields:
        original_name = fields['name']
    else:
        raise ValidationError('Folder name is required')

    processed = process_content(content) if content is not None else None

    now = timezone.now()
    item = Item(
        **fields,
        original_name=original_name,
        item_type=ItemType.FILE if processed else ItemType.FOLDER,
        parent_folder=parent,
        owner=user,
        last_modified_by=user,
        created_on=now,
        last_modified_on=now,
        version=1,
        is_archived=False,
    )
    if processed is not None:
        _apply_content(item, processed)

    try:
        with transaction.atomic():
            item.save()
    except Exception:
        logger.exception('Failed to create item record: %s', item.name)
        if processed is not None:
            discard_content(processed)
        raise

    logger.info(
        'Item created: %s (ID: %d, type: %s, parent: %s)',
        item.name,
        item.pk,
        item.item_type,
        parent_folder_id,
    )
    return item


def update_item(
    item_id: int,
    user: _User,
    patch: Mapping[str, object],
    content: IncomingContent | None = None,
) -> Item:
    """Apply allow-listed changes and optional new content.

    New content goes through the pipeline first; the previous blobs are
    deleted only after the record references the new content, so a
    failed pipeline never loses the prior file.

    Args:
        item_id: ID of item to update.
        user: Acting user.
        patch: Changes keyed by model field name (see MUTABLE_FIELDS).
        content: Optional replacement content (files only).

    Returns:
        Updated Item instance.

    Raises:
        Item.DoesNotExist: If the item or a new parent doesn't exist.
        AccessDeniedError: If the user lacks write on the item or on
            the new parent.
        ValidationError: If the patch is malformed, would create a
            cycle or reuses another item's shared link.
        StorageFailureError: If the new content upload fails.
    """
    item = get_item(item_id)
    require_permission(item, user, Permission.WRITE)

    changes = clean_attributes(patch, MUTABLE_FIELDS)
    if _PARENT_FIELD in changes:
        _check_move(item, changes[_PARENT_FIELD], user)
    if changes.get(_LINK_FIELD):
        _check_link_available(item_id, changes[_LINK_FIELD])
    if content is not None:
        if not item.is_file:
            raise ValidationError('Folders cannot hold content')
        original_name = clean_name(content.filename)

    processed = process_content(content) if content is not None else None

    try:
        with transaction.atomic():
            fresh = Item.objects.select_for_update().get(pk=item_id)
            replaced_keys = stored_keys(fresh) if processed else []
            # A new or cleared token never inherits the old expiry
            link_changed = (
                _LINK_FIELD in changes
                and changes[_LINK_FIELD] != fresh.shared_link
            )
            for field_name, field_value in changes.items():
                setattr(fresh, field_name, field_value)
            if link_changed:
                fresh.expiration_date = None
            if processed is not None:
                _apply_content(fresh, processed)
                fresh.original_name = original_name
            bump_version(fresh, user)
            fresh.save()
    except Exception:
        logger.exception('Failed to update item: ID=%d', item_id)
        if processed is not None:
            discard_content(processed)
        raise

    for key in replaced_keys:
        _delete_replaced_blob(item_id, key)

    logger.info(
        'Item updated: ID=%d, version=%d, fields=%s, content=%s',
        item_id,
        fresh.version,
        sorted(changes),
        processed is not None,
    )
    return fresh


def archive_item(item_id: int, user: _User) -> Item:
    """Archive an item (reversible soft removal, needs write).

    Args:
        item_id: ID of item to archive.
        user: Acting user.

    Returns:
        Updated Item instance.
    """
    return update_item(item_id, user, {'is_archived': True})


def restore_item(item_id: int, user: _User) -> Item:
    """Restore an archived item (needs write).

    Args:
        item_id: ID of item to restore.
        user: Acting user.

    Returns:
        Updated Item instance.
    """
    return update_item(item_id, user, {'is_archived': False})


def delete_item(item_id: int, user: _User) -> DeletionReport:
    """Permanently delete an item and its blobs (needs admin).

    Authority is per item: owning or administering an ancestor folder
    does not grant it. The metadata record is deleted first; blob
    deletion failures are logged and reported, not raised.

    Children of a deleted folder are left in place as an orphaned
    subtree.

    Args:
        item_id: ID of item to delete.
        user: Acting user.

    Returns:
        DeletionReport listing deleted and orphaned storage keys.

    Raises:
        Item.DoesNotExist: If the item doesn't exist.
        AccessDeniedError: If the user lacks admin on the item.
    """
    item = get_item(item_id)
    require_permission(item, user, Permission.ADMIN)
    keys = stored_keys(item)

    with transaction.atomic():
        item.delete()
    logger.info('Item record deleted: ID=%d', item_id)

    deleted_keys = []
    orphaned_keys = []
    for key in keys:
        try:
            delete_blob(key)
        except StorageFailureError:
            logger.exception(
                'Failed to delete content of item %d (orphaned): %s',
                item_id,
                key,
            )
            orphaned_keys.append(key)
        else:
            deleted_keys.append(key)

    return DeletionReport(
        item_id=item_id,
        deleted_keys=deleted_keys,
        orphaned_keys=orphaned_keys,
    )


def update_access(
    item_id: int,
    user: _User,
    target_user_id: int,
    permission: str,
) -> Item:
    """Grant or change a user's permission on an item (needs admin).

    Replaces the existing entry for the target user in place, otherwise
    appends a new one.

    Args:
        item_id: ID of item to share.
        user: Acting user.
        target_user_id: User receiving the permission.
        permission: 'read', 'write' or 'admin'.

    Returns:
        Updated Item instance with its access list.

    Raises:
        Item.DoesNotExist: If the item doesn't exist.
        AccessDeniedError: If the user lacks admin on the item.
        ValidationError: If the permission or target user is invalid.
    """
    item = get_item(item_id)
    require_permission(item, user, Permission.ADMIN)

    if permission not in Permission.values:
        raise ValidationError(
            f'Unknown permission: {permission!r}',
            code='invalid_permission',
        )
    if not User.objects.filter(pk=target_user_id).exists():
        raise ValidationError(
            f'Unknown user: {target_user_id}',
            code='invalid_user',
        )

    with transaction.atomic():
        fresh = Item.objects.select_for_update().get(pk=item_id)
        AccessEntry.objects.update_or_create(
            item=fresh,
            user_id=target_user_id,
            defaults={'permission': permission},
        )
        bump_version(fresh, user)
        fresh.save(update_fields=[
            'version',
            'last_modified_on',
            'last_modified_by',
        ])

    logger.info(
        'Access updated: item=%d user=%d permission=%s',
        item_id,
        target_user_id,
        permission,
    )
    return get_item(item_id)


def touch_access_time(item_id: int, user: _User) -> Item:
    """Record that the user opened an item (needs read).

    Read-path side effect: the version is not bumped.

    Args:
        item_id: ID of item accessed.
        user: Acting user.

    Returns:
        Item instance with the new last access time.
    """
    item = get_item(item_id)
    require_permission(item, user, Permission.READ)

    now = timezone.now()
    Item.objects.filter(pk=item.pk).update(last_accessed_on=now)
    item.last_accessed_on = now
    return item


def iter_ancestors(item: Item) -> Iterator[Item]:
    """Walk parent references upwards, nearest ancestor first.

    Stops at a missing parent (orphaned subtree) and at an ID seen
    before, so the walk terminates even on corrupt data.

    Args:
        item: Item to start from (not yielded).

    Yields:
        Ancestor folders.
    """
    visited = {item.pk}
    parent_id = item.parent_folder_id
    while parent_id is not None and parent_id not in visited:
        parent = Item.objects.filter(pk=parent_id).first()
        if parent is None:
            logger.warning(
                'Parent %d of item %d is missing, path truncated',
                parent_id,
                item.pk,
            )
            return
        visited.add(parent_id)
        yield parent
        parent_id = parent.parent_folder_id


def build_full_path(item: Item) -> str:
    """Join names from the root down to the item with '/'.

    Args:
        item: Item to build the path for.

    Returns:
        Path like 'root/child/grandchild'.
    """
    names = [item.name]
    names.extend(ancestor.name for ancestor in iter_ancestors(item))
    return _PATH_SEPARATOR.join(reversed(names))


def get_full_path(item_id: int) -> str:
    """Build the full path of an item by ID.

    Raises:
        Item.DoesNotExist: If the item doesn't exist.
    """
    return build_full_path(Item.objects.get(pk=item_id))


def stored_keys(item: Item) -> list[str]:
    """Storage keys referenced by an item (content and thumbnail)."""
    return [
        stored_file.name
        for stored_file in (item.content, item.thumbnail)
        if stored_file
    ]


def clean_attributes(
    attributes: Mapping[str, object],
    allowed: frozenset[str],
) -> dict[str, object]:
    """Validate allow-listed attributes and drop everything else.

    Args:
        attributes: Raw attributes keyed by model field name.
        allowed: Field names the operation accepts.

    Returns:
        Cleaned values for the allowed fields present.

    Raises:
        ValidationError: If any allowed value is malformed.
    """
    cleaned = {}
    for field_name, raw_value in attributes.items():
        if field_name not in allowed:
            logger.debug('Ignoring non-editable field: %s', field_name)
            continue
        cleaned[field_name] = _VALIDATORS[field_name](raw_value)
    return cleaned


def clean_name(raw_value: object) -> str:
    """Validate an item name.

    Names are path segments, so they cannot be empty or contain '/'.

    Raises:
        ValidationError: If the name is invalid.
    """
    if not isinstance(raw_value, str) or not raw_value.strip():
        raise ValidationError('Name must be a non-empty string')
    name = raw_value.strip()
    if len(name) > _NAME_MAX_LENGTH:
        raise ValidationError(
            f'Name is longer than {_NAME_MAX_LENGTH} characters',
        )
    if _PATH_SEPARATOR in name:
        raise ValidationError(f'Name cannot contain {_PATH_SEPARATOR!r}')
    return name


def _clean_text(raw_value: object) -> str:
    if raw_value is None:
        return ''
    if not isinstance(raw_value, str):
        raise ValidationError('Expected a string')
    return raw_value


def _clean_bool(raw_value: object) -> bool:
    if not isinstance(raw_value, bool):
        raise ValidationError('Expected a boolean')
    return raw_value


def _clean_properties(raw_value: object) -> dict[str, object]:
    if not isinstance(raw_value, dict):
        raise ValidationError('Custom properties must be an object')
    if not all(isinstance(key, str) for key in raw_value):
        raise ValidationError('Custom property keys must be strings')
    return raw_value


def _clean_tags(raw_value: object) -> list[str]:
    if not isinstance(raw_value, list | tuple):
        raise ValidationError('Tags must be a list')
    if not all(isinstance(tag, str) for tag in raw_value):
        raise ValidationError('Tags must be strings')
    # Preserve order, drop duplicates
    return list(dict.fromkeys(tag.strip() for tag in raw_value if tag.strip()))


def _clean_parent_id(raw_value: object) -> int | None:
    if raw_value is None:
        return None
    if isinstance(raw_value, bool) or not isinstance(raw_value, int):
        raise ValidationError('Parent folder ID must be an integer')
    return raw_value


def _clean_shared_link(raw_value: object) -> str | None:
    if raw_value is None:
        return None
    if not isinstance(raw_value, str):
        raise ValidationError('Shared link must be a string')
    return raw_value.strip() or None


_VALIDATORS: Final[Mapping[str, Callable[[object], object]]] = {
    'name': clean_name,
    'description': _clean_text,
    'is_archived': _clean_bool,
    'is_hidden': _clean_bool,
    'is_encrypted': _clean_bool,
    'custom_properties': _clean_properties,
    'user_tags': _clean_tags,
    'compression_type': _clean_text,
    'original_location': _clean_text,
    'originating_device_id': _clean_text,
    _PARENT_FIELD: _clean_parent_id,
    _LINK_FIELD: _clean_shared_link,
}


def _get_parent_folder(parent_id: int, user: _User) -> Item:
    """Fetch a folder the user may write into.

    Raises:
        Item.DoesNotExist: If the parent doesn't exist.
        AccessDeniedError: If the user lacks write on the parent.
        ValidationError: If the parent is not a folder.
    """
    parent = get_item(parent_id)
    require_permission(parent, user, Permission.WRITE)
    if not parent.is_folder:
        raise ValidationError(
            f'Parent {parent_id} is not a folder',
            code='parent_not_folder',
        )
    return parent


def _check_move(item: Item, new_parent_id: int | None, user: _User) -> None:
    """Validate a change of parent folder.

    Raises:
        Item.DoesNotExist: If the new parent doesn't exist.
        AccessDeniedError: If the user lacks write on the new parent.
        ValidationError: If the move would create a cycle.
    """
    if new_parent_id is None or new_parent_id == item.parent_folder_id:
        return
    if new_parent_id == item.pk:
        raise ValidationError('An item cannot be its own parent', code='cycle')

    new_parent = _get_parent_folder(new_parent_id, user)
    if any(
        ancestor.pk == item.pk
        for ancestor in iter_ancestors(new_parent)
    ):
        raise ValidationError(
            f'Cannot move item {item.pk} into its own descendant',
            code='cycle',
        )


def _check_link_available(item_id: int, token: str) -> None:
    """Reject a shared link token already used by another item.

    Raises:
        ValidationError: If the token is taken.
    """
    taken = Item.objects.filter(shared_link=token).exclude(pk=item_id)
    if taken.exists():
        raise ValidationError(
            'Shared link is already in use',
            code='shared_link_taken',
        )


def _apply_content(item: Item, processed: ProcessedContent) -> None:
    item.content.name = processed.content_key
    item.thumbnail.name = processed.thumbnail_key or ''
    item.mime_type = processed.mime_type
    item.extension = processed.extension
    item.size_bytes = processed.size_bytes
    item.checksum_sha256 = processed.checksum
    item.metadata = processed.metadata
    item.internal_tags = processed.internal_tags
    item.file_created_on = processed.file_created_on
    item.file_modified_on = processed.file_modified_on


def bump_version(item: Item, user: _User) -> None:
    """Record a mutating update: version +1 and modification metadata."""
    item.version += 1
    item.last_modified_on = timezone.now()
    item.last_modified_by = user


def _delete_replaced_blob(item_id: int, key: str) -> None:
    # The record already points at the new content
    try:
        delete_blob(key)
    except StorageFailureError:
        logger.exception(
            'Failed to delete replaced content of item %d (orphaned): %s',
            item_id,
            key,
        )
