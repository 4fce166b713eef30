"""JSON representation of items for the HTTP layer."""

from datetime import datetime
from typing import Any

from server.apps.items.logic.item_operations import DeletionReport
from server.apps.items.logic.link_operations import is_link_valid
from server.apps.items.logic.listing_operations import (
    ItemDetail,
    ItemPage,
    ListedItem,
)
from server.apps.items.models import Item


def serialize_item(
    item: Item,
    signed_url: str | None = None,
) -> dict[str, Any]:
    """Serialize an item with camelCase keys.

    An expired shared link is reported as absent.

    Args:
        item: Item to serialize.
        signed_url: Transient retrieval URL for files.

    Returns:
        JSON-compatible dictionary.
    """
    link_valid = is_link_valid(item)
    payload: dict[str, Any] = {
        'id': item.pk,
        'name': item.name,
        'originalName': item.original_name,
        'type': item.item_type,
        'description': item.description,
        'contentRef': item.content.name or None,
        'thumbnailRef': item.thumbnail.name or None,
        'extension': item.extension or None,
        'mimeType': item.mime_type or None,
        'size': item.size_bytes,
        'metadata': item.metadata,
        'checksumHash': item.checksum_sha256 or None,
        'compressionType': item.compression_type or None,
        'isEncrypted': item.is_encrypted,
        'parentFolderId': item.parent_folder_id,
        'originalLocation': item.original_location or None,
        'originatingDeviceId': item.originating_device_id or None,
        'internalTags': item.internal_tags,
        'userTags': item.user_tags,
        'createdOn': _isoformat(item.created_on),
        'lastModifiedOn': _isoformat(item.last_modified_on),
        'fileCreatedOn': _isoformat(item.file_created_on),
        'fileModifiedOn': _isoformat(item.file_modified_on),
        'lastAccessedOn': _isoformat(item.last_accessed_on),
        'lastModifiedBy': item.last_modified_by_id,
        'owner': item.owner_id,
        'version': item.version,
        'isArchived': item.is_archived,
        'isHidden': item.is_hidden,
        'customProperties': item.custom_properties,
        'access': [
            {'user': entry.user_id, 'permission': entry.permission}
            for entry in item.access_entries.all()
        ],
        'sharedLink': item.shared_link if link_valid else None,
        'expirationDate': (
            _isoformat(item.expiration_date) if link_valid else None
        ),
    }
    if signed_url is not None:
        payload['signedUrl'] = signed_url
    return payload


def serialize_listed(listed: ListedItem) -> dict[str, Any]:
    """Serialize a listing entry."""
    return serialize_item(listed.item, signed_url=listed.signed_url)


def serialize_detail(detail: ItemDetail) -> dict[str, Any]:
    """Serialize a single-item fetch with caller-specific fields."""
    payload = serialize_item(detail.item, signed_url=detail.signed_url)
    payload['isOwner'] = detail.is_owner
    payload['userPermission'] = detail.permission
    payload['fullPath'] = detail.full_path
    return payload


def serialize_page(page: ItemPage) -> dict[str, Any]:
    """Serialize a listing page with pagination metadata."""
    return {
        'items': [serialize_listed(listed) for listed in page.items],
        'page': page.page,
        'totalPages': page.total_pages,
        'totalItems': page.total_items,
        'pageSize': page.page_size,
    }


def serialize_deletion(report: DeletionReport) -> dict[str, Any]:
    """Serialize the outcome of a hard delete."""
    if report.is_clean:
        message = 'Item deleted successfully'
    else:
        message = 'Item deleted, some stored content could not be removed'
    return {
        'message': message,
        'id': report.item_id,
        'orphanedContent': report.orphaned_keys,
    }


def _isoformat(timestamp: datetime | None) -> str | None:
    if timestamp is None:
        return None
    return timestamp.isoformat()
