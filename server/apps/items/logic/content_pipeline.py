"""Business logic for turning uploaded bytes into stored content.

The pipeline runs the steps below in order:

1. Compute size and SHA256 checksum of the content.
2. Extract embedded metadata from any format Pillow decodes (degrades
   to an empty map and now()).
3. Upload the raw content under a fresh unique key (fatal on failure).
4. Render and upload a thumbnail for images (degrades to no thumbnail).
5. Derive internal tags from MIME type and extension.

Only the content upload may abort the owning create/update.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.base import File as DjangoFile
from django.utils import timezone
from PIL import UnidentifiedImageError

from server.apps.items.exceptions import StorageFailureError
from server.apps.items.infrastructure.metadata import (
    EmbeddedMetadata,
    calculate_checksum,
    derive_internal_tags,
    extract_embedded_metadata,
    generate_content_key,
    generate_thumbnail_key,
    get_file_extension,
    is_image,
    resolve_mime_type,
)
from server.apps.items.infrastructure.storage import (
    get_storage,
    upload_blob,
)
from server.apps.items.infrastructure.thumbnails import render_thumbnail

logger = logging.getLogger(__name__)

_THUMBNAIL_MIME_TYPE = 'image/jpeg'


@dataclass(frozen=True, slots=True)
class IncomingContent:
    """Raw content as received from the client."""

    file_obj: BinaryIO | DjangoFile
    filename: str
    mime_type: str | None = None


@dataclass(frozen=True, slots=True)
class ProcessedContent:
    """Everything derived from one piece of uploaded content."""

    content_key: str
    mime_type: str
    extension: str
    size_bytes: int
    checksum: str
    thumbnail_key: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)
    internal_tags: list[str] = field(default_factory=list)
    file_created_on: datetime | None = None
    file_modified_on: datetime | None = None

    @property
    def stored_keys(self) -> list[str]:
        """Storage keys written by the pipeline."""
        if self.thumbnail_key:
            return [self.content_key, self.thumbnail_key]
        return [self.content_key]


def process_content(incoming: IncomingContent) -> ProcessedContent:
    """Run the content pipeline.

    Args:
        incoming: Raw content with its filename and declared MIME type.

    Returns:
        ProcessedContent with storage keys and derived fields.

    Raises:
        StorageFailureError: If the mandatory content upload fails.
    """
    file_obj = incoming.file_obj
    mime_type = resolve_mime_type(
        file_obj,  # type: ignore[arg-type]
        incoming.filename,
        incoming.mime_type,
    )
    extension = get_file_extension(incoming.filename)

    # Derived from the bytes before upload, the backend may close the file
    size_bytes = _get_file_size(file_obj)
    checksum = calculate_checksum(file_obj)  # type: ignore[arg-type]
    raw = _read_all(file_obj) if is_image(mime_type) else b''
    embedded = _extract_metadata(file_obj, incoming.filename)

    # Mandatory upload
    content_key = upload_blob(
        generate_content_key(incoming.filename),
        file_obj,
        mime_type,
    )

    thumbnail_key = None
    if raw:
        thumbnail_key = _upload_thumbnail(raw, incoming.filename)

    now = timezone.now()

    processed = ProcessedContent(
        content_key=content_key,
        mime_type=mime_type,
        extension=extension,
        size_bytes=size_bytes,
        checksum=checksum,
        thumbnail_key=thumbnail_key,
        metadata=embedded.values,
        internal_tags=derive_internal_tags(mime_type, extension),
        file_created_on=embedded.created_on or now,
        file_modified_on=embedded.modified_on or now,
    )
    logger.info(
        'Content processed: %s -> %s (thumbnail: %s)',
        incoming.filename,
        content_key,
        thumbnail_key,
    )
    return processed


def discard_content(processed: ProcessedContent) -> None:
    """Best-effort removal of blobs written by a pipeline run.

    Used when the database write that should reference the content
    fails afterwards.

    Args:
        processed: Pipeline result whose blobs should be removed.
    """
    storage = get_storage()
    for key in processed.stored_keys:
        storage.rollback_upload(key)


def _upload_thumbnail(raw: bytes, filename: str) -> str | None:
    try:
        thumbnail = render_thumbnail(
            raw,
            max_size=settings.ITEMS_THUMBNAIL_SIZE,
            quality=settings.ITEMS_THUMBNAIL_QUALITY,
        )
    except Exception:
        logger.exception('Thumbnail rendering failed: %s', filename)
        return None

    try:
        return upload_blob(
            generate_thumbnail_key(),
            ContentFile(thumbnail),
            _THUMBNAIL_MIME_TYPE,
        )
    except StorageFailureError:
        logger.exception('Thumbnail upload failed: %s', filename)
        return None


def _extract_metadata(
    file_obj: BinaryIO | DjangoFile,
    filename: str,
) -> EmbeddedMetadata:
    file_obj.seek(0)
    try:
        return extract_embedded_metadata(file_obj)  # type: ignore[arg-type]
    except UnidentifiedImageError:
        logger.debug('No embedded metadata format recognized: %s', filename)
        return EmbeddedMetadata()
    except Exception:
        logger.exception('Metadata extraction failed: %s', filename)
        return EmbeddedMetadata()
    finally:
        file_obj.seek(0)


def _read_all(file_obj: BinaryIO | DjangoFile) -> bytes:
    file_obj.seek(0)
    raw = file_obj.read()
    file_obj.seek(0)
    return raw


def _get_file_size(file_obj: BinaryIO | DjangoFile) -> int:
    """Get file size from file object.

    Args:
        file_obj: File-like object.

    Returns:
        File size in bytes.
    """
    if hasattr(file_obj, 'size'):
        return file_obj.size
    file_obj.seek(0)
    file_size = len(file_obj.read())
    file_obj.seek(0)
    return file_size
