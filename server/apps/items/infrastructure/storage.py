"""Blob store gateway for S3-compatible storage.

Business logic talks to storage only through the module-level
functions below. They translate every backend error into
``StorageFailureError`` so callers never depend on boto3 exceptions.
"""

import logging
from typing import Any, BinaryIO, final

from typing_extensions import override

from django.core.files.base import File as DjangoFile
from django.core.files.storage import default_storage
from storages.backends.s3 import S3Storage

from server.apps.items.exceptions import StorageFailureError

logger = logging.getLogger(__name__)


@final
class ItemStorage(S3Storage):
    """Custom S3 storage backend for item content.

    Extends django-storages S3Storage with:
    - Rollback support for failed DB operations
    - Enhanced error logging
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save content to S3 with error handling and logging.

        Args:
            name: Storage key for the content.
            content: File content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            Actual storage key used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading content to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded content: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload content to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete content from S3 with error handling and logging.

        Args:
            name: Storage key of the content to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting content from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted content: %s', name)
        except Exception:
            logger.exception('Failed to delete content from storage: %s', name)
            raise

    def rollback_upload(self, name: str) -> None:
        """Delete uploaded content for DB transaction rollback.

        This method is called when a database write fails after the
        content has been uploaded to S3. It attempts to delete the
        object to maintain consistency.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised, as the DB rollback has already occurred.

        Args:
            name: Storage key of the content to delete.
        """
        try:
            logger.warning('Rolling back upload, deleting content: %s', name)
            self.delete(name)
            logger.info('Successfully rolled back upload: %s', name)
        except Exception:
            # The object stays in storage without a DB record
            logger.exception(
                'Failed to rollback upload, orphaned content: %s',
                name,
            )


def get_storage() -> ItemStorage:
    """Get the configured default storage backend.

    Returns:
        ItemStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def upload_blob(
    key: str,
    file_obj: BinaryIO | DjangoFile,
    content_type: str,
) -> str:
    """Upload raw content under the given key.

    Args:
        key: Storage key to write.
        file_obj: Content to upload.
        content_type: MIME type stored with the object.

    Returns:
        Storage key actually used.

    Raises:
        StorageFailureError: If the upload fails for any reason.
    """
    content = file_obj
    if not hasattr(content, 'chunks'):
        content = DjangoFile(file_obj, name=key)
    content.content_type = content_type  # type: ignore[union-attr]

    try:
        return get_storage().save(key, content)
    except Exception as error:
        raise StorageFailureError('upload', key) from error


def delete_blob(key: str) -> None:
    """Delete content stored under the given key.

    Args:
        key: Storage key to delete.

    Raises:
        StorageFailureError: If the delete fails for any reason.
    """
    try:
        get_storage().delete(key)
    except Exception as error:
        raise StorageFailureError('delete', key) from error


def get_signed_url(key: str, expire: int | None = None) -> str:
    """Generate a short-lived signed retrieval URL.

    URLs are computed per response and never persisted.

    Args:
        key: Storage key to sign.
        expire: Lifetime in seconds, storage default when None.

    Returns:
        Pre-signed GET URL.

    Raises:
        StorageFailureError: If signing fails.
    """
    try:
        return get_storage().url(key, expire=expire)
    except Exception as error:
        logger.exception('Failed to sign URL for: %s', key)
        raise StorageFailureError('sign', key) from error
