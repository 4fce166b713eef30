"""Database models for items app."""

from typing import Final, final

from typing_extensions import override

from django.conf import settings
from django.db import models
from django.utils import timezone

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_EXTENSION_MAX_LENGTH: Final = 32
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length
_SHORT_TEXT_MAX_LENGTH: Final = 100
_LOCATION_MAX_LENGTH: Final = 1024
_SHARED_LINK_MAX_LENGTH: Final = 64
_CHOICE_MAX_LENGTH: Final = 16


class ItemType(models.TextChoices):
    """Kind of item stored in the hierarchy."""

    FILE = 'file', 'File'
    FOLDER = 'folder', 'Folder'


class Permission(models.TextChoices):
    """Permission granted by an access entry.

    Ordering is total: read < write < admin.
    """

    READ = 'read', 'Read'
    WRITE = 'write', 'Write'
    ADMIN = 'admin', 'Admin'


@final
class Item(models.Model):
    """A file or folder owned by a user.

    Folders form an arbitrary-depth tree through ``parent_folder``. The
    parent reference is non-owning: it carries no database constraint, so
    a deleted folder leaves its children as an orphaned subtree instead
    of cascading.

    File items always carry content fields (``content``, ``extension``,
    ``mime_type``, ``size_bytes``, ``checksum_sha256``); folders never do.
    """

    name = models.CharField(max_length=_NAME_MAX_LENGTH)
    original_name = models.CharField(max_length=_NAME_MAX_LENGTH)
    item_type = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=ItemType.choices,
    )
    description = models.TextField(blank=True, default='')

    # Content stored in S3-compatible storage (files only)
    content = models.FileField(
        upload_to='',
        blank=True,
        help_text='Storage key of the item content',
    )
    thumbnail = models.FileField(
        upload_to='',
        blank=True,
        help_text='Storage key of the generated thumbnail (images only)',
    )
    extension = models.CharField(
        max_length=_EXTENSION_MAX_LENGTH,
        blank=True,
        default='',
    )
    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )
    size_bytes = models.BigIntegerField(
        null=True,
        blank=True,
        help_text='File size in bytes',
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text='Metadata extracted from the content (EXIF and similar)',
    )
    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        blank=True,
        default='',
        db_index=True,
        help_text='SHA256 hash for integrity verification',
    )
    compression_type = models.CharField(
        max_length=_SHORT_TEXT_MAX_LENGTH,
        blank=True,
        default='',
    )
    is_encrypted = models.BooleanField(default=False)

    # Hierarchy
    parent_folder = models.ForeignKey(
        'self',
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name='children',
    )

    # Provenance
    original_location = models.CharField(
        max_length=_LOCATION_MAX_LENGTH,
        blank=True,
        default='',
    )
    originating_device_id = models.CharField(
        max_length=_SHORT_TEXT_MAX_LENGTH,
        blank=True,
        default='',
    )

    # Tags
    internal_tags = models.JSONField(default=list, blank=True)
    user_tags = models.JSONField(default=list, blank=True)

    # Timestamps
    created_on = models.DateTimeField(default=timezone.now)
    last_modified_on = models.DateTimeField(default=timezone.now)
    file_created_on = models.DateTimeField(null=True, blank=True)
    file_modified_on = models.DateTimeField(null=True, blank=True)
    last_accessed_on = models.DateTimeField(null=True, blank=True)

    last_modified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='owned_items',
        editable=False,
    )

    version = models.PositiveIntegerField(default=1)
    is_archived = models.BooleanField(default=False)
    is_hidden = models.BooleanField(default=False)
    custom_properties = models.JSONField(default=dict, blank=True)

    # Public link
    shared_link = models.CharField(
        max_length=_SHARED_LINK_MAX_LENGTH,
        null=True,
        blank=True,
        unique=True,
    )
    expiration_date = models.DateTimeField(null=True, blank=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Item'  # type: ignore[mutable-override]
        verbose_name_plural = 'Items'  # type: ignore[mutable-override]
        ordering = ['name', 'id']

        indexes = [
            # Optimize folder listing queries
            models.Index(
                fields=['owner', 'parent_folder'],
                name='items_owner_parent_idx',
            ),
            models.Index(
                fields=['owner', '-created_on'],
                name='items_owner_recent_idx',
            ),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(version__gte=1),
                name='items_version_positive',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.item_type}:{self.name}'

    @property
    def is_file(self) -> bool:
        """Whether the item holds content."""
        return self.item_type == ItemType.FILE

    @property
    def is_folder(self) -> bool:
        """Whether the item can contain other items."""
        return self.item_type == ItemType.FOLDER


@final
class AccessEntry(models.Model):
    """Permission granted to a user on a single item.

    At most one entry exists per user per item. Entries keep their
    creation order, replacing a permission updates the row in place.
    """

    item = models.ForeignKey(
        Item,
        on_delete=models.CASCADE,
        related_name='access_entries',
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='item_access',
    )
    permission = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=Permission.choices,
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'Access entry'  # type: ignore[mutable-override]
        verbose_name_plural = 'Access entries'  # type: ignore[mutable-override]
        ordering = ['id']

        constraints = [
            # One entry per user per item
            models.UniqueConstraint(
                fields=['item', 'user'],
                name='access_item_user_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.permission}@{self.item_id}'
