"""Django admin configuration for items app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest

from server.apps.items.models import AccessEntry, Item

_KILOBYTE = 1024


def _format_bytes(size_bytes: int | None) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes, None for folders.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes is None:
        return '-'
    if size_bytes < _KILOBYTE:
        return f'{size_bytes} B'
    if size_bytes < _KILOBYTE ** 2:
        return f'{size_bytes / _KILOBYTE:.1f} KB'
    if size_bytes < _KILOBYTE ** 3:
        return f'{size_bytes / _KILOBYTE ** 2:.1f} MB'
    return f'{size_bytes / _KILOBYTE ** 3:.1f} GB'


class AccessEntryInline(admin.TabularInline):
    """Access list edited alongside its item."""

    model = AccessEntry
    extra = 0
    raw_id_fields = ['user']


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    """Admin interface for Item model."""

    list_display = [
        'name',
        'item_type',
        'owner',
        'parent_folder',
        'size_display',
        'version',
        'is_archived',
        'last_modified_on',
    ]

    list_filter = [
        'item_type',
        'is_archived',
        'is_hidden',
        'owner',
    ]

    search_fields = [
        'name',
        'description',
        'checksum_sha256',
    ]

    # Content fields are produced by the upload pipeline only
    readonly_fields = [
        'content',
        'thumbnail',
        'extension',
        'mime_type',
        'size_bytes',
        'checksum_sha256',
        'metadata',
        'internal_tags',
        'version',
        'created_on',
        'last_modified_on',
        'last_modified_by',
        'last_accessed_on',
    ]

    raw_id_fields = ['parent_folder']
    inlines = [AccessEntryInline]

    fieldsets = (
        ('Item', {
            'fields': (
                'name',
                'original_name',
                'item_type',
                'description',
                'parent_folder',
            ),
        }),
        ('Content', {
            'fields': (
                'content',
                'thumbnail',
                'extension',
                'mime_type',
                'size_bytes',
                'checksum_sha256',
                'compression_type',
                'is_encrypted',
            ),
        }),
        ('Tags and metadata', {
            'fields': (
                'metadata',
                'internal_tags',
                'user_tags',
                'custom_properties',
            ),
        }),
        ('Flags and sharing', {
            'fields': (
                'is_archived',
                'is_hidden',
                'shared_link',
                'expiration_date',
            ),
        }),
        ('History', {
            'fields': (
                'version',
                'created_on',
                'last_modified_on',
                'last_modified_by',
                'last_accessed_on',
            ),
        }),
    )

    def size_display(self, obj: Item) -> str:
        """Display content size in human-readable format.

        Args:
            obj: Item instance.

        Returns:
            Formatted size string, '-' for folders.
        """
        return _format_bytes(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Item]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related(
            'owner',
            'parent_folder',
        )
