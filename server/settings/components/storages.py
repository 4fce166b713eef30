"""Django storage configuration for S3-compatible backends.

This module configures django-storages to work with:
- MinIO for local development
- AWS S3 or Cloudflare R2 for production

All of them are S3-compatible and use the same S3Storage backend.
"""

from typing import Any, Final

from server.settings.components import config

# Storage configuration dictionary
# Uses S3-compatible storage for item content, local storage for static files
STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.items.infrastructure.storage.ItemStorage',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='item-vault',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default='testing'),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default='testing'),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            'file_overwrite': False,  # Prevent accidental overwrites
            'default_acl': None,  # Inherit bucket ACL
            'querystring_auth': True,  # Retrieval URLs are always signed
            'querystring_expire': config(
                'ITEMS_SIGNED_URL_EXPIRY',
                cast=int,
                default=3600,
            ),
        },
    },
    'staticfiles': {
        # Keep static files separate from item content
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
