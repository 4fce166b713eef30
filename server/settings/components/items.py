"""Items app settings."""

from server.settings.components import config

# Lifetime of signed retrieval URLs attached to file responses
ITEMS_SIGNED_URL_EXPIRY = config(
    'ITEMS_SIGNED_URL_EXPIRY',
    cast=int,
    default=3600,
)

# Thumbnails fit within a square of this many pixels
ITEMS_THUMBNAIL_SIZE = config('ITEMS_THUMBNAIL_SIZE', cast=int, default=200)
ITEMS_THUMBNAIL_QUALITY = config(
    'ITEMS_THUMBNAIL_QUALITY',
    cast=int,
    default=70,
)

# Listing pagination
ITEMS_DEFAULT_PAGE_SIZE = config(
    'ITEMS_DEFAULT_PAGE_SIZE',
    cast=int,
    default=20,
)
ITEMS_MAX_PAGE_SIZE = config('ITEMS_MAX_PAGE_SIZE', cast=int, default=100)
