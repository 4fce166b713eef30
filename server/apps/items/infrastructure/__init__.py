"""Infrastructure layer for items app.

This package contains integrations with external systems:
- S3-compatible blob storage (upload, signed URLs, delete)
- Metadata extraction (MIME type, checksum, EXIF, tags)
- Thumbnail rendering

Keep infrastructure concerns separate from business logic.
"""
