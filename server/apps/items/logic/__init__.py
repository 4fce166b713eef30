"""Business logic layer for items app.

This package contains all business logic for item operations:
- Permission resolution over the folder tree
- Item create, update, archive, delete and access changes
- Content pipeline (upload, thumbnail, metadata, checksum, tags)
- Listing, querying and shared links

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
