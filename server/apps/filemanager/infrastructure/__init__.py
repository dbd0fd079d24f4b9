"""Infrastructure layer for file manager app.

This package contains integrations with external systems:
- Storage port adapter over Django storages (local disk, S3, memory)
- Custom S3 storage backend (server-side copy, ACL visibility)
- Metadata extraction (MIME type, checksum, image dimensions)

Keep infrastructure concerns separate from business logic.
"""
