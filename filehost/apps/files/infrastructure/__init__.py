"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Custom storage backend and the content store adapter (S3/MinIO/R2)
- Metadata extraction (MIME type, checksum) and name validation
- Streaming zip archive generation

Keep infrastructure concerns separate from business logic.
"""
