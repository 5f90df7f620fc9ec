"""Business logic layer for files app.

This package contains the core of the file hosting service:
- Folder tree: create, rename, move, listings and subtree sizes
- File versions: upload, download, trash, restore, purge
- Recursive folder operations and zip streaming
- Quota accounting, trash retention, search and batch operations

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
