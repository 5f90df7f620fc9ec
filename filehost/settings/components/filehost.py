"""Domain settings for the file hosting core."""

from filehost.settings.components import config

# Default per-account storage ceiling: 10 GB
FILEHOST_DEFAULT_QUOTA_BYTES = config(
    'FILEHOST_DEFAULT_QUOTA_BYTES',
    cast=int,
    default=10 * 1024 * 1024 * 1024,
)

# Name given to the folder created with every account
FILEHOST_ROOT_FOLDER_NAME = config('FILEHOST_ROOT_FOLDER_NAME', default='root')

# Trash retention used by the purge_trash command
FILEHOST_TRASH_RETENTION_DAYS = config(
    'FILEHOST_TRASH_RETENTION_DAYS',
    cast=int,
    default=30,
)

FILEHOST_SEARCH_LIMIT = config('FILEHOST_SEARCH_LIMIT', cast=int, default=200)

# Chunk size for download and zip streaming
FILEHOST_STREAM_CHUNK_SIZE = config(
    'FILEHOST_STREAM_CHUNK_SIZE',
    cast=int,
    default=64 * 1024,
)
