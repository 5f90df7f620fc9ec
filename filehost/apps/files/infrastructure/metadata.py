"""Metadata extraction and name validation utilities for files."""

import hashlib
import mimetypes
import uuid
from pathlib import PurePosixPath
from typing import BinaryIO, Final

from filehost.apps.files.exceptions import InvalidInputError

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation
_NAME_MAX_LENGTH: Final = 255
_FORBIDDEN_NAME_CHARS: Final = frozenset('/\\\x00')
_RESERVED_NAMES: Final = frozenset(('.', '..'))
_CHECKSUM_KEY_PREFIX: Final = 16


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from file name.

    Uses Python's built-in mimetypes module to guess MIME type
    from filename extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return 'application/octet-stream'
    return mime_type


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of file.

    Reads file in chunks to handle large files efficiently.
    Resets file pointer to beginning after calculation.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()

    file_obj.seek(0)
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        sha256_hash.update(chunk)
    file_obj.seek(0)

    return sha256_hash.hexdigest()


def get_content_size(file_obj: BinaryIO) -> int:
    """Get size of a file-like object in bytes.

    Django ``File`` objects expose ``size``; plain streams are measured
    by seeking to the end.

    Args:
        file_obj: File-like object.

    Returns:
        Size in bytes.
    """
    size = getattr(file_obj, 'size', None)
    if size is not None:
        return size
    file_obj.seek(0, 2)
    size = file_obj.tell()
    file_obj.seek(0)
    return size


def validate_item_name(name: str) -> str:
    """Validate a folder or file name.

    Args:
        name: Proposed name.

    Returns:
        The name with surrounding whitespace stripped.

    Raises:
        InvalidInputError: If the name is empty, too long, reserved
            or contains a path separator.
    """
    if not isinstance(name, str):
        raise InvalidInputError('Name must be a string')

    cleaned = name.strip()
    if not cleaned:
        raise InvalidInputError('Name cannot be empty')
    if len(cleaned) > _NAME_MAX_LENGTH:
        raise InvalidInputError(
            f'Name is longer than {_NAME_MAX_LENGTH} characters',
        )
    if cleaned in _RESERVED_NAMES:
        raise InvalidInputError(f'Name {cleaned!r} is reserved')
    if _FORBIDDEN_NAME_CHARS.intersection(cleaned):
        raise InvalidInputError('Name cannot contain path separators')
    return cleaned


def split_relative_path(relative_path: str) -> tuple[list[str], str]:
    """Split an upload path into folder segments and a file name.

    Backslashes are treated as separators, empty and ``.`` segments are
    dropped. ``..`` is rejected.

    Example: 'Photos/2024/trip.jpg' -> (['Photos', '2024'], 'trip.jpg')

    Args:
        relative_path: Path relative to the upload base folder.

    Returns:
        Tuple of folder segments and the file name.

    Raises:
        InvalidInputError: If the path has no file name or escapes
            the base folder.
    """
    if not isinstance(relative_path, str):
        raise InvalidInputError('Path must be a string')

    parts = [
        part
        for part in PurePosixPath(relative_path.replace('\\', '/')).parts
        if part not in {'/', '.'}
    ]
    if '..' in parts:
        raise InvalidInputError('Path cannot contain ".." segments')
    if not parts:
        raise InvalidInputError('Path must include a file name')

    folders = [validate_item_name(part) for part in parts[:-1]]
    return folders, validate_item_name(parts[-1])


def build_storage_key(
    owner_id: int,
    file_id: object,
    version: int,
    checksum: str,
) -> str:
    """Build the storage key of one file version.

    Example: (7, 'c0ffee...', 3, 'ab12...') -> '7/c0ffee.../v3-ab12...'

    Args:
        owner_id: Owner's user ID (keeps tenants apart in the bucket).
        file_id: Logical file ID.
        version: Version number being written.
        checksum: SHA256 of the content.

    Returns:
        Storage key for the version.
    """
    return '{owner}/{file}/v{version}-{digest}'.format(
        owner=owner_id,
        file=file_id,
        version=version,
        digest=checksum[:_CHECKSUM_KEY_PREFIX],
    )


def parse_item_id(item_id: object) -> uuid.UUID:
    """Parse a folder, file or share identifier.

    Args:
        item_id: UUID instance or its string form.

    Returns:
        Parsed UUID.

    Raises:
        InvalidInputError: If the value is not a UUID.
    """
    if isinstance(item_id, uuid.UUID):
        return item_id
    try:
        return uuid.UUID(str(item_id))
    except (TypeError, ValueError) as error:
        raise InvalidInputError(f'Invalid identifier: {item_id!r}') from error
