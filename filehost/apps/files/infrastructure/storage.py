"""Storage backend and content store adapter for file versions."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Final, final, override

from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from django.core.files.storage import Storage, default_storage
from storages.backends.s3 import S3Storage
from storages.utils import clean_name

from filehost.apps.files.exceptions import (
    FileHostError,
    NotFoundError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

_DEFAULT_CHUNK_SIZE: Final = 64 * 1024
_MISSING_KEY_CODES: Final = frozenset(('404', 'NoSuchKey', 'NotFound'))


@final
class FileStorage(S3Storage):
    """Custom S3 storage backend for file content.

    Extends django-storages S3Storage with:
    - Transaction rollback support for failed DB operations
    - Enhanced error logging
    - Unbuffered object streams and HEAD metadata
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading object to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded object: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload object to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file from S3 with error handling and logging.

        Args:
            name: Storage path of file to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting object from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted object: %s', name)
        except Exception:
            logger.exception('Failed to delete object from storage: %s', name)
            raise

    def rollback_upload(self, name: str) -> None:
        """Delete uploaded file for DB transaction rollback.

        This method is called when a database transaction fails after
        a file has been successfully uploaded to S3. It attempts to
        delete the file to maintain consistency.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised, as the DB rollback has already occurred.

        Args:
            name: Storage path of file to delete.
        """
        try:
            logger.warning('Rolling back upload, deleting object: %s', name)
            self.delete(name)
            logger.info('Successfully rolled back upload: %s', name)
        except Exception:
            # Log but don't raise - rollback is best-effort
            logger.exception(
                'Failed to rollback upload, orphaned object: %s',
                name,
            )

    def open_stream(self, name: str) -> tuple[Any, int]:
        """Open an unbuffered body stream for an object.

        ``S3Storage.open`` downloads the whole object into a spooled
        temporary file on first read; the raw GET body is read lazily.

        Args:
            name: Storage path of the object.

        Returns:
            Tuple of the botocore streaming body and its length.
        """
        key = self._normalize_name(clean_name(name))
        response = self.bucket.Object(key).get()
        return response['Body'], response['ContentLength']

    def object_metadata(self, name: str) -> 'ObjectMetadata':
        """Fetch HEAD metadata for an object.

        Args:
            name: Storage path of the object.

        Returns:
            Size, content type and last modification time.
        """
        key = self._normalize_name(clean_name(name))
        response = self.connection.meta.client.head_object(
            Bucket=self.bucket_name,
            Key=key,
        )
        return ObjectMetadata(
            size=response['ContentLength'],
            content_type=response.get('ContentType'),
            last_modified=response.get('LastModified'),
        )


@final
@dataclass(frozen=True, slots=True)
class ObjectMetadata:
    """HEAD metadata of a stored object."""

    size: int
    content_type: str | None = None
    last_modified: datetime | None = None


@contextmanager
def _storage_errors(action: str, key: str) -> Iterator[None]:
    """Translate backend failures into file hosting errors."""
    try:
        yield
    except FileHostError:
        raise
    except FileNotFoundError as error:
        raise NotFoundError(f'Stored object not found: {key}') from error
    except ClientError as error:
        code = str(error.response.get('Error', {}).get('Code', ''))
        if code in _MISSING_KEY_CODES:
            raise NotFoundError(f'Stored object not found: {key}') from error
        logger.exception('Storage %s failed: %s', action, key)
        raise StorageUnavailableError(
            f'Storage {action} failed for {key}',
        ) from error
    except (BotoCoreError, OSError) as error:
        logger.exception('Storage %s failed: %s', action, key)
        raise StorageUnavailableError(
            f'Storage {action} failed for {key}',
        ) from error


@final
class StoredObject:
    """Readable stored object with a known length.

    Content is produced by ``chunks()``. The underlying handle is closed
    when the iterator is exhausted or closed early (for example when a
    client disconnects mid-download).
    """

    def __init__(
        self,
        key: str,
        handle: Any,
        size: int,
        chunk_size: int = _DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.key = key
        self.size = size
        self._handle = handle
        self._chunk_size = chunk_size

    def chunks(self) -> Iterator[bytes]:
        """Yield the object content chunk by chunk."""
        try:
            while True:
                with _storage_errors('read', self.key):
                    chunk = self._handle.read(self._chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def read(self) -> bytes:
        """Read the whole object into memory."""
        return b''.join(self.chunks())

    def close(self) -> None:
        """Release the underlying stream."""
        self._handle.close()


@final
class ContentStore:
    """Content store contract used by the core.

    Wraps any Django ``Storage``. ``FileStorage`` additionally provides
    unbuffered streams and HEAD metadata; other backends fall back to the
    generic Storage API.
    """

    def __init__(
        self,
        storage: Storage | None = None,
        chunk_size: int = _DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._storage = storage if storage is not None else default_storage
        self._chunk_size = chunk_size

    def put(self, key: str, content: BinaryIO) -> str:
        """Store content under a key.

        Returns:
            The key actually used by the backend.
        """
        with _storage_errors('put', key):
            content.seek(0)
            return self._storage.save(key, content)

    def get(self, key: str) -> StoredObject:
        """Open a stored object for streaming."""
        with _storage_errors('get', key):
            if hasattr(self._storage, 'open_stream'):
                handle, size = self._storage.open_stream(key)
            else:
                size = self._storage.size(key)
                handle = self._storage.open(key, 'rb')
        return StoredObject(key, handle, size, self._chunk_size)

    def delete(self, key: str) -> None:
        """Delete a stored object; a missing key is not an error."""
        with _storage_errors('delete', key):
            self._storage.delete(key)

    def exists(self, key: str) -> bool:
        """Check whether a key is stored."""
        with _storage_errors('exists', key):
            return self._storage.exists(key)

    def head_metadata(self, key: str) -> ObjectMetadata:
        """Return size, content type and modification time of an object."""
        with _storage_errors('head', key):
            if hasattr(self._storage, 'object_metadata'):
                return self._storage.object_metadata(key)
            return ObjectMetadata(
                size=self._storage.size(key),
                last_modified=self._storage.get_modified_time(key),
            )

    def rollback(self, key: str) -> None:
        """Best-effort removal of an object written by a failed operation."""
        if hasattr(self._storage, 'rollback_upload'):
            self._storage.rollback_upload(key)
            return
        try:
            self._storage.delete(key)
        except Exception:
            logger.exception('Failed to rollback upload, orphaned: %s', key)


def get_content_store() -> ContentStore:
    """Content store over the configured default storage."""
    return ContentStore(
        default_storage,
        chunk_size=settings.FILEHOST_STREAM_CHUNK_SIZE,
    )
