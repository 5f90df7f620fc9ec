"""Exceptions for files app.

Every error raised by the core carries a stable ``code`` so an API layer
or a batch report can map it without inspecting the class hierarchy.
"""

from typing import ClassVar


class FileHostError(Exception):
    """Base class for all file hosting errors."""

    code: ClassVar[str] = 'error'


class NotFoundError(FileHostError):
    """Item, user or parent is absent or hidden by soft-delete."""

    code = 'not_found'


class ForbiddenError(FileHostError):
    """Caller is not the owner and holds no sufficient share."""

    code = 'forbidden'


class ConflictError(FileHostError):
    """Name collision, non-empty folder, or illegal tree mutation."""

    code = 'conflict'


class InvalidInputError(FileHostError):
    """Malformed name, path or identifier."""

    code = 'invalid_input'


class InternalError(FileHostError):
    """Persistence or storage backend failure."""

    code = 'internal'


class StorageUnavailableError(InternalError):
    """Storage backend call failed or timed out; safe to retry."""

    code = 'storage_unavailable'
    retryable = True


class QuotaExceededError(ForbiddenError):
    """Raised when upload would exceed user's storage quota."""

    code = 'quota_exceeded'

    def __init__(
        self,
        quota_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            quota_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes

        available = quota_bytes - used_bytes
        super().__init__(
            f'Quota exceeded: need {required_bytes} bytes, '
            f'only {available} bytes available '
            f'(quota: {quota_bytes}, used: {used_bytes})',
        )
