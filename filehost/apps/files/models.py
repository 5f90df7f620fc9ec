"""Database models for files app."""

import uuid
from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models
from django.utils import timezone

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length
_STORAGE_KEY_MAX_LENGTH: Final = 1024


def default_quota_bytes() -> int:
    """Per-account byte ceiling for newly provisioned users."""
    return settings.FILEHOST_DEFAULT_QUOTA_BYTES


class TrashableQuerySet(models.QuerySet):
    """Bulk lifecycle transitions for trashable rows."""

    def mark_deleted(self) -> int:
        """Move every row of the queryset into the trash."""
        return self.update(is_deleted=True, deleted_at=timezone.now())

    def mark_restored(self) -> int:
        """Bring every row of the queryset back from the trash."""
        return self.update(is_deleted=False, deleted_at=None)


class LiveManager(models.Manager.from_queryset(TrashableQuerySet)):
    """Manager that hides soft-deleted rows."""

    @override
    def get_queryset(self) -> models.QuerySet:
        return super().get_queryset().filter(is_deleted=False)


class Trashable(models.Model):
    """Soft-delete lifecycle shared by folders and files.

    Rows move Active -> Deleted through ``mark_deleted`` and back through
    ``mark_restored``. Purged rows are removed from the table, so there is
    no third flag value.
    """

    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = LiveManager()
    all_objects = TrashableQuerySet.as_manager()

    class Meta:
        abstract = True

    def mark_deleted(self) -> None:
        """Move the row into the trash (caller saves)."""
        self.is_deleted = True
        self.deleted_at = timezone.now()

    def mark_restored(self) -> None:
        """Bring the row back from the trash (caller saves)."""
        self.is_deleted = False
        self.deleted_at = None


@final
class Folder(Trashable):
    """Folder in a user's tree.

    Every user has exactly one root folder (``parent`` is null) created
    with the account. Children are looked up by ``parent`` rather than
    stored on the row.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='folders',
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['owner', 'parent'],
                name='folders_owner_parent_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            # One root per user, whatever its trash state
            models.UniqueConstraint(
                fields=['owner'],
                condition=models.Q(parent__isnull=True),
                name='folders_single_root',
            ),
            # Live sibling folders have distinct names
            models.UniqueConstraint(
                fields=['owner', 'parent', 'name'],
                condition=models.Q(is_deleted=False),
                name='folders_live_sibling_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.name}'

    @property
    def is_root(self) -> bool:
        """Whether this is the owner's root folder."""
        return self.parent_id is None


@final
class File(Trashable):
    """Logical file whose content lives in versioned storage objects.

    ``storage_key``, ``size_bytes`` and ``checksum_sha256`` always describe
    the latest ``FileVersion``. A null ``folder`` means the owner's root.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='files',
    )

    folder = models.ForeignKey(
        Folder,
        on_delete=models.CASCADE,
        related_name='files',
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    # File metadata (cached from the current version)
    size_bytes = models.BigIntegerField(
        default=0,
        help_text='File size in bytes',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        default='application/octet-stream',
        help_text='MIME type guessed from the file name',
    )

    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        blank=True,
        default='',
        help_text='SHA256 hash of the current version',
        db_index=True,
    )

    current_version = models.PositiveIntegerField(default=1)

    storage_key = models.CharField(
        max_length=_STORAGE_KEY_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Storage key of the current version',
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

        indexes: ClassVar[list[models.Index]] = [
            # Optimize directory listing queries
            models.Index(
                fields=['owner', 'folder'],
                name='files_owner_folder_idx',
            ),
            # Optimize usage aggregation
            models.Index(
                fields=['owner', 'is_deleted'],
                name='files_owner_deleted_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['owner', 'folder', 'name'],
                condition=models.Q(
                    is_deleted=False,
                    folder__isnull=False,
                ),
                name='files_live_sibling_unique',
            ),
            models.UniqueConstraint(
                fields=['owner', 'name'],
                condition=models.Q(
                    is_deleted=False,
                    folder__isnull=True,
                ),
                name='files_live_root_unique',
            ),
            models.CheckConstraint(
                condition=models.Q(current_version__gte=1),
                name='files_version_positive',
            ),
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='files_size_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.name} (v{self.current_version})'


@final
class FileVersion(models.Model):
    """Immutable snapshot of a file's content.

    Versions are append-only and removed only together with their file.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    file = models.ForeignKey(
        File,
        on_delete=models.CASCADE,
        related_name='versions',
    )

    version = models.PositiveIntegerField()

    storage_key = models.CharField(max_length=_STORAGE_KEY_MAX_LENGTH)

    checksum_sha256 = models.CharField(max_length=_CHECKSUM_MAX_LENGTH)

    size_bytes = models.BigIntegerField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File Version'  # type: ignore[mutable-override]
        verbose_name_plural = 'File Versions'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['file', '-version']

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['file', 'version'],
                name='file_versions_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.file_id} v{self.version}'


@final
class UserQuota(models.Model):
    """Storage quota for a user.

    Only the ceiling is stored. Used bytes are always summed live from
    non-deleted files so they never drift from the trash state; trashed
    files do not count until they are restored.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='quota',
        primary_key=True,
    )

    quota_bytes = models.BigIntegerField(
        default=default_quota_bytes,
        help_text='Storage quota limit in bytes',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=models.Q(quota_bytes__gte=0),
                name='quota_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}: {self.quota_bytes}'

    def available_bytes(self, used_bytes: int) -> int:
        """Get available storage space.

        Args:
            used_bytes: Bytes currently counted against the quota.

        Returns:
            Available bytes (never negative).
        """
        return max(0, self.quota_bytes - used_bytes)
