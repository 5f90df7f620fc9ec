"""Database models for activity app."""

import uuid
from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

_ACTION_MAX_LENGTH: Final = 32
_RESOURCE_TYPE_MAX_LENGTH: Final = 50


class ActivityAction(models.TextChoices):
    """Actions recorded in a user's activity feed."""

    FILE_UPLOAD = 'file_upload', 'File upload'
    FILE_DOWNLOAD = 'file_download', 'File download'
    FILE_DELETE = 'file_delete', 'File delete'
    FILE_RESTORE = 'file_restore', 'File restore'
    FILE_PURGE = 'file_purge', 'File permanent delete'
    FILE_RENAME = 'file_rename', 'File rename'
    FILE_MOVE = 'file_move', 'File move'
    FOLDER_CREATE = 'folder_create', 'Folder create'
    FOLDER_DELETE = 'folder_delete', 'Folder delete'
    FOLDER_RESTORE = 'folder_restore', 'Folder restore'
    FOLDER_PURGE = 'folder_purge', 'Folder permanent delete'
    FOLDER_RENAME = 'folder_rename', 'Folder rename'
    FOLDER_MOVE = 'folder_move', 'Folder move'
    FOLDER_DOWNLOAD = 'folder_download', 'Folder download'
    SHARE_CREATE = 'share_create', 'Share create'
    SHARE_UPDATE = 'share_update', 'Share update'
    SHARE_REVOKE = 'share_revoke', 'Share revoke'
    BATCH_DELETE = 'batch_delete', 'Batch delete'
    BATCH_MOVE = 'batch_move', 'Batch move'
    BATCH_RESTORE = 'batch_restore', 'Batch restore'


@final
class ActivityLog(models.Model):
    """Single entry of a user's activity feed."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='activity_logs',
    )

    action = models.CharField(
        max_length=_ACTION_MAX_LENGTH,
        choices=ActivityAction.choices,
    )

    resource_type = models.CharField(
        max_length=_RESOURCE_TYPE_MAX_LENGTH,
        blank=True,
        default='',
        help_text='file, folder or share',
    )

    resource_id = models.UUIDField(null=True, blank=True)

    resource_name = models.TextField(blank=True, default='')

    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Activity Log'  # type: ignore[mutable-override]
        verbose_name_plural = 'Activity Logs'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['user', '-created_at'],
                name='activity_user_recent_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}:{self.action} {self.resource_name}'
