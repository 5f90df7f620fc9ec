"""Database models for sharing app."""

import uuid
from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

_CHOICE_MAX_LENGTH: Final = 10


class ItemType(models.TextChoices):
    """Kind of item a share points at."""

    FILE = 'file', 'File'
    FOLDER = 'folder', 'Folder'


class Permission(models.TextChoices):
    """Access level granted by a share. ``edit`` implies ``view``."""

    VIEW = 'view', 'View'
    EDIT = 'edit', 'Edit'


@final
class UserShare(models.Model):
    """Grant of view/edit access on a file or folder to another user.

    A folder share is inherited by every descendant of the folder.
    ``item_id`` is not a foreign key because it points at either table;
    shares of purged items are removed by the purge itself.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    item_id = models.UUIDField(db_index=True)

    item_type = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=ItemType.choices,
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='shares_sent',
    )

    shared_with = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='shares_received',
    )

    permission = models.CharField(
        max_length=_CHOICE_MAX_LENGTH,
        choices=Permission.choices,
        default=Permission.VIEW,
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Share'  # type: ignore[mutable-override]
        verbose_name_plural = 'Shares'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['shared_with', 'item_type', 'item_id'],
                name='shares_target_item_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['item_id', 'item_type', 'shared_with'],
                name='shares_item_user_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return (
            f'{self.item_type}:{self.item_id} -> '
            f'{self.shared_with_id} ({self.permission})'
        )

    def grants(self, required: str) -> bool:
        """Check whether this share satisfies a required permission.

        Args:
            required: ``view`` or ``edit``.

        Returns:
            True if the share is at least as strong as required.
        """
        if required == Permission.VIEW:
            return self.permission in {Permission.VIEW, Permission.EDIT}
        return self.permission == Permission.EDIT
