"""Business logic for the trash.

Trashed items keep their place in the tree and their stored content;
they are hidden from listings and quota until restored or purged.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, final

from django.db.models import QuerySet

from filehost.apps.files.logic.file_operations import purge_files
from filehost.apps.files.logic.folder_operations import purge_folder_tree
from filehost.apps.files.logic.results import PurgeResult
from filehost.apps.files.models import File, Folder

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class TrashListing:
    """Trashed folders and files of one user, newest first."""

    folders: list[Folder] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


def _trashed_folders() -> QuerySet[Folder]:
    return Folder.all_objects.filter(is_deleted=True).order_by('-deleted_at')


def _trashed_files() -> QuerySet[File]:
    return File.all_objects.filter(is_deleted=True).order_by('-deleted_at')


def list_trash(user: _User) -> TrashListing:
    """List everything in a user's trash.

    Args:
        user: Owner of the trash.

    Returns:
        TrashListing with folders and files, newest first.
    """
    return TrashListing(
        folders=list(_trashed_folders().filter(owner=user)),
        files=list(_trashed_files().filter(owner=user)),
    )


def _purge(
    folders: QuerySet[Folder],
    files: QuerySet[File],
) -> PurgeResult:
    """Purge folder subtrees first, then the files still left."""
    result = PurgeResult()
    for folder in folders:
        # Already removed together with a trashed ancestor
        if not Folder.all_objects.filter(pk=folder.pk).exists():
            continue
        result.merge(purge_folder_tree(folder))

    remaining = File.all_objects.filter(
        pk__in=[file_instance.pk for file_instance in files],
    )
    result.merge(purge_files(remaining))
    return result


def empty_trash(user: _User) -> PurgeResult:
    """Permanently delete everything in a user's trash.

    Args:
        user: Owner of the trash.

    Returns:
        Combined PurgeResult.
    """
    result = _purge(
        _trashed_folders().filter(owner=user),
        _trashed_files().filter(owner=user),
    )
    logger.info(
        'Trash emptied for user %s: %d folders, %d files, %d bytes',
        user.pk,
        result.folders_purged,
        result.files_purged,
        result.bytes_freed,
    )
    return result


def find_expired(
    cutoff: datetime,
) -> tuple[QuerySet[Folder], QuerySet[File]]:
    """Trashed folders and files deleted at or before ``cutoff``.

    Oldest first.
    """
    return (
        Folder.all_objects.filter(
            is_deleted=True,
            deleted_at__lte=cutoff,
        ).order_by('deleted_at'),
        File.all_objects.filter(
            is_deleted=True,
            deleted_at__lte=cutoff,
        ).order_by('deleted_at'),
    )


def purge_expired(
    cutoff: datetime,
    limit: int | None = None,
) -> PurgeResult:
    """Permanently delete trash older than a retention cutoff.

    Args:
        cutoff: Items trashed at or before this moment are purged.
        limit: Max folders and max files handled in one call.

    Returns:
        Combined PurgeResult.
    """
    folders, files = find_expired(cutoff)
    if limit is not None:
        folders, files = folders[:limit], files[:limit]

    result = _purge(folders, files)
    logger.info(
        'Purged expired trash before %s: %d folders, %d files, %d failed',
        cutoff.isoformat(),
        result.folders_purged,
        result.files_purged,
        len(result.failed_keys),
    )
    return result
