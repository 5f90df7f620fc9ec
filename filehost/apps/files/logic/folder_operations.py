"""Business logic for recursive folder operations.

Subtrees are enumerated breadth-first from ``parent`` lookups, one query
per level. Soft-delete and restore of a subtree each run in a single
transaction, so the whole subtree changes state or none of it does.
"""

import logging
import uuid
from collections.abc import Iterator
from dataclasses import dataclass
from functools import partial
from typing import Any, final

from django.db import transaction
from django.db.models import Sum

from filehost.apps.activity.logic.activity_operations import log_activity
from filehost.apps.activity.models import ActivityAction
from filehost.apps.files.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from filehost.apps.files.infrastructure.archive import ArchiveEntry, stream_zip
from filehost.apps.files.infrastructure.metadata import parse_item_id
from filehost.apps.files.infrastructure.storage import (
    ContentStore,
    get_content_store,
)
from filehost.apps.files.logic.file_operations import purge_files
from filehost.apps.files.logic.quota_operations import assert_within_quota
from filehost.apps.files.logic.results import PurgeResult
from filehost.apps.files.logic.tree_operations import (
    collect_subtree_folder_ids,
    files_in_folder_q,
    files_in_subtree_q,
    list_child_folders,
    list_folder_files,
    restored_name,
    revive_folder_chain,
)
from filehost.apps.files.models import File, Folder
from filehost.apps.sharing.logic.permissions import get_accessible_folder
from filehost.apps.sharing.models import ItemType, Permission, UserShare

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class ZipDownload:
    """Folder archive produced lazily while ``chunks`` is consumed."""

    name: str
    chunks: Iterator[bytes]


def delete_folder(
    user: _User,
    folder_id: uuid.UUID | str,
    recursive: bool = False,
) -> Folder:
    """Move a folder, and with ``recursive`` everything under it, to trash.

    Args:
        user: Caller (needs edit access).
        folder_id: Folder to delete.
        recursive: Whether a non-empty folder may be deleted.

    Returns:
        The trashed folder.

    Raises:
        InvalidInputError: If the folder is the root.
        ConflictError: If the folder is not empty and ``recursive`` is off.
    """
    folder = get_accessible_folder(user, folder_id, Permission.EDIT)
    if folder.is_root:
        raise InvalidInputError('Cannot delete the root folder')

    if not recursive:
        has_content = (
            Folder.objects.filter(parent=folder).exists()
            or File.objects.filter(folder=folder).exists()
        )
        if has_content:
            raise ConflictError(
                f'Folder {folder.name!r} is not empty, delete it recursively',
            )

    with transaction.atomic():
        folder_ids = collect_subtree_folder_ids(folder)
        files_deleted = File.objects.filter(
            folder_id__in=folder_ids,
        ).mark_deleted()
        Folder.objects.filter(pk__in=folder_ids).mark_deleted()

    folder.refresh_from_db()
    logger.info(
        'Folder moved to trash: %r (ID: %s, %d folders, %d files)',
        folder.name,
        folder.pk,
        len(folder_ids),
        files_deleted,
    )
    log_activity(
        user,
        ActivityAction.FOLDER_DELETE,
        ItemType.FOLDER,
        folder.pk,
        folder.name,
        {'folders': len(folder_ids), 'files': files_deleted},
    )
    return folder


def _restore_folder_row(folder: Folder) -> None:
    folder.name = restored_name(
        folder.name,
        lambda candidate: Folder.objects.filter(
            owner_id=folder.owner_id,
            parent_id=folder.parent_id,
            name=candidate,
        ).exists(),
    )
    folder.mark_restored()
    folder.save(update_fields=['name', 'is_deleted', 'deleted_at'])


def _restore_folder_files(folder: Folder) -> int:
    trashed = File.all_objects.filter(
        files_in_folder_q(folder),
        is_deleted=True,
    ).order_by('deleted_at')
    restored = 0
    for file_instance in trashed:
        file_instance.name = restored_name(
            file_instance.name,
            lambda candidate: File.objects.filter(
                files_in_folder_q(folder),
                name=candidate,
            ).exists(),
            keep_extension=True,
        )
        file_instance.mark_restored()
        file_instance.save(
            update_fields=['name', 'is_deleted', 'deleted_at', 'updated_at'],
        )
        restored += 1
    return restored


def restore_folder(user: _User, folder_id: uuid.UUID | str) -> Folder:
    """Bring a folder and its whole subtree back from the trash.

    The bytes of every trashed file in the subtree are checked against
    the owner's quota under the quota row lock, in the same transaction
    that restores the rows. Either everything is restored or nothing is.
    Trashed folders above the folder are restored with it; items whose
    name was taken in the meantime get a ``(restored)`` suffix.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the caller cannot edit the folder.
        ConflictError: If the folder is not in the trash.
        QuotaExceededError: If the restored bytes do not fit the quota.
    """
    folder = get_accessible_folder(
        user,
        folder_id,
        Permission.EDIT,
        include_deleted=True,
    )
    if not folder.is_deleted:
        raise ConflictError(f'Folder {folder.name!r} is not in the trash')

    with transaction.atomic():
        folder_ids = collect_subtree_folder_ids(folder, include_deleted=True)
        incoming = File.all_objects.filter(
            folder_id__in=folder_ids,
            is_deleted=True,
        ).aggregate(total=Sum('size_bytes'))['total'] or 0
        assert_within_quota(folder.owner, incoming)

        revive_folder_chain(folder.parent)
        folders = Folder.all_objects.in_bulk(folder_ids)
        files_restored = 0
        # Parents first, so a child's sibling check sees restored parents
        for subtree_folder_id in folder_ids:
            subtree_folder = folders[subtree_folder_id]
            if subtree_folder.is_deleted:
                _restore_folder_row(subtree_folder)
            files_restored += _restore_folder_files(subtree_folder)

    folder.refresh_from_db()
    logger.info(
        'Folder restored: %r (ID: %s, %d folders, %d files, %d bytes)',
        folder.name,
        folder.pk,
        len(folder_ids),
        files_restored,
        incoming,
    )
    log_activity(
        user,
        ActivityAction.FOLDER_RESTORE,
        ItemType.FOLDER,
        folder.pk,
        folder.name,
        {'files': files_restored, 'bytes': incoming},
    )
    return folder


def purge_folder_tree(
    folder: Folder,
    store: ContentStore | None = None,
) -> PurgeResult:
    """Remove a folder subtree with every file and stored version in it.

    Files are purged first, then folder rows from the leaves upwards.
    """
    folder_ids = collect_subtree_folder_ids(folder, include_deleted=True)
    result = purge_files(
        File.all_objects.filter(folder_id__in=folder_ids),
        store,
    )

    with transaction.atomic():
        UserShare.objects.filter(
            item_type=ItemType.FOLDER,
            item_id__in=folder_ids,
        ).delete()
        for subtree_folder_id in reversed(folder_ids):
            Folder.all_objects.filter(pk=subtree_folder_id).delete()
    result.folders_purged = len(folder_ids)
    return result


def permanently_delete_folder(
    user: _User,
    folder_id: uuid.UUID | str,
) -> PurgeResult:
    """Irreversibly remove a folder subtree and its stored content.

    Storage failures do not stop the purge; they are logged and their
    keys reported in the result.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the caller is not the owner.
        InvalidInputError: If the folder is the root.
    """
    folder = Folder.all_objects.filter(pk=parse_item_id(folder_id)).first()
    if folder is None:
        raise NotFoundError(f'Folder not found: {folder_id}')
    if folder.owner_id != user.pk:
        raise ForbiddenError('Only the owner can permanently delete a folder')
    if folder.is_root:
        raise InvalidInputError('Cannot delete the root folder')

    result = purge_folder_tree(folder)
    logger.info(
        'Folder permanently deleted: %r (ID: %s, %d folders, %d files)',
        folder.name,
        folder.pk,
        result.folders_purged,
        result.files_purged,
    )
    if result.failed_keys:
        logger.warning(
            'Purge of folder %s left %d orphaned objects',
            folder.pk,
            len(result.failed_keys),
        )
    log_activity(
        user,
        ActivityAction.FOLDER_PURGE,
        ItemType.FOLDER,
        folder.pk,
        folder.name,
        {'files': result.files_purged, 'failed': len(result.failed_keys)},
    )
    return result


def _open_content(store: ContentStore, key: str) -> Iterator[bytes]:
    return store.get(key).chunks()


def _archive_entries(
    folder: Folder,
    store: ContentStore,
) -> Iterator[ArchiveEntry]:
    """Walk a live subtree breadth-first, yielding archive members.

    Paths are relative to ``folder``; each subfolder gets a directory
    entry so empty folders survive the round trip.
    """
    paths = {folder.pk: ''}
    level = [folder]
    while level:
        next_level = []
        for current in level:
            prefix = paths[current.pk]
            if prefix:
                yield ArchiveEntry(path=prefix, modified=current.created_at)
            for file_instance in list_folder_files(current):
                yield ArchiveEntry(
                    path=f'{prefix}{file_instance.name}',
                    modified=file_instance.updated_at,
                    size=file_instance.size_bytes,
                    open=partial(
                        _open_content,
                        store,
                        file_instance.storage_key,
                    ),
                )
            for child in list_child_folders(current):
                paths[child.pk] = f'{prefix}{child.name}/'
                next_level.append(child)
        level = next_level


def stream_folder_zip(
    user: _User,
    folder_id: uuid.UUID | str,
) -> ZipDownload:
    """Prepare a zip archive of every live file under a folder.

    Nothing is read until ``chunks`` is iterated. Closing ``chunks``
    stops the archive and closes the storage stream being read.

    Raises:
        NotFoundError: If the folder does not exist or is trashed.
        ForbiddenError: If the caller has no view access.
    """
    folder = get_accessible_folder(user, folder_id, Permission.VIEW)
    store = get_content_store()

    file_count = File.objects.filter(
        files_in_subtree_q(folder, collect_subtree_folder_ids(folder)),
    ).count()
    logger.info(
        'Streaming folder archive: %r (ID: %s, %d files)',
        folder.name,
        folder.pk,
        file_count,
    )
    log_activity(
        user,
        ActivityAction.FOLDER_DOWNLOAD,
        ItemType.FOLDER,
        folder.pk,
        folder.name,
        {'files': file_count},
    )
    return ZipDownload(
        name=f'{folder.name}.zip',
        chunks=stream_zip(_archive_entries(folder, store)),
    )
