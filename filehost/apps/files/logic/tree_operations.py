"""Business logic for the folder tree.

Folders form one tree per user, rooted at the folder created with the
account. Children are found by querying ``parent``; nothing on a row
points down the tree. Items created or moved into another user's shared
folder belong to that folder's owner.
"""

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, final

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet, Sum

from filehost.apps.activity.logic.activity_operations import log_activity
from filehost.apps.activity.models import ActivityAction
from filehost.apps.files.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from filehost.apps.files.infrastructure.metadata import validate_item_name
from filehost.apps.files.logic.quota_operations import (
    StorageSnapshot,
    get_storage_snapshot,
)
from filehost.apps.files.models import File, Folder
from filehost.apps.sharing.logic.permissions import (
    get_accessible_file,
    get_accessible_folder,
    get_ancestor_ids,
)
from filehost.apps.sharing.models import ItemType, Permission

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class FolderEntry:
    """Child folder annotated with its subtree size."""

    folder: Folder
    size: int


@final
@dataclass(frozen=True, slots=True)
class FolderView:
    """Listing of one folder as seen by the caller."""

    folder: Folder
    parent_name: str | None
    size: int
    folders: list[FolderEntry] = field(default_factory=list)
    files: list[File] = field(default_factory=list)
    storage: StorageSnapshot | None = None


# --- Root folder ---------------------------------------------------------


def ensure_root_folder(user: _User) -> Folder:
    """Get or create the user's root folder.

    Safe to call concurrently: a lost creation race re-reads the winner.

    Args:
        user: Account owner.

    Returns:
        Root folder of the user.
    """
    root = Folder.all_objects.filter(owner=user, parent__isnull=True).first()
    if root is not None:
        return root

    try:
        with transaction.atomic():
            root = Folder.objects.create(
                owner=user,
                parent=None,
                name=settings.FILEHOST_ROOT_FOLDER_NAME,
            )
    except IntegrityError:
        return Folder.all_objects.get(owner=user, parent__isnull=True)

    logger.info('Created root folder for user %s: %s', user.pk, root.pk)
    return root


def get_root_folder(user: _User) -> Folder:
    """Root folder of a user (created on demand)."""
    return ensure_root_folder(user)


def get_root_folder_of(owner_id: int) -> Folder:
    """Root folder of a user given only the user id."""
    root = Folder.all_objects.filter(
        owner_id=owner_id,
        parent__isnull=True,
    ).first()
    if root is None:
        raise NotFoundError(f'Root folder not found for user {owner_id}')
    return root


def resolve_folder(
    user: _User,
    folder_id: uuid.UUID | str | None,
    required: str = Permission.VIEW,
) -> Folder:
    """Load a live folder the caller may access, defaulting to their root.

    Raises:
        NotFoundError: If the folder does not exist or is trashed.
        ForbiddenError: If access is not granted.
    """
    if folder_id is None:
        return get_root_folder(user)
    return get_accessible_folder(user, folder_id, required)


# --- Queries -------------------------------------------------------------


def files_in_folder_q(folder: Folder) -> Q:
    """Filter matching files directly inside a folder.

    Files without a folder belong to the owner's root.
    """
    condition = Q(folder=folder)
    if folder.is_root:
        condition |= Q(owner_id=folder.owner_id, folder__isnull=True)
    return condition


def files_in_subtree_q(folder: Folder, folder_ids: Iterable[uuid.UUID]) -> Q:
    """Filter matching files anywhere in a collected subtree."""
    condition = Q(folder_id__in=list(folder_ids))
    if folder.is_root:
        condition |= Q(owner_id=folder.owner_id, folder__isnull=True)
    return condition


def collect_subtree_folder_ids(
    folder: Folder,
    *,
    include_deleted: bool = False,
) -> list[uuid.UUID]:
    """Breadth-first list of a folder and all of its descendants.

    One query per tree level.

    Args:
        folder: Subtree root.
        include_deleted: Whether to walk into trashed folders.

    Returns:
        Folder ids, ``folder`` first, parents before children.
    """
    manager = Folder.all_objects if include_deleted else Folder.objects
    collected = [folder.pk]
    seen = {folder.pk}
    level = [folder.pk]
    while level:
        level = list(
            manager.filter(parent_id__in=level).values_list('id', flat=True),
        )
        level = [child for child in level if child not in seen]
        seen.update(level)
        collected.extend(level)
    return collected


def compute_folder_size(folder: Folder) -> int:
    """Sum of live file sizes anywhere under a folder.

    Args:
        folder: Subtree root.

    Returns:
        Size in bytes.
    """
    folder_ids = collect_subtree_folder_ids(folder)
    total = File.objects.filter(
        files_in_subtree_q(folder, folder_ids),
    ).aggregate(total=Sum('size_bytes'))['total']
    return total or 0


def find_live_folder(parent: Folder, name: str) -> Folder | None:
    """Live child folder with the given name, if any."""
    return Folder.objects.filter(
        owner_id=parent.owner_id,
        parent=parent,
        name=name,
    ).first()


def find_live_file(folder: Folder, name: str) -> File | None:
    """Live file with the given name directly inside a folder, if any."""
    return File.objects.filter(files_in_folder_q(folder), name=name).first()


def list_child_folders(folder: Folder) -> QuerySet[Folder]:
    """Live direct child folders."""
    return Folder.objects.filter(parent=folder).order_by('name')


def list_folder_files(folder: Folder) -> QuerySet[File]:
    """Live files directly inside a folder."""
    return File.objects.filter(files_in_folder_q(folder)).order_by('name')


def restored_name(
    name: str,
    taken: Callable[[str], bool],
    *,
    keep_extension: bool = False,
) -> str:
    """Pick a name for an item coming back from the trash.

    Example: 'report.txt' taken -> 'report (restored).txt'

    Args:
        name: Name the item had when it was trashed.
        taken: Whether a live sibling already uses a candidate name.
        keep_extension: Insert the suffix before the file extension.

    Returns:
        ``name`` if it is free, otherwise the first free suffixed name.
    """
    if not taken(name):
        return name

    stem, extension = name, ''
    if keep_extension:
        base, dot, suffix = name.rpartition('.')
        if base and dot:
            stem, extension = base, f'.{suffix}'

    candidate = f'{stem} (restored){extension}'
    counter = 2
    while taken(candidate):
        candidate = f'{stem} (restored {counter}){extension}'
        counter += 1
    return candidate


def revive_folder_chain(folder: Folder) -> list[Folder]:
    """Restore the trashed folders on the path from the root to ``folder``.

    Only the folders on the path are restored, not their other contents.
    Must run inside ``transaction.atomic()``.

    Returns:
        Folders that were restored, outermost first.
    """
    chain: list[Folder] = []
    current: Folder | None = folder
    while current is not None and current.is_deleted:
        chain.append(current)
        current = current.parent

    for trashed in reversed(chain):
        trashed.name = restored_name(
            trashed.name,
            lambda candidate, item=trashed: Folder.objects.filter(
                owner_id=item.owner_id,
                parent_id=item.parent_id,
                name=candidate,
            ).exists(),
        )
        trashed.mark_restored()
        trashed.save(update_fields=['name', 'is_deleted', 'deleted_at'])
        logger.info('Folder restored with descendant: %s', trashed.pk)

    chain.reverse()
    return chain


# --- Creation ------------------------------------------------------------


def _get_or_create_child(parent: Folder, name: str) -> tuple[Folder, bool]:
    """Reuse or create a live child folder.

    A unique-constraint violation means another caller created the same
    folder concurrently; the lookup is retried and the winner reused.
    """
    existing = find_live_folder(parent, name)
    if existing is not None:
        return existing, False

    try:
        with transaction.atomic():
            folder = Folder.objects.create(
                owner_id=parent.owner_id,
                parent=parent,
                name=name,
            )
    except IntegrityError as error:
        existing = find_live_folder(parent, name)
        if existing is None:
            logger.exception(
                'Failed to create folder %r under %s',
                name,
                parent.pk,
            )
            raise ConflictError(
                f'Could not create folder {name!r}',
            ) from error
        logger.info(
            'Folder %r created concurrently under %s, reusing %s',
            name,
            parent.pk,
            existing.pk,
        )
        return existing, False

    return folder, True


def create_folder(
    user: _User,
    name: str,
    parent_id: uuid.UUID | str | None = None,
) -> Folder:
    """Create a folder, or return the live sibling with the same name.

    Args:
        user: Caller.
        name: Folder name.
        parent_id: Parent folder; the caller's root when omitted.

    Returns:
        The new folder, or the existing one with that name.

    Raises:
        InvalidInputError: If the name is invalid.
        NotFoundError: If the parent does not exist or is trashed.
        ForbiddenError: If the caller cannot edit the parent.
    """
    name = validate_item_name(name)
    parent = resolve_folder(user, parent_id, Permission.EDIT)

    folder, created = _get_or_create_child(parent, name)
    if created:
        logger.info(
            'Folder created: %r (ID: %s, parent: %s)',
            name,
            folder.pk,
            parent.pk,
        )
        log_activity(
            user,
            ActivityAction.FOLDER_CREATE,
            ItemType.FOLDER,
            folder.pk,
            folder.name,
            {'parent_id': str(parent.pk)},
        )
    return folder


def ensure_path(
    user: _User,
    segments: list[str] | str,
    base_folder_id: uuid.UUID | str | None = None,
) -> Folder:
    """Make sure a chain of folders exists below a base folder.

    Existing folders are reused, missing ones created.

    Args:
        user: Caller.
        segments: Folder names, or a ``/`` separated path.
        base_folder_id: Folder the path is relative to (caller's root
            when omitted).

    Returns:
        Folder for the last segment (the base folder for an empty path).
    """
    if isinstance(segments, str):
        segments = [part for part in segments.split('/') if part.strip()]
    names = [validate_item_name(segment) for segment in segments]

    current = resolve_folder(user, base_folder_id, Permission.EDIT)
    for name in names:
        current, created = _get_or_create_child(current, name)
        if created:
            logger.info(
                'Folder created for path: %r (ID: %s)',
                name,
                current.pk,
            )
    return current


# --- Rename / move -------------------------------------------------------


def _save_or_conflict(
    item: File | Folder,
    fields: list[str],
    message: str,
) -> None:
    try:
        with transaction.atomic():
            item.save(update_fields=fields)
    except IntegrityError as error:
        raise ConflictError(message) from error


def rename_folder(
    user: _User,
    folder_id: uuid.UUID | str,
    new_name: str,
) -> Folder:
    """Rename a folder.

    Raises:
        InvalidInputError: If the name is invalid or the folder is root.
        ConflictError: If a live sibling already has the name.
    """
    new_name = validate_item_name(new_name)
    folder = get_accessible_folder(user, folder_id, Permission.EDIT)
    if folder.is_root:
        raise InvalidInputError('Cannot rename the root folder')

    existing = find_live_folder(folder.parent, new_name)
    if existing is not None and existing.pk != folder.pk:
        raise ConflictError(
            f'A folder named {new_name!r} already exists in this location',
        )

    old_name = folder.name
    folder.name = new_name
    _save_or_conflict(
        folder,
        ['name'],
        f'A folder named {new_name!r} already exists in this location',
    )

    logger.info(
        'Folder renamed: %r -> %r (ID: %s)',
        old_name,
        new_name,
        folder.pk,
    )
    log_activity(
        user,
        ActivityAction.FOLDER_RENAME,
        ItemType.FOLDER,
        folder.pk,
        new_name,
        {'old_name': old_name},
    )
    return folder


def rename_file(
    user: _User,
    file_id: uuid.UUID | str,
    new_name: str,
) -> File:
    """Rename a file.

    Raises:
        InvalidInputError: If the name is invalid.
        ConflictError: If a live sibling already has the name.
    """
    new_name = validate_item_name(new_name)
    file_instance = get_accessible_file(user, file_id, Permission.EDIT)
    folder = file_instance.folder or get_root_folder_of(file_instance.owner_id)

    existing = find_live_file(folder, new_name)
    if existing is not None and existing.pk != file_instance.pk:
        raise ConflictError(
            f'A file named {new_name!r} already exists in this location',
        )

    old_name = file_instance.name
    file_instance.name = new_name
    _save_or_conflict(
        file_instance,
        ['name', 'updated_at'],
        f'A file named {new_name!r} already exists in this location',
    )

    logger.info(
        'File renamed: %r -> %r (ID: %s)',
        old_name,
        new_name,
        file_instance.pk,
    )
    log_activity(
        user,
        ActivityAction.FILE_RENAME,
        ItemType.FILE,
        file_instance.pk,
        new_name,
        {'old_name': old_name},
    )
    return file_instance


def _resolve_destination(
    user: _User,
    owner_id: int,
    target_folder_id: uuid.UUID | str | None,
) -> Folder:
    """Destination folder of a move; the item owner's root when omitted."""
    if target_folder_id is None:
        target = get_root_folder_of(owner_id)
        if owner_id != user.pk:
            get_accessible_folder(user, target.pk, Permission.EDIT)
        return target

    target = get_accessible_folder(user, target_folder_id, Permission.EDIT)
    if target.owner_id != owner_id:
        raise InvalidInputError('Cannot move items between different owners')
    return target


def move_folder(
    user: _User,
    folder_id: uuid.UUID | str,
    target_folder_id: uuid.UUID | str | None,
) -> Folder:
    """Move a folder under another folder.

    Raises:
        InvalidInputError: If the folder is root or owners differ.
        ConflictError: If the target is the folder itself or one of its
            descendants, or a live sibling in the target has the name.
    """
    folder = get_accessible_folder(user, folder_id, Permission.EDIT)
    if folder.is_root:
        raise InvalidInputError('Cannot move the root folder')

    target = _resolve_destination(user, folder.owner_id, target_folder_id)
    if folder.pk in get_ancestor_ids(target.pk):
        raise ConflictError(
            'Cannot move a folder into itself or its descendants',
        )

    if target.pk == folder.parent_id:
        return folder

    existing = find_live_folder(target, folder.name)
    if existing is not None:
        raise ConflictError(
            f'A folder named {folder.name!r} already exists in the target',
        )

    old_parent_id = folder.parent_id
    folder.parent = target
    _save_or_conflict(
        folder,
        ['parent'],
        f'A folder named {folder.name!r} already exists in the target',
    )

    logger.info(
        'Folder moved: %s from %s to %s',
        folder.pk,
        old_parent_id,
        target.pk,
    )
    log_activity(
        user,
        ActivityAction.FOLDER_MOVE,
        ItemType.FOLDER,
        folder.pk,
        folder.name,
        {'from': str(old_parent_id), 'to': str(target.pk)},
    )
    return folder


def move_file(
    user: _User,
    file_id: uuid.UUID | str,
    target_folder_id: uuid.UUID | str | None,
) -> File:
    """Move a file into another folder.

    Raises:
        InvalidInputError: If owners differ.
        ConflictError: If a live file in the target has the name.
    """
    file_instance = get_accessible_file(user, file_id, Permission.EDIT)
    target = _resolve_destination(
        user,
        file_instance.owner_id,
        target_folder_id,
    )

    existing = find_live_file(target, file_instance.name)
    if existing is not None:
        if existing.pk == file_instance.pk:
            return file_instance
        raise ConflictError(
            f'File {file_instance.name!r} already exists in the target',
        )

    old_folder_id = file_instance.folder_id
    file_instance.folder = target
    _save_or_conflict(
        file_instance,
        ['folder', 'updated_at'],
        f'File {file_instance.name!r} already exists in the target',
    )

    logger.info(
        'File moved: %s from %s to %s',
        file_instance.pk,
        old_folder_id,
        target.pk,
    )
    log_activity(
        user,
        ActivityAction.FILE_MOVE,
        ItemType.FILE,
        file_instance.pk,
        file_instance.name,
        {'from': str(old_folder_id), 'to': str(target.pk)},
    )
    return file_instance


# --- Views ---------------------------------------------------------------


def get_ancestors(user: _User, folder_id: uuid.UUID | str) -> list[Folder]:
    """Breadcrumb chain from the owner's root down to a folder.

    Args:
        user: Caller (needs view access on the folder).
        folder_id: Folder identifier.

    Returns:
        Folders ordered root first, the folder itself last.
    """
    folder = get_accessible_folder(user, folder_id, Permission.VIEW)
    ancestor_ids = get_ancestor_ids(folder.pk)
    by_id = Folder.all_objects.in_bulk(ancestor_ids)
    return [by_id[ancestor_id] for ancestor_id in reversed(ancestor_ids)]


def get_view(
    user: _User,
    folder_id: uuid.UUID | str | None = None,
) -> FolderView:
    """List a folder with sizes, contents and the caller's storage usage.

    Args:
        user: Caller (needs view access on the folder).
        folder_id: Folder to list; the caller's root when omitted.

    Returns:
        FolderView of the folder.
    """
    folder = resolve_folder(user, folder_id, Permission.VIEW)
    logger.debug('Listing folder %s for user %s', folder.pk, user.pk)

    child_entries = [
        FolderEntry(folder=child, size=compute_folder_size(child))
        for child in list_child_folders(folder)
    ]

    return FolderView(
        folder=folder,
        parent_name=folder.parent.name if folder.parent_id else None,
        size=compute_folder_size(folder),
        folders=child_entries,
        files=list(list_folder_files(folder)),
        storage=get_storage_snapshot(user),
    )
