"""Permission resolution for files and folders.

Access is granted, in order, by ownership, by a direct share on the item,
or by a share on any ancestor folder of the item up to the owner's root.
"""

import logging
import uuid
from typing import Any, Final

from django.db.models import Q

from filehost.apps.files.exceptions import (
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from filehost.apps.files.infrastructure.metadata import parse_item_id
from filehost.apps.files.models import File, Folder
from filehost.apps.sharing.models import ItemType, Permission, UserShare

# User type for Django's dynamic user model
_User = Any

_ITEM_MODELS: Final = {
    ItemType.FILE: File,
    ItemType.FOLDER: Folder,
}

logger = logging.getLogger(__name__)


def get_item_model(item_type: str) -> type[File] | type[Folder]:
    """Model class behind an item type.

    Raises:
        InvalidInputError: If the item type is unknown.
    """
    try:
        return _ITEM_MODELS[ItemType(item_type)]
    except ValueError as error:
        raise InvalidInputError(f'Unknown item type: {item_type!r}') from error


def get_required_permission(required: str) -> Permission:
    """Permission level behind a requested access.

    Raises:
        InvalidInputError: If the permission is unknown.
    """
    try:
        return Permission(required)
    except ValueError as error:
        raise InvalidInputError(
            f'Unknown permission: {required!r}',
        ) from error


def get_ancestor_ids(folder_id: uuid.UUID | None) -> list[uuid.UUID]:
    """Collect a folder and all of its ancestors, nearest first.

    Trashed folders are included: the chain is structural.

    Args:
        folder_id: Folder to start from.

    Returns:
        List of folder ids from ``folder_id`` up to the root.
    """
    ancestors: list[uuid.UUID] = []
    current = folder_id
    while current is not None and current not in ancestors:
        ancestors.append(current)
        current = (
            Folder.all_objects
            .filter(pk=current)
            .values_list('parent_id', flat=True)
            .first()
        )
    return ancestors


def _containing_folder_id(item: File | Folder) -> uuid.UUID | None:
    """First folder above the item in the tree."""
    if isinstance(item, Folder):
        return item.parent_id
    if item.folder_id is not None:
        return item.folder_id
    # Files with no folder live in the owner's root
    return (
        Folder.all_objects
        .filter(owner_id=item.owner_id, parent__isnull=True)
        .values_list('id', flat=True)
        .first()
    )


def has_item_permission(
    user: _User,
    item: File | Folder,
    required: str,
) -> bool:
    """Resolve permission for an already loaded item.

    Args:
        user: User requesting access.
        item: File or folder instance.
        required: ``view`` or ``edit``.

    Returns:
        True if ownership, a direct share or an inherited share grants
        the required permission.

    Raises:
        InvalidInputError: If the required permission is unknown.
    """
    required = get_required_permission(required)
    if item.owner_id == user.pk:
        return True

    item_type = ItemType.FOLDER if isinstance(item, Folder) else ItemType.FILE
    ancestor_ids = get_ancestor_ids(_containing_folder_id(item))

    shares = UserShare.objects.filter(
        Q(item_type=item_type, item_id=item.pk)
        | Q(item_type=ItemType.FOLDER, item_id__in=ancestor_ids),
        shared_with=user,
    )
    granted = any(share.grants(required) for share in shares)

    logger.debug(
        'Permission %s for user %s on %s %s: %s',
        required,
        user.pk,
        item_type,
        item.pk,
        granted,
    )
    return granted


def has_permission(
    user: _User,
    item_type: str,
    item_id: uuid.UUID | str,
    required: str,
) -> bool:
    """Resolve the effective permission of a user on an item.

    Args:
        user: User requesting access.
        item_type: ``file`` or ``folder``.
        item_id: Item identifier.
        required: ``view`` or ``edit``.

    Returns:
        True if access is granted, False otherwise (including when the
        item does not exist).

    Raises:
        InvalidInputError: If the item type or permission is unknown.
    """
    model = get_item_model(item_type)
    required = get_required_permission(required)
    item = model.all_objects.filter(pk=parse_item_id(item_id)).first()
    if item is None:
        return False
    return has_item_permission(user, item, required)


def ensure_permission(
    user: _User,
    item: File | Folder,
    required: str,
) -> None:
    """Raise unless the user holds the required permission.

    Raises:
        ForbiddenError: If access is not granted.
    """
    if not has_item_permission(user, item, required):
        logger.warning(
            'Access denied for user %s: %s on %s',
            user.pk,
            required,
            item.pk,
        )
        raise ForbiddenError(
            f'{required.capitalize()} access denied for {item.name!r}',
        )


def get_accessible_folder(
    user: _User,
    folder_id: uuid.UUID | str,
    required: str = Permission.VIEW,
    *,
    include_deleted: bool = False,
) -> Folder:
    """Load a folder and check the caller's access to it.

    Args:
        user: Caller.
        folder_id: Folder identifier.
        required: Permission needed.
        include_deleted: Whether trashed folders can be returned.

    Returns:
        Folder instance.

    Raises:
        NotFoundError: If the folder does not exist (or is trashed).
        ForbiddenError: If access is not granted.
    """
    manager = Folder.all_objects if include_deleted else Folder.objects
    folder = manager.filter(pk=parse_item_id(folder_id)).first()
    if folder is None:
        raise NotFoundError(f'Folder not found: {folder_id}')
    ensure_permission(user, folder, required)
    return folder


def get_accessible_file(
    user: _User,
    file_id: uuid.UUID | str,
    required: str = Permission.VIEW,
    *,
    include_deleted: bool = False,
) -> File:
    """Load a file and check the caller's access to it.

    Args:
        user: Caller.
        file_id: File identifier.
        required: Permission needed.
        include_deleted: Whether trashed files can be returned.

    Returns:
        File instance.

    Raises:
        NotFoundError: If the file does not exist (or is trashed).
        ForbiddenError: If access is not granted.
    """
    manager = File.all_objects if include_deleted else File.objects
    file_instance = manager.filter(pk=parse_item_id(file_id)).first()
    if file_instance is None:
        raise NotFoundError(f'File not found: {file_id}')
    ensure_permission(user, file_instance, required)
    return file_instance
