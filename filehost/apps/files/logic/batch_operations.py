"""Batch delete, move and restore over mixed file and folder lists.

Items are processed one by one, each in its own transaction. A failing
item is reported and never rolls back or stops the others.
"""

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from django.db import transaction

from filehost.apps.activity.logic.activity_operations import log_activity
from filehost.apps.activity.models import ActivityAction
from filehost.apps.files.exceptions import (
    FileHostError,
    InternalError,
    InvalidInputError,
)
from filehost.apps.files.logic import (
    file_operations,
    folder_operations,
    tree_operations,
)
from filehost.apps.files.logic.results import BatchResult
from filehost.apps.sharing.models import ItemType

# User type for Django's dynamic user model
_User = Any

_ItemOperation = Callable[[str, Any], object]

logger = logging.getLogger(__name__)


def _run_batch(
    user: _User,
    items: Iterable[Mapping[str, Any]],
    action: str,
    operation: _ItemOperation,
) -> BatchResult:
    results = BatchResult()
    for item in items:
        item_id = item.get('id')
        item_type = item.get('type')
        try:
            if item_type not in ItemType.values:
                raise InvalidInputError(f'Unknown item type: {item_type!r}')
            with transaction.atomic():
                operation(item_type, item_id)
        except FileHostError as error:
            logger.warning(
                'Batch %s failed for %s %s: %s',
                action,
                item_type,
                item_id,
                error,
            )
            results.add_error(str(item_id), str(item_type), error)
        except Exception as error:
            logger.exception(
                'Unexpected batch %s failure for %s %s',
                action,
                item_type,
                item_id,
            )
            results.add_error(
                str(item_id),
                str(item_type),
                InternalError(str(error)),
            )
        else:
            results.successes.append(str(item_id))

    logger.info(
        'Batch %s for user %s: %d succeeded, %d failed',
        action,
        user.pk,
        len(results.successes),
        len(results.errors),
    )
    return results


def batch_delete(
    user: _User,
    items: Iterable[Mapping[str, Any]],
) -> BatchResult:
    """Move files and folders to the trash; folders go recursively.

    Args:
        user: Caller.
        items: ``{'id': ..., 'type': 'file' | 'folder'}`` mappings.

    Returns:
        BatchResult with succeeded ids and per-item errors.
    """
    def delete_item(item_type: str, item_id: Any) -> object:
        if item_type == ItemType.FILE:
            return file_operations.delete_file(user, item_id)
        return folder_operations.delete_folder(user, item_id, recursive=True)

    results = _run_batch(user, items, 'delete', delete_item)
    log_activity(
        user,
        ActivityAction.BATCH_DELETE,
        metadata={
            'succeeded': len(results.successes),
            'failed': len(results.errors),
        },
    )
    return results


def batch_move(
    user: _User,
    items: Iterable[Mapping[str, Any]],
    target_folder_id: uuid.UUID | str | None,
) -> BatchResult:
    """Move files and folders into one target folder.

    Args:
        user: Caller.
        items: ``{'id': ..., 'type': 'file' | 'folder'}`` mappings.
        target_folder_id: Destination; the item owner's root when None.

    Returns:
        BatchResult with succeeded ids and per-item errors.
    """
    def move_item(item_type: str, item_id: Any) -> object:
        if item_type == ItemType.FILE:
            return tree_operations.move_file(user, item_id, target_folder_id)
        return tree_operations.move_folder(user, item_id, target_folder_id)

    results = _run_batch(user, items, 'move', move_item)
    log_activity(
        user,
        ActivityAction.BATCH_MOVE,
        ItemType.FOLDER,
        target_folder_id,
        metadata={
            'succeeded': len(results.successes),
            'failed': len(results.errors),
        },
    )
    return results


def batch_restore(
    user: _User,
    items: Iterable[Mapping[str, Any]],
) -> BatchResult:
    """Bring files and folders back from the trash.

    Args:
        user: Caller.
        items: ``{'id': ..., 'type': 'file' | 'folder'}`` mappings.

    Returns:
        BatchResult with succeeded ids and per-item errors.
    """
    def restore_item(item_type: str, item_id: Any) -> object:
        if item_type == ItemType.FILE:
            return file_operations.restore_file(user, item_id)
        return folder_operations.restore_folder(user, item_id)

    results = _run_batch(user, items, 'restore', restore_item)
    log_activity(
        user,
        ActivityAction.BATCH_RESTORE,
        metadata={
            'succeeded': len(results.successes),
            'failed': len(results.errors),
        },
    )
    return results
