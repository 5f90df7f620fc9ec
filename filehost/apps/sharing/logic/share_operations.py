"""Business logic for creating, changing and revoking shares."""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, final

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from filehost.apps.activity.logic.activity_operations import log_activity
from filehost.apps.activity.models import ActivityAction
from filehost.apps.files.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from filehost.apps.files.infrastructure.metadata import parse_item_id
from filehost.apps.files.models import File, Folder
from filehost.apps.sharing.logic.permissions import (
    get_item_model,
    get_required_permission,
)
from filehost.apps.sharing.models import ItemType, Permission, UserShare

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class SharedItem:
    """Share received by a user together with the live item it grants."""

    share: UserShare
    item: File | Folder


def _get_owned_share(owner: _User, share_id: uuid.UUID | str) -> UserShare:
    share = UserShare.objects.filter(pk=parse_item_id(share_id)).first()
    if share is None:
        raise NotFoundError(f'Share not found: {share_id}')
    if share.owner_id != owner.pk:
        raise ForbiddenError('Only the owner can manage this share')
    return share


def create_share(  # noqa: WPS211
    owner: _User,
    item_type: str,
    item_id: uuid.UUID | str,
    email: str,
    permission: str = Permission.VIEW,
) -> UserShare:
    """Share a file or folder with another user.

    A folder share also grants access to everything below the folder.

    Args:
        owner: Owner of the item.
        item_type: ``file`` or ``folder``.
        item_id: Item identifier.
        email: Email of the user to share with.
        permission: ``view`` or ``edit``.

    Returns:
        Created UserShare.

    Raises:
        InvalidInputError: If the type or permission is unknown, or the
            owner shares with themselves.
        NotFoundError: If the item or the target user does not exist.
        ForbiddenError: If the caller does not own the item.
        ConflictError: If the item is already shared with the user.
    """
    model = get_item_model(item_type)
    permission = get_required_permission(permission)

    item = model.objects.filter(pk=parse_item_id(item_id)).first()
    if item is None:
        raise NotFoundError(f'{item_type.capitalize()} not found: {item_id}')
    if item.owner_id != owner.pk:
        raise ForbiddenError('Only the owner can share this item')

    target = get_user_model().objects.filter(email__iexact=email).first()
    if target is None:
        raise NotFoundError(f'User not found: {email}')
    if target.pk == owner.pk:
        raise InvalidInputError('Cannot share an item with yourself')

    conflict = f'{item.name!r} is already shared with {email}'
    if UserShare.objects.filter(
        item_id=item.pk,
        item_type=item_type,
        shared_with=target,
    ).exists():
        raise ConflictError(conflict)

    try:
        with transaction.atomic():
            share = UserShare.objects.create(
                item_id=item.pk,
                item_type=item_type,
                owner=owner,
                shared_with=target,
                permission=permission,
            )
    except IntegrityError as error:
        raise ConflictError(conflict) from error

    logger.info(
        'Share created: %s %s -> user %s (%s)',
        item_type,
        item.pk,
        target.pk,
        permission,
    )
    log_activity(
        owner,
        ActivityAction.SHARE_CREATE,
        item_type,
        item.pk,
        item.name,
        {'shared_with': target.pk, 'permission': permission},
    )
    return share


def update_share_permission(
    owner: _User,
    share_id: uuid.UUID | str,
    permission: str,
) -> UserShare:
    """Change the permission level of an existing share.

    Raises:
        InvalidInputError: If the permission is unknown.
        NotFoundError: If the share does not exist.
        ForbiddenError: If the caller does not own the share.
    """
    permission = get_required_permission(permission)
    share = _get_owned_share(owner, share_id)

    share.permission = permission
    share.save(update_fields=['permission'])

    logger.info('Share %s permission set to %s', share.pk, permission)
    log_activity(
        owner,
        ActivityAction.SHARE_UPDATE,
        share.item_type,
        share.item_id,
        metadata={'share_id': str(share.pk), 'permission': permission},
    )
    return share


def revoke_share(owner: _User, share_id: uuid.UUID | str) -> None:
    """Remove a share; access inherited from it ends immediately.

    Raises:
        NotFoundError: If the share does not exist.
        ForbiddenError: If the caller does not own the share.
    """
    share = _get_owned_share(owner, share_id)
    share.delete()

    logger.info(
        'Share revoked: %s %s from user %s',
        share.item_type,
        share.item_id,
        share.shared_with_id,
    )
    log_activity(
        owner,
        ActivityAction.SHARE_REVOKE,
        share.item_type,
        share.item_id,
        metadata={'shared_with': share.shared_with_id},
    )


def _item_ids(shares: list[UserShare], item_type: str) -> list[uuid.UUID]:
    return [share.item_id for share in shares if share.item_type == item_type]


def list_shared_with_me(user: _User) -> list[SharedItem]:
    """Shares received by a user whose item is still live, newest first."""
    shares = list(
        UserShare.objects.filter(shared_with=user).select_related('owner'),
    )
    items: dict[str, dict[uuid.UUID, File | Folder]] = {
        ItemType.FILE: File.objects.in_bulk(_item_ids(shares, ItemType.FILE)),
        ItemType.FOLDER: Folder.objects.in_bulk(
            _item_ids(shares, ItemType.FOLDER),
        ),
    }
    return [
        SharedItem(share=share, item=items[share.item_type][share.item_id])
        for share in shares
        if share.item_id in items[share.item_type]
    ]


def list_sent_shares(owner: _User) -> list[UserShare]:
    """Shares created by a user, newest first."""
    return list(
        UserShare.objects.filter(owner=owner).select_related('shared_with'),
    )
