"""Business logic for storage quota operations.

Used bytes are never stored. They are summed from non-deleted files on
every check, so soft-delete and restore change usage with no bookkeeping.
Writers serialize on the user's quota row: ``assert_within_quota`` takes a
``select_for_update`` lock that is held until the surrounding transaction
commits, so two concurrent uploads cannot both spend the same headroom.
"""

import logging
from dataclasses import dataclass
from typing import Any, final

from django.db import transaction
from django.db.models import Sum

from filehost.apps.files.exceptions import (
    InvalidInputError,
    QuotaExceededError,
)
from filehost.apps.files.models import File, UserQuota

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class StorageSnapshot:
    """Used bytes and ceiling of one user at a point in time."""

    used: int
    quota: int


def get_or_create_quota(user: _User) -> UserQuota:
    """Get or create quota for user (on-demand creation).

    Args:
        user: User to get quota for.

    Returns:
        UserQuota instance for the user.
    """
    quota, created = UserQuota.objects.get_or_create(user=user)
    if created:
        logger.info(
            'Created quota for user %s: %d bytes',
            user.pk,
            quota.quota_bytes,
        )
    return quota


def get_used_bytes(user: _User) -> int:
    """Sum sizes of the user's non-deleted files.

    Args:
        user: Owner of the files.

    Returns:
        Used bytes (trash excluded).
    """
    total = File.objects.filter(owner=user).aggregate(
        total=Sum('size_bytes'),
    )['total']
    return total or 0


def get_storage_snapshot(user: _User) -> StorageSnapshot:
    """Current usage and quota of a user."""
    quota = get_or_create_quota(user)
    return StorageSnapshot(used=get_used_bytes(user), quota=quota.quota_bytes)


def projected_usage(used: int, incoming: int, replacing: int = 0) -> int:
    """Usage after a write that adds ``incoming`` and frees ``replacing``."""
    return used - replacing + incoming


def exceeds_quota(
    used: int,
    quota: int,
    incoming: int,
    replacing: int = 0,
) -> bool:
    """Whether a write would push usage over the quota ceiling."""
    return projected_usage(used, incoming, replacing) > quota


def assert_within_quota(
    user: _User,
    incoming_bytes: int,
    replacing_bytes: int = 0,
) -> StorageSnapshot:
    """Lock the user's quota row and check a pending write against it.

    Must run inside ``transaction.atomic()``; the lock is released when
    that transaction ends, after the caller's write.

    Args:
        user: User whose quota is charged.
        incoming_bytes: Bytes the write adds.
        replacing_bytes: Bytes the write stops counting (for example the
            previous size of a file being re-uploaded).

    Returns:
        Snapshot taken under the lock, before the write.

    Raises:
        QuotaExceededError: If the write would exceed the quota.
    """
    get_or_create_quota(user)
    quota = UserQuota.objects.select_for_update().get(user=user)
    used = get_used_bytes(user)

    if exceeds_quota(used, quota.quota_bytes, incoming_bytes, replacing_bytes):
        required = incoming_bytes - replacing_bytes
        logger.warning(
            'Quota exceeded for user %s: need %d, have %d available',
            user.pk,
            required,
            quota.available_bytes(used),
        )
        raise QuotaExceededError(
            quota_bytes=quota.quota_bytes,
            used_bytes=used,
            required_bytes=required,
        )

    return StorageSnapshot(used=used, quota=quota.quota_bytes)


def set_quota(user: _User, quota_bytes: int) -> UserQuota:
    """Change a user's quota ceiling.

    Lowering the ceiling below current usage is allowed; further writes
    are rejected until usage drops.

    Args:
        user: User to update.
        quota_bytes: New ceiling in bytes.

    Returns:
        Updated UserQuota instance.

    Raises:
        InvalidInputError: If the ceiling is negative.
    """
    if quota_bytes < 0:
        raise InvalidInputError('Quota cannot be negative')

    with transaction.atomic():
        quota = get_or_create_quota(user)
        quota.quota_bytes = quota_bytes
        quota.save(update_fields=['quota_bytes'])

    logger.info('Quota for user %s set to %d bytes', user.pk, quota_bytes)
    return quota
