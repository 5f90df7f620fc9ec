"""Recording and reading user activity.

Recording is fire-and-forget: a failure to write the log entry is logged
and never propagates into the operation that emitted it.
"""

import logging
from typing import Any

from django.db import transaction

from filehost.apps.activity.models import ActivityLog

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def log_activity(  # noqa: WPS211
    user: _User,
    action: str,
    resource_type: str = '',
    resource_id: Any = None,
    resource_name: str = '',
    metadata: dict[str, Any] | None = None,
) -> ActivityLog | None:
    """Record an activity entry without ever failing the caller.

    Args:
        user: Acting user.
        action: One of ``ActivityAction``.
        resource_type: ``file``, ``folder`` or ``share``.
        resource_id: Identifier of the affected resource.
        resource_name: Human-readable name of the resource.
        metadata: Extra JSON-serializable details.

    Returns:
        Created entry, or None if recording failed.
    """
    try:
        # Savepoint keeps a failed insert from breaking an outer transaction
        with transaction.atomic():
            return ActivityLog.objects.create(
                user=user,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                resource_name=resource_name,
                metadata=metadata or {},
            )
    except Exception:
        logger.exception(
            'Failed to record activity %s for user %s',
            action,
            getattr(user, 'pk', None),
        )
        return None


def list_activity(
    user: _User,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ActivityLog], int]:
    """Page through a user's activity, newest first.

    Args:
        user: Owner of the feed.
        limit: Page size.
        offset: Number of entries to skip.

    Returns:
        Tuple of the page entries and the total entry count.
    """
    queryset = ActivityLog.objects.filter(user=user)
    total = queryset.count()
    return list(queryset[offset:offset + limit]), total
