"""Signal handlers for files app."""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from filehost.apps.files.logic.quota_operations import get_or_create_quota
from filehost.apps.files.logic.tree_operations import ensure_root_folder

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def provision_account(
    sender: type,
    instance: object,
    created: bool,
    raw: bool = False,
    **kwargs: object,
) -> None:
    """Give every new user a root folder and a quota row.

    Both steps are idempotent, so re-running them for an existing
    account changes nothing.

    Args:
        sender: The user model class.
        instance: The saved user.
        created: Whether the row was just inserted.
        raw: Whether the save comes from fixture loading.
        **kwargs: Additional signal arguments.
    """
    if not created or raw:
        return

    root = ensure_root_folder(instance)
    quota = get_or_create_quota(instance)
    logger.info(
        'Provisioned account %s: root folder %s, quota %d bytes',
        instance.pk,
        root.pk,
        quota.quota_bytes,
    )
