"""Management command to purge expired items from the trash."""

import logging
from datetime import timedelta
from typing import Any, Final

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from filehost.apps.files.logic.trash_operations import (
    find_expired,
    purge_expired,
)

_DEFAULT_BATCH_SIZE: Final = 1000

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Permanently delete files and folders trashed long enough ago."""

    help = 'Purge trashed files and folders past the retention period'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help=(
                'Retention in days (default: '
                'FILEHOST_TRASH_RETENTION_DAYS setting)'
            ),
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be purged without deleting',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=(
                'Max folders and max files to process '
                f'(default: {_DEFAULT_BATCH_SIZE})'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the purge command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        days = options['days']
        if days is None:
            days = settings.FILEHOST_TRASH_RETENTION_DAYS
        if days < 0:
            raise CommandError('--days cannot be negative')
        batch_size = options['batch_size']

        cutoff = timezone.now() - timedelta(days=days)
        self.stdout.write(
            f'Looking for items trashed before {cutoff} '
            f'(older than {days} days)',
        )

        if options['dry_run']:
            self._report(cutoff, batch_size)
            return

        result = purge_expired(cutoff, limit=batch_size)
        for key in result.failed_keys:
            logger.warning('Orphaned object after purge: %s', key)
            self.stderr.write(f'Failed to delete stored object: {key}')

        self.stdout.write(
            self.style.SUCCESS(
                f'Purged {result.folders_purged} folders and '
                f'{result.files_purged} files from trash, '
                f'{len(result.failed_keys)} storage deletions failed',
            ),
        )

    def _report(self, cutoff: Any, batch_size: int) -> None:
        folders, files = find_expired(cutoff)
        folders = list(folders[:batch_size])
        files = list(files[:batch_size])

        for folder in folders:
            self.stdout.write(
                f'Would purge folder: {folder.name} '
                f'(owner: {folder.owner_id}, deleted: {folder.deleted_at})',
            )
        for file_instance in files:
            self.stdout.write(
                f'Would purge file: {file_instance.name} '
                f'(owner: {file_instance.owner_id}, '
                f'deleted: {file_instance.deleted_at})',
            )

        self.stdout.write(
            self.style.SUCCESS(
                f'Would purge {len(folders)} folders and '
                f'{len(files)} files from trash',
            ),
        )
