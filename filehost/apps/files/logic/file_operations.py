"""Business logic for file operations.

Every upload writes a new immutable version. Content goes to storage under
a per-version key before any row is written; if the rows cannot be
committed the stored object is rolled back, so a failed upload never
leaves a database row pointing at missing bytes.
"""

import logging
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, BinaryIO, final

from django.db import IntegrityError, transaction

from filehost.apps.activity.logic.activity_operations import log_activity
from filehost.apps.activity.models import ActivityAction
from filehost.apps.files.exceptions import (
    ConflictError,
    FileHostError,
    ForbiddenError,
    InternalError,
    NotFoundError,
)
from filehost.apps.files.infrastructure.metadata import (
    build_storage_key,
    calculate_checksum,
    detect_mime_type,
    get_content_size,
    parse_item_id,
    split_relative_path,
    validate_item_name,
)
from filehost.apps.files.infrastructure.storage import (
    ContentStore,
    get_content_store,
)
from filehost.apps.files.logic.quota_operations import assert_within_quota
from filehost.apps.files.logic.results import BatchResult, PurgeResult
from filehost.apps.files.logic.tree_operations import (
    ensure_path,
    files_in_folder_q,
    get_root_folder_of,
    resolve_folder,
    restored_name,
    revive_folder_chain,
)
from filehost.apps.files.models import File, FileVersion, Folder
from filehost.apps.sharing.logic.permissions import get_accessible_file
from filehost.apps.sharing.models import ItemType, Permission, UserShare

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class UploadResult:
    """File after an upload and the version the upload created."""

    file: File
    version: FileVersion


@final
@dataclass(frozen=True, slots=True)
class DownloadStream:
    """Content of a file version ready to be streamed to a client.

    Closing ``chunks`` early releases the storage stream.
    """

    name: str
    size: int
    content_type: str
    chunks: Iterator[bytes]


@dataclass(frozen=True, slots=True)
class _Content:
    size: int
    checksum: str
    mime_type: str


def _write_version(
    owner: _User,
    folder: Folder,
    name: str,
    content: BinaryIO,
    meta: _Content,
    store: ContentStore,
) -> UploadResult:
    """Store content and record it as a new file or a new version.

    Transaction safety: the quota row is locked first, the bytes are
    uploaded, then rows are written. Any failure deletes the uploaded
    object again (rollback).
    """
    stored_key = None
    try:
        with transaction.atomic():
            existing = (
                File.objects
                .select_for_update()
                .filter(files_in_folder_q(folder), name=name)
                .first()
            )
            assert_within_quota(
                owner,
                meta.size,
                replacing_bytes=existing.size_bytes if existing else 0,
            )

            if existing is None:
                file_instance = File(owner=owner, folder=folder, name=name)
                version_number = 1
            else:
                file_instance = existing
                version_number = existing.current_version + 1

            stored_key = store.put(
                build_storage_key(
                    owner.pk,
                    file_instance.pk,
                    version_number,
                    meta.checksum,
                ),
                content,
            )

            file_instance.size_bytes = meta.size
            file_instance.mime_type = meta.mime_type
            file_instance.checksum_sha256 = meta.checksum
            file_instance.current_version = version_number
            file_instance.storage_key = stored_key
            file_instance.save(force_insert=existing is None)

            version = FileVersion.objects.create(
                file=file_instance,
                version=version_number,
                storage_key=stored_key,
                checksum_sha256=meta.checksum,
                size_bytes=meta.size,
            )
    except Exception:
        if stored_key is not None:
            logger.exception(
                'Database transaction failed, rolling back storage upload: %s',
                stored_key,
            )
            store.rollback(stored_key)
        raise

    logger.info(
        'File version stored: %r v%d (ID: %s, %d bytes)',
        name,
        version_number,
        file_instance.pk,
        meta.size,
    )
    return UploadResult(file=file_instance, version=version)


def upload_file(
    user: _User,
    folder_id: uuid.UUID | str | None,
    name: str,
    content: BinaryIO,
) -> UploadResult:
    """Upload content into a folder.

    A live file with the same name in the folder gets a new version;
    otherwise a new file is created. Uploads into a shared folder belong
    to, and are charged against, the folder's owner.

    Args:
        user: Caller.
        folder_id: Destination folder; the caller's root when omitted.
        name: File name.
        content: Seekable binary stream.

    Returns:
        UploadResult with the file and its new version.

    Raises:
        InvalidInputError: If the name is invalid.
        NotFoundError: If the folder does not exist or is trashed.
        ForbiddenError: If the caller cannot edit the folder.
        QuotaExceededError: If the upload would exceed the owner's quota.
        StorageUnavailableError: If the storage backend fails.
    """
    name = validate_item_name(name)
    folder = resolve_folder(user, folder_id, Permission.EDIT)
    owner = folder.owner

    logger.info('Calculating metadata for upload: %r', name)
    meta = _Content(
        size=get_content_size(content),
        checksum=calculate_checksum(content),
        mime_type=detect_mime_type(name),
    )
    store = get_content_store()

    try:
        result = _write_version(owner, folder, name, content, meta, store)
    except IntegrityError:
        # Same new name created concurrently, append to it instead
        logger.warning(
            'Concurrent upload of %r into %s, retrying as a new version',
            name,
            folder.pk,
        )
        try:
            result = _write_version(owner, folder, name, content, meta, store)
        except IntegrityError as error:
            raise ConflictError(f'Could not store {name!r}') from error

    log_activity(
        user,
        ActivityAction.FILE_UPLOAD,
        ItemType.FILE,
        result.file.pk,
        result.file.name,
        {'version': result.version.version, 'size': meta.size},
    )
    return result


def upload_files_with_paths(
    user: _User,
    entries: Iterable[tuple[str, BinaryIO]],
    base_folder_id: uuid.UUID | str | None = None,
) -> BatchResult:
    """Upload several files, creating folders from their relative paths.

    Each entry is independent: a failed entry is reported and the rest
    are still uploaded.

    Args:
        user: Caller.
        entries: Pairs of relative path (``'a/b/c.txt'``) and content.
        base_folder_id: Folder the paths are relative to.

    Returns:
        BatchResult with an UploadResult per uploaded entry and errors
        keyed by relative path.
    """
    results = BatchResult()
    for relative_path, content in entries:
        try:
            segments, name = split_relative_path(relative_path)
            folder = ensure_path(user, segments, base_folder_id)
            results.successes.append(
                upload_file(user, folder.pk, name, content),
            )
        except FileHostError as error:
            logger.warning('Upload of %r failed: %s', relative_path, error)
            results.add_error(relative_path, ItemType.FILE, error)
        except Exception as error:
            logger.exception('Unexpected failure uploading %r', relative_path)
            results.add_error(
                relative_path,
                ItemType.FILE,
                InternalError(str(error)),
            )

    logger.info(
        'Multi-file upload finished: %d stored, %d failed',
        len(results.successes),
        len(results.errors),
    )
    return results


def _open_stream(name: str, key: str, content_type: str) -> DownloadStream:
    stored = get_content_store().get(key)
    return DownloadStream(
        name=name,
        size=stored.size,
        content_type=content_type,
        chunks=stored.chunks(),
    )


def download_file(user: _User, file_id: uuid.UUID | str) -> DownloadStream:
    """Open the current version of a file for streaming.

    Raises:
        NotFoundError: If the file does not exist or is trashed.
        ForbiddenError: If the caller has no view access.
        StorageUnavailableError: If the storage backend fails.
    """
    file_instance = get_accessible_file(user, file_id, Permission.VIEW)
    logger.debug(
        'Opening download: %s (%s)',
        file_instance.pk,
        file_instance.storage_key,
    )
    stream = _open_stream(
        file_instance.name,
        file_instance.storage_key,
        file_instance.mime_type,
    )

    log_activity(
        user,
        ActivityAction.FILE_DOWNLOAD,
        ItemType.FILE,
        file_instance.pk,
        file_instance.name,
    )
    return stream


def download_version(
    user: _User,
    file_id: uuid.UUID | str,
    version: int,
) -> DownloadStream:
    """Open a specific version of a live file for streaming."""
    file_instance = get_accessible_file(user, file_id, Permission.VIEW)
    file_version = file_instance.versions.filter(version=version).first()
    if file_version is None:
        raise NotFoundError(
            f'Version {version} not found for file {file_instance.pk}',
        )
    return _open_stream(
        file_instance.name,
        file_version.storage_key,
        file_instance.mime_type,
    )


def list_versions(user: _User, file_id: uuid.UUID | str) -> list[FileVersion]:
    """Version history of a file, newest first."""
    file_instance = get_accessible_file(user, file_id, Permission.VIEW)
    return list(file_instance.versions.order_by('-version'))


def delete_file(user: _User, file_id: uuid.UUID | str) -> File:
    """Move a file into the trash.

    The file stops counting against the owner's quota; its content stays
    in storage until it is permanently deleted.

    Raises:
        NotFoundError: If the file does not exist or is already trashed.
        ForbiddenError: If the caller cannot edit the file.
    """
    file_instance = get_accessible_file(user, file_id, Permission.EDIT)
    file_instance.mark_deleted()
    file_instance.save(update_fields=['is_deleted', 'deleted_at'])

    logger.info(
        'File moved to trash: %r (ID: %s)',
        file_instance.name,
        file_instance.pk,
    )
    log_activity(
        user,
        ActivityAction.FILE_DELETE,
        ItemType.FILE,
        file_instance.pk,
        file_instance.name,
    )
    return file_instance


def restore_file(user: _User, file_id: uuid.UUID | str) -> File:
    """Bring a file back from the trash.

    Trashed folders on the way to the file are restored with it. If a
    live sibling took the name in the meantime the file is renamed to
    ``name (restored)``.

    Raises:
        NotFoundError: If the file does not exist.
        ForbiddenError: If the caller cannot edit the file.
        ConflictError: If the file is not in the trash.
        QuotaExceededError: If its bytes no longer fit in the quota.
    """
    file_instance = get_accessible_file(
        user,
        file_id,
        Permission.EDIT,
        include_deleted=True,
    )
    if not file_instance.is_deleted:
        raise ConflictError(f'File {file_instance.name!r} is not in the trash')

    with transaction.atomic():
        assert_within_quota(file_instance.owner, file_instance.size_bytes)

        folder = file_instance.folder or get_root_folder_of(
            file_instance.owner_id,
        )
        revive_folder_chain(folder)

        original_name = file_instance.name
        file_instance.name = restored_name(
            original_name,
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

    logger.info(
        'File restored: %r (ID: %s, was %r)',
        file_instance.name,
        file_instance.pk,
        original_name,
    )
    log_activity(
        user,
        ActivityAction.FILE_RESTORE,
        ItemType.FILE,
        file_instance.pk,
        file_instance.name,
    )
    return file_instance


def purge_files(
    files: Iterable[File],
    store: ContentStore | None = None,
) -> PurgeResult:
    """Delete the stored versions and rows of files.

    Storage deletion is best-effort: keys that fail are reported and the
    rows are removed anyway, so a broken backend cannot wedge the trash.

    Args:
        files: Files to purge (live or trashed).
        store: Content store; the configured one when omitted.

    Returns:
        PurgeResult for the files.
    """
    store = store or get_content_store()
    result = PurgeResult()
    file_ids = []

    for file_instance in files:
        keys = set(
            file_instance.versions.values_list('storage_key', flat=True),
        )
        keys.add(file_instance.storage_key)
        for key in sorted(filter(None, keys)):
            try:
                store.delete(key)
            except FileHostError:
                logger.exception('Failed to delete stored version: %s', key)
                result.failed_keys.append(key)
        file_ids.append(file_instance.pk)
        result.bytes_freed += file_instance.size_bytes

    with transaction.atomic():
        UserShare.objects.filter(
            item_type=ItemType.FILE,
            item_id__in=file_ids,
        ).delete()
        File.all_objects.filter(pk__in=file_ids).delete()
    result.files_purged = len(file_ids)

    return result


def permanently_delete_file(
    user: _User,
    file_id: uuid.UUID | str,
) -> PurgeResult:
    """Irreversibly remove a file, its versions and their content.

    Raises:
        NotFoundError: If the file does not exist.
        ForbiddenError: If the caller is not the owner.
    """
    file_instance = File.all_objects.filter(pk=parse_item_id(file_id)).first()
    if file_instance is None:
        raise NotFoundError(f'File not found: {file_id}')
    if file_instance.owner_id != user.pk:
        raise ForbiddenError('Only the owner can permanently delete a file')

    result = purge_files([file_instance])
    logger.info(
        'File permanently deleted: %r (ID: %s, %d storage failures)',
        file_instance.name,
        file_instance.pk,
        len(result.failed_keys),
    )
    log_activity(
        user,
        ActivityAction.FILE_PURGE,
        ItemType.FILE,
        file_instance.pk,
        file_instance.name,
    )
    return result
