"""Tests for file operations business logic."""

import uuid

import pytest
from django.core.files.base import ContentFile
from django.db.models import Q

from filehost.apps.files.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
    StorageUnavailableError,
)
from filehost.apps.files.infrastructure.storage import ContentStore
from filehost.apps.files.logic import file_operations
from filehost.apps.files.logic.file_operations import (
    delete_file,
    download_file,
    download_version,
    list_versions,
    permanently_delete_file,
    restore_file,
    upload_file,
    upload_files_with_paths,
)
from filehost.apps.files.logic.quota_operations import get_used_bytes
from filehost.apps.files.logic.tree_operations import (
    create_folder,
    get_view,
)
from filehost.apps.files.models import File, FileVersion, Folder
from filehost.apps.sharing.models import UserShare


def _stored_keys(bucket):
    return sorted(obj.key for obj in bucket.objects.all())


def _share(owner, target, item, permission, item_type='folder'):
    return UserShare.objects.create(
        item_id=item.pk,
        item_type=item_type,
        owner=owner,
        shared_with=target,
        permission=permission,
    )


@pytest.mark.django_db
def test_upload_file_success(user, root, upload, bucket):
    """Test successful upload creates the file, version 1 and the object."""
    result = upload(user, 'notes.txt', b'hello world')

    file_instance = result.file
    assert file_instance.owner == user
    assert file_instance.folder == root
    assert file_instance.current_version == 1
    assert file_instance.size_bytes == 11
    assert file_instance.mime_type == 'text/plain'
    assert len(file_instance.checksum_sha256) == 64
    assert file_instance.storage_key.startswith(
        f'{user.pk}/{file_instance.pk}/v1-',
    )

    assert result.version.version == 1
    assert result.version.storage_key == file_instance.storage_key
    assert _stored_keys(bucket) == [file_instance.storage_key]


@pytest.mark.django_db
def test_upload_same_name_creates_new_version(user, upload, bucket):
    """Test re-uploading appends a version and keeps the old one intact."""
    first = upload(user, 'notes.txt', b'first')
    old_version = FileVersion.objects.get(file=first.file, version=1)

    second = upload(user, 'notes.txt', b'second version')

    assert second.file.pk == first.file.pk
    assert second.file.current_version == 2
    assert second.file.size_bytes == 14
    assert second.file.storage_key != old_version.storage_key

    old_version.refresh_from_db()
    assert old_version.size_bytes == 5
    assert old_version.storage_key == first.version.storage_key
    assert FileVersion.objects.filter(file=first.file).count() == 2
    assert len(_stored_keys(bucket)) == 2


@pytest.mark.django_db
def test_upload_into_folder(user, upload):
    """Test uploading into a subfolder."""
    folder = create_folder(user, 'Docs')

    result = upload(user, 'a.pdf', b'%PDF', folder=folder)

    assert result.file.folder == folder
    assert result.file.mime_type == 'application/pdf'


@pytest.mark.django_db
def test_upload_invalid_name(user, upload, bucket):
    """Test malformed names are rejected before anything is stored."""
    with pytest.raises(InvalidInputError):
        upload(user, 'a/b.txt', b'data')

    assert _stored_keys(bucket) == []


@pytest.mark.django_db
def test_upload_exceeds_quota(user, upload, bucket, small_quota):
    """Test the upload that would cross the quota is rejected whole."""
    upload(user, 'a.txt', b'x' * 600)

    with pytest.raises(QuotaExceededError) as exc_info:
        upload(user, 'b.txt', b'x' * 500)

    assert exc_info.value.required_bytes == 500
    assert get_used_bytes(user) == 600
    assert [item.name for item in get_view(user).files] == ['a.txt']
    assert len(_stored_keys(bucket)) == 1


@pytest.mark.django_db
def test_upload_new_version_counts_replaced_bytes(user, upload, small_quota):
    """Test a new version is charged only for the size difference."""
    upload(user, 'a.txt', b'x' * 600)

    result = upload(user, 'a.txt', b'x' * 900)

    assert result.file.current_version == 2
    assert get_used_bytes(user) == 900


@pytest.mark.django_db
def test_upload_after_trash_frees_quota(user, upload, small_quota):
    """Test trashing a file makes room for an upload that was rejected."""
    first = upload(user, 'a.txt', b'x' * 600).file
    assert get_used_bytes(user) == 600

    with pytest.raises(QuotaExceededError):
        upload(user, 'b.txt', b'x' * 600)
    assert get_used_bytes(user) == 600

    delete_file(user, first.pk)
    assert get_used_bytes(user) == 0

    second = upload(user, 'b.txt', b'x' * 600).file

    assert second.name == 'b.txt'
    assert get_used_bytes(user) == 600
    assert [item.name for item in get_view(user).files] == ['b.txt']


@pytest.mark.django_db
def test_upload_into_shared_folder(user, other_user, upload):
    """Test uploads into a shared folder belong to the folder owner."""
    shared = create_folder(user, 'Team')

    with pytest.raises(ForbiddenError):
        upload(other_user, 'a.txt', folder=shared)

    share = _share(user, other_user, shared, 'view')
    with pytest.raises(ForbiddenError):
        upload(other_user, 'a.txt', folder=shared)

    share.permission = 'edit'
    share.save()
    result = upload(other_user, 'a.txt', b'1234', folder=shared)

    assert result.file.owner == user
    assert get_used_bytes(user) == 4
    assert get_used_bytes(other_user) == 0


@pytest.mark.django_db
def test_upload_rolls_back_storage_on_db_failure(
    user,
    upload,
    bucket,
    monkeypatch,
):
    """Test a failed row write removes the stored object again."""
    def fail(*args, **kwargs):
        raise RuntimeError('database went away')

    monkeypatch.setattr(FileVersion.objects, 'create', fail)

    with pytest.raises(RuntimeError):
        upload(user, 'a.txt', b'data')

    assert not File.all_objects.filter(name='a.txt').exists()
    assert _stored_keys(bucket) == []


@pytest.mark.django_db
def test_upload_storage_failure(user, upload, monkeypatch):
    """Test a storage outage fails the upload without rows."""
    def fail(self, key, content):
        raise StorageUnavailableError(f'Storage put failed for {key}')

    monkeypatch.setattr(ContentStore, 'put', fail)

    with pytest.raises(StorageUnavailableError):
        upload(user, 'a.txt', b'data')

    assert not File.all_objects.filter(name='a.txt').exists()


@pytest.mark.django_db
def test_upload_concurrent_new_name(user, root, upload, bucket, monkeypatch):
    """Test losing a race on a new name turns into a new version."""
    File.objects.create(
        owner=user,
        folder=root,
        name='a.txt',
        size_bytes=0,
    )
    real_q = file_operations.files_in_folder_q
    calls = []

    def stale_q(folder):
        calls.append(folder.pk)
        if len(calls) == 1:
            return Q(pk__in=[])
        return real_q(folder)

    monkeypatch.setattr(file_operations, 'files_in_folder_q', stale_q)

    result = upload(user, 'a.txt', b'data')

    assert result.file.current_version == 2
    assert File.objects.filter(name='a.txt').count() == 1
    assert _stored_keys(bucket) == [result.file.storage_key]


@pytest.mark.django_db
def test_upload_files_with_paths(user, root, mock_s3):
    """Test multi-file upload creates folders and reports failures."""
    results = upload_files_with_paths(user, [
        ('Photos/2024/trip.jpg', ContentFile(b'jpeg')),
        ('Photos/readme.txt', ContentFile(b'text')),
        ('../escape.txt', ContentFile(b'nope')),
    ])

    assert len(results.successes) == 2
    assert [error.id for error in results.errors] == ['../escape.txt']
    assert results.errors[0].code == 'invalid_input'

    photos = Folder.objects.get(parent=root, name='Photos')
    year = Folder.objects.get(parent=photos, name='2024')
    assert File.objects.get(name='trip.jpg').folder == year
    assert File.objects.get(name='readme.txt').folder == photos


@pytest.mark.django_db
def test_upload_files_with_paths_quota(user, mock_s3, small_quota):
    """Test entries over quota fail while the others are stored."""
    results = upload_files_with_paths(user, [
        ('a.txt', ContentFile(b'x' * 800)),
        ('b.txt', ContentFile(b'x' * 800)),
        ('c.txt', ContentFile(b'x' * 100)),
    ])

    assert [item.file.name for item in results.successes] == [
        'a.txt',
        'c.txt',
    ]
    assert results.errors[0].id == 'b.txt'
    assert results.errors[0].code == 'quota_exceeded'


@pytest.mark.django_db
def test_download_file(user, upload):
    """Test downloading streams the current version."""
    uploaded = upload(user, 'notes.txt', b'hello world').file

    stream = download_file(user, uploaded.pk)

    assert stream.name == 'notes.txt'
    assert stream.size == 11
    assert stream.content_type == 'text/plain'
    assert b''.join(stream.chunks) == b'hello world'


@pytest.mark.django_db
def test_download_file_access(user, other_user, upload):
    """Test foreign, trashed and unknown files cannot be downloaded."""
    uploaded = upload(user, 'notes.txt').file

    with pytest.raises(ForbiddenError):
        download_file(other_user, uploaded.pk)

    _share(user, other_user, uploaded, 'view', item_type='file')
    assert b''.join(download_file(other_user, uploaded.pk).chunks)

    delete_file(user, uploaded.pk)
    with pytest.raises(NotFoundError):
        download_file(user, uploaded.pk)
    with pytest.raises(NotFoundError):
        download_file(user, uuid.uuid4())


@pytest.mark.django_db
def test_download_version(user, upload):
    """Test older versions remain downloadable."""
    file_id = upload(user, 'notes.txt', b'first').file.pk
    upload(user, 'notes.txt', b'second')

    assert b''.join(download_version(user, file_id, 1).chunks) == b'first'
    assert b''.join(download_version(user, file_id, 2).chunks) == b'second'
    with pytest.raises(NotFoundError):
        download_version(user, file_id, 3)


@pytest.mark.django_db
def test_list_versions(user, upload):
    """Test version history is newest first."""
    file_id = upload(user, 'notes.txt', b'1').file.pk
    upload(user, 'notes.txt', b'22')
    upload(user, 'notes.txt', b'333')

    versions = list_versions(user, file_id)

    assert [version.version for version in versions] == [3, 2, 1]
    assert [version.size_bytes for version in versions] == [3, 2, 1]


@pytest.mark.django_db
def test_delete_file_frees_quota(user, upload, bucket):
    """Test trashing a file stops counting it but keeps its content."""
    uploaded = upload(user, 'a.txt', b'x' * 100).file

    trashed = delete_file(user, uploaded.pk)

    assert trashed.is_deleted
    assert trashed.deleted_at is not None
    assert get_used_bytes(user) == 0
    assert _stored_keys(bucket) == [uploaded.storage_key]
    with pytest.raises(NotFoundError):
        delete_file(user, uploaded.pk)


@pytest.mark.django_db
def test_restore_file(user, upload):
    """Test restoring a trashed file."""
    uploaded = upload(user, 'a.txt', b'x' * 100).file
    delete_file(user, uploaded.pk)

    restored = restore_file(user, uploaded.pk)

    assert not restored.is_deleted
    assert restored.name == 'a.txt'
    assert get_used_bytes(user) == 100
    with pytest.raises(ConflictError):
        restore_file(user, uploaded.pk)


@pytest.mark.django_db
def test_restore_file_renames_on_collision(user, upload):
    """Test a restored file whose name was taken gets a suffix."""
    original = upload(user, 'report.txt', b'old').file
    delete_file(user, original.pk)
    upload(user, 'report.txt', b'new')

    restored = restore_file(user, original.pk)

    assert restored.name == 'report (restored).txt'


@pytest.mark.django_db
def test_restore_file_over_quota(user, upload, small_quota):
    """Test restore is refused when the bytes no longer fit."""
    uploaded = upload(user, 'a.txt', b'x' * 600).file
    delete_file(user, uploaded.pk)
    upload(user, 'b.txt', b'x' * 600)

    with pytest.raises(QuotaExceededError):
        restore_file(user, uploaded.pk)

    assert File.all_objects.get(pk=uploaded.pk).is_deleted


@pytest.mark.django_db
def test_restore_file_revives_trashed_folders(user, upload):
    """Test restoring a file brings back its trashed parent folders."""
    outer = create_folder(user, 'Outer')
    inner = create_folder(user, 'Inner', outer.pk)
    uploaded = upload(user, 'a.txt', folder=inner).file
    sibling = upload(user, 'b.txt', folder=inner).file
    Folder.objects.filter(pk__in=[outer.pk, inner.pk]).mark_deleted()
    File.objects.filter(folder=inner).mark_deleted()

    restore_file(user, uploaded.pk)

    assert Folder.objects.filter(pk__in=[outer.pk, inner.pk]).count() == 2
    assert File.all_objects.get(pk=sibling.pk).is_deleted


@pytest.mark.django_db
def test_permanently_delete_file(user, other_user, upload, bucket):
    """Test purging removes rows, versions, objects and shares."""
    file_id = upload(user, 'a.txt', b'first').file.pk
    upload(user, 'a.txt', b'second')
    uploaded = File.objects.get(pk=file_id)
    _share(user, other_user, uploaded, 'view', item_type='file')

    result = permanently_delete_file(user, file_id)

    assert result.ok
    assert result.files_purged == 1
    assert result.bytes_freed == 6
    assert not File.all_objects.filter(pk=file_id).exists()
    assert not FileVersion.objects.filter(file_id=file_id).exists()
    assert not UserShare.objects.filter(item_id=file_id).exists()
    assert _stored_keys(bucket) == []


@pytest.mark.django_db
def test_permanently_delete_file_owner_only(user, other_user, upload):
    """Test only the owner can purge, even with an edit share."""
    uploaded = upload(user, 'a.txt').file
    _share(user, other_user, uploaded, 'edit', item_type='file')

    with pytest.raises(ForbiddenError):
        permanently_delete_file(other_user, uploaded.pk)
    with pytest.raises(NotFoundError):
        permanently_delete_file(user, uuid.uuid4())


@pytest.mark.django_db
def test_permanently_delete_file_storage_failure(user, upload, monkeypatch):
    """Test rows are purged and failing keys reported."""
    uploaded = upload(user, 'a.txt').file

    def fail(self, key):
        raise StorageUnavailableError(f'Storage delete failed for {key}')

    monkeypatch.setattr(ContentStore, 'delete', fail)

    result = permanently_delete_file(user, uploaded.pk)

    assert not result.ok
    assert result.failed_keys == [uploaded.storage_key]
    assert not File.all_objects.filter(pk=uploaded.pk).exists()
