"""Tests for trash business logic."""

from datetime import timedelta

import pytest
from django.utils import timezone

from filehost.apps.files.logic.file_operations import delete_file
from filehost.apps.files.logic.folder_operations import delete_folder
from filehost.apps.files.logic.trash_operations import (
    empty_trash,
    find_expired,
    list_trash,
    purge_expired,
)
from filehost.apps.files.logic.tree_operations import create_folder
from filehost.apps.files.models import File, Folder


def _age(model, item, days):
    model.all_objects.filter(pk=item.pk).update(
        deleted_at=timezone.now() - timedelta(days=days),
    )


@pytest.mark.django_db
def test_list_trash(user, other_user, upload):
    """Test the trash lists a user's trashed items, newest first."""
    folder = create_folder(user, 'Old')
    first = upload(user, 'first.txt').file
    second = upload(user, 'second.txt').file
    upload(other_user, 'foreign.txt')
    upload(user, 'live.txt')
    delete_folder(user, folder.pk)
    delete_file(user, first.pk)
    delete_file(user, second.pk)
    _age(File, first, 2)

    listing = list_trash(user)

    assert [item.name for item in listing.folders] == ['Old']
    assert [item.name for item in listing.files] == [
        'second.txt',
        'first.txt',
    ]


@pytest.mark.django_db
def test_empty_trash(user, upload, bucket):
    """Test emptying the trash purges everything trashed and nothing else."""
    folder = create_folder(user, 'Old')
    upload(user, 'inside.txt', b'x' * 10, folder=folder)
    loose = upload(user, 'loose.txt', b'x' * 20).file
    live = upload(user, 'live.txt', b'x' * 30).file
    delete_folder(user, folder.pk, recursive=True)
    delete_file(user, loose.pk)

    result = empty_trash(user)

    assert result.ok
    assert result.folders_purged == 1
    assert result.files_purged == 2
    assert result.bytes_freed == 30
    assert list(File.all_objects.all()) == [live]
    assert not Folder.all_objects.filter(pk=folder.pk).exists()
    assert [obj.key for obj in bucket.objects.all()] == [live.storage_key]
    assert list_trash(user).files == []


@pytest.mark.django_db
def test_empty_trash_nested_trashed_folders(user, mock_s3):
    """Test a trashed folder inside a trashed folder is purged once."""
    outer = create_folder(user, 'Outer')
    inner = create_folder(user, 'Inner', outer.pk)
    delete_folder(user, inner.pk)
    delete_folder(user, outer.pk, recursive=True)

    result = empty_trash(user)

    assert result.folders_purged == 2
    assert not Folder.all_objects.filter(pk__in=[outer.pk, inner.pk]).exists()


@pytest.mark.django_db
def test_find_expired(user, upload):
    """Test only items trashed before the cutoff are expired."""
    old = upload(user, 'old.txt').file
    recent = upload(user, 'recent.txt').file
    delete_file(user, old.pk)
    delete_file(user, recent.pk)
    _age(File, old, 31)

    folders, files = find_expired(timezone.now() - timedelta(days=30))

    assert list(folders) == []
    assert list(files) == [File.all_objects.get(pk=old.pk)]


@pytest.mark.django_db
def test_purge_expired(user, upload, bucket):
    """Test purging expired items keeps recent trash."""
    folder = create_folder(user, 'Old')
    upload(user, 'inside.txt', folder=folder)
    old = upload(user, 'old.txt').file
    recent = upload(user, 'recent.txt').file
    delete_folder(user, folder.pk, recursive=True)
    delete_file(user, old.pk)
    delete_file(user, recent.pk)
    _age(Folder, folder, 40)
    _age(File, old, 31)

    result = purge_expired(timezone.now() - timedelta(days=30))

    assert result.folders_purged == 1
    assert result.files_purged == 2
    assert list(File.all_objects.all()) == [recent]
    assert [obj.key for obj in bucket.objects.all()] == [recent.storage_key]


@pytest.mark.django_db
def test_purge_expired_limit(user, upload):
    """Test the limit caps files handled per call, oldest first."""
    files = [upload(user, f'{index}.txt').file for index in range(3)]
    for age, file_instance in zip((50, 40, 35), files, strict=True):
        delete_file(user, file_instance.pk)
        _age(File, file_instance, age)

    result = purge_expired(timezone.now() - timedelta(days=30), limit=2)

    assert result.files_purged == 2
    assert list(File.all_objects.all()) == [files[2]]
