"""Tests for batch delete, move and restore."""

import uuid

import pytest

from filehost.apps.files.logic.batch_operations import (
    batch_delete,
    batch_move,
    batch_restore,
)
from filehost.apps.files.logic.quota_operations import get_used_bytes
from filehost.apps.files.logic.tree_operations import create_folder
from filehost.apps.files.models import File, Folder


@pytest.mark.django_db
def test_batch_delete_reports_per_item(user, upload):
    """Test one bad item does not stop the others."""
    docs = create_folder(user, 'Docs')
    upload(user, 'inside.txt', b'x' * 10, folder=docs)
    loose = upload(user, 'loose.txt', b'x' * 20).file
    missing_id = str(uuid.uuid4())

    results = batch_delete(user, [
        {'id': str(loose.pk), 'type': 'file'},
        {'id': missing_id, 'type': 'folder'},
        {'id': 'not-a-uuid', 'type': 'file'},
        {'id': str(docs.pk), 'type': 'folder'},
    ])

    assert results.successes == [str(loose.pk), str(docs.pk)]
    reported = [(err.id, err.type, err.code) for err in results.errors]
    assert reported == [
        (missing_id, 'folder', 'not_found'),
        ('not-a-uuid', 'file', 'invalid_input'),
    ]
    assert get_used_bytes(user) == 0
    assert File.all_objects.get(name='inside.txt').is_deleted


@pytest.mark.django_db
def test_batch_delete_unknown_type(user, make_file, root):
    """Test an unknown item type is reported as invalid input."""
    file_instance = make_file(user, root, 'a.txt')

    results = batch_delete(user, [{'id': str(file_instance.pk), 'type': 'x'}])

    assert results.successes == []
    assert results.errors[0].code == 'invalid_input'
    assert not File.all_objects.get(pk=file_instance.pk).is_deleted


@pytest.mark.django_db
def test_batch_delete_foreign_items(user, other_user, make_file, root):
    """Test items the caller cannot edit are refused."""
    file_instance = make_file(user, root, 'a.txt')

    results = batch_delete(other_user, [
        {'id': file_instance.pk, 'type': 'file'},
    ])

    assert results.errors[0].code == 'forbidden'


@pytest.mark.django_db
def test_batch_move(user, root, make_file):
    """Test moving several items with a name conflict in the middle."""
    target = create_folder(user, 'Target')
    folder = create_folder(user, 'Docs')
    moved_file = make_file(user, root, 'a.txt')
    clashing = make_file(user, root, 'b.txt')
    make_file(user, target, 'b.txt')

    results = batch_move(
        user,
        [
            {'id': moved_file.pk, 'type': 'file'},
            {'id': clashing.pk, 'type': 'file'},
            {'id': folder.pk, 'type': 'folder'},
        ],
        target.pk,
    )

    assert results.successes == [str(moved_file.pk), str(folder.pk)]
    assert [error.code for error in results.errors] == ['conflict']
    assert File.objects.get(pk=moved_file.pk).folder == target
    assert File.objects.get(pk=clashing.pk).folder == root
    assert Folder.objects.get(pk=folder.pk).parent == target


@pytest.mark.django_db
def test_batch_move_cycle(user):
    """Test a folder cannot be moved into its own descendant."""
    outer = create_folder(user, 'Outer')
    inner = create_folder(user, 'Inner', outer.pk)

    results = batch_move(user, [{'id': outer.pk, 'type': 'folder'}], inner.pk)

    assert results.errors[0].code == 'conflict'


@pytest.mark.django_db
def test_batch_restore(user, upload):
    """Test restoring a mix of files and folders."""
    docs = create_folder(user, 'Docs')
    upload(user, 'inside.txt', b'x' * 10, folder=docs)
    loose = upload(user, 'loose.txt', b'x' * 20).file
    live = upload(user, 'live.txt', b'x' * 5).file
    batch_delete(user, [
        {'id': loose.pk, 'type': 'file'},
        {'id': docs.pk, 'type': 'folder'},
    ])

    results = batch_restore(user, [
        {'id': loose.pk, 'type': 'file'},
        {'id': docs.pk, 'type': 'folder'},
        {'id': live.pk, 'type': 'file'},
    ])

    assert results.successes == [str(loose.pk), str(docs.pk)]
    assert [error.code for error in results.errors] == ['conflict']
    assert get_used_bytes(user) == 35
