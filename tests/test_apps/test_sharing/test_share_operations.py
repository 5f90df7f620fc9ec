"""Tests for share management."""

import uuid

import pytest
from django.contrib.auth import get_user_model

from filehost.apps.activity.models import ActivityLog
from filehost.apps.files.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from filehost.apps.files.logic.file_operations import delete_file
from filehost.apps.files.logic.tree_operations import create_folder
from filehost.apps.sharing.logic.share_operations import (
    create_share,
    list_sent_shares,
    list_shared_with_me,
    revoke_share,
    update_share_permission,
)
from filehost.apps.sharing.models import UserShare


@pytest.mark.django_db
def test_create_share(user, other_user):
    """Test sharing a folder by email."""
    folder = create_folder(user, 'Team')

    share = create_share(user, 'folder', folder.pk, 'OTHER@example.com')

    assert share.owner == user
    assert share.shared_with == other_user
    assert share.item_id == folder.pk
    assert share.permission == 'view'
    assert ActivityLog.objects.filter(
        user=user,
        action='share_create',
    ).exists()


@pytest.mark.django_db
def test_create_share_duplicate(user, other_user):
    """Test an item is shared with a user at most once."""
    folder = create_folder(user, 'Team')
    create_share(user, 'folder', folder.pk, other_user.email)

    with pytest.raises(ConflictError):
        create_share(user, 'folder', folder.pk, other_user.email, 'edit')

    assert UserShare.objects.count() == 1


@pytest.mark.django_db
def test_create_share_with_self(user):
    """Test owners cannot share with themselves."""
    folder = create_folder(user, 'Team')

    with pytest.raises(InvalidInputError):
        create_share(user, 'folder', folder.pk, user.email)


@pytest.mark.django_db
def test_create_share_not_owner(user, other_user):
    """Test only the owner can share an item."""
    folder = create_folder(user, 'Team')
    create_share(user, 'folder', folder.pk, other_user.email, 'edit')
    get_user_model().objects.create_user(
        username='third',
        password='testpass123',
        email='third@example.com',
    )

    with pytest.raises(ForbiddenError):
        create_share(other_user, 'folder', folder.pk, 'third@example.com')


@pytest.mark.django_db
def test_create_share_missing_targets(user, other_user, upload):
    """Test unknown users and trashed items are not found."""
    folder = create_folder(user, 'Team')
    trashed = upload(user, 'a.txt').file
    delete_file(user, trashed.pk)

    with pytest.raises(NotFoundError):
        create_share(user, 'folder', folder.pk, 'nobody@example.com')
    with pytest.raises(NotFoundError):
        create_share(user, 'file', trashed.pk, other_user.email)
    with pytest.raises(NotFoundError):
        create_share(user, 'file', uuid.uuid4(), other_user.email)


@pytest.mark.django_db
def test_create_share_invalid_input(user, other_user):
    """Test unknown types and permissions are rejected."""
    folder = create_folder(user, 'Team')

    with pytest.raises(InvalidInputError):
        create_share(user, 'album', folder.pk, other_user.email)
    with pytest.raises(InvalidInputError):
        create_share(user, 'folder', folder.pk, other_user.email, 'admin')


@pytest.mark.django_db
def test_update_share_permission(user, other_user):
    """Test the owner can upgrade a share."""
    folder = create_folder(user, 'Team')
    share = create_share(user, 'folder', folder.pk, other_user.email)

    updated = update_share_permission(user, share.pk, 'edit')

    assert updated.permission == 'edit'
    assert UserShare.objects.get(pk=share.pk).permission == 'edit'
    with pytest.raises(ForbiddenError):
        update_share_permission(other_user, share.pk, 'view')


@pytest.mark.django_db
def test_revoke_share(user, other_user):
    """Test revoking a share, and only by its owner."""
    folder = create_folder(user, 'Team')
    share = create_share(user, 'folder', folder.pk, other_user.email)

    with pytest.raises(ForbiddenError):
        revoke_share(other_user, share.pk)

    revoke_share(user, share.pk)

    assert not UserShare.objects.exists()
    with pytest.raises(NotFoundError):
        revoke_share(user, share.pk)


@pytest.mark.django_db
def test_list_shared_with_me(user, other_user, upload):
    """Test received shares are listed with their live items."""
    folder = create_folder(user, 'Team')
    shared_file = upload(user, 'a.txt').file
    create_share(user, 'folder', folder.pk, other_user.email)
    create_share(user, 'file', shared_file.pk, other_user.email, 'edit')

    received = list_shared_with_me(other_user)

    assert {entry.item.pk for entry in received} == {
        folder.pk,
        shared_file.pk,
    }

    delete_file(user, shared_file.pk)
    received = list_shared_with_me(other_user)
    assert [entry.item for entry in received] == [folder]
    assert list_shared_with_me(user) == []


@pytest.mark.django_db
def test_list_sent_shares(user, other_user):
    """Test the owner sees the shares they created."""
    folder = create_folder(user, 'Team')
    share = create_share(user, 'folder', folder.pk, other_user.email)

    assert list_sent_shares(user) == [share]
    assert list_sent_shares(other_user) == []
