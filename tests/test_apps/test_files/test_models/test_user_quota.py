"""Tests for UserQuota model."""

import pytest
from django.db import IntegrityError, transaction

from filehost.apps.files.models import UserQuota


@pytest.mark.django_db
def test_quota_created_with_account(user):
    """Test every new user gets a quota row with the default ceiling."""
    quota = UserQuota.objects.get(user=user)

    # Default quota is 10 GB
    assert quota.quota_bytes == 10 * 1024 * 1024 * 1024
    assert user.quota == quota


@pytest.mark.django_db
def test_user_quota_one_to_one_constraint(user):
    """Test that a user can only have one quota record."""
    with pytest.raises(IntegrityError), transaction.atomic():
        UserQuota.objects.create(user=user)


@pytest.mark.django_db
def test_user_quota_str_representation(user):
    """Test UserQuota string representation."""
    UserQuota.objects.filter(user=user).update(quota_bytes=1024)

    assert str(UserQuota.objects.get(user=user)) == f'{user.pk}: 1024'


@pytest.mark.django_db
def test_available_bytes(user):
    """Test available_bytes never goes negative."""
    quota = UserQuota.objects.get(user=user)
    quota.quota_bytes = 1000

    assert quota.available_bytes(400) == 600
    assert quota.available_bytes(1000) == 0
    assert quota.available_bytes(1200) == 0


@pytest.mark.django_db
def test_quota_bytes_non_negative_constraint(user):
    """Test that quota_bytes must be non-negative."""
    quota = UserQuota.objects.get(user=user)
    quota.quota_bytes = -100

    with pytest.raises(IntegrityError), transaction.atomic():
        quota.save()


@pytest.mark.django_db
def test_user_quota_cascade_delete(user):
    """Test that UserQuota is deleted when user is deleted."""
    user_pk = user.pk

    user.delete()

    assert not UserQuota.objects.filter(user_id=user_pk).exists()
