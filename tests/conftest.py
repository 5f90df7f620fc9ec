"""Shared fixtures for filehost tests."""

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws

from filehost.apps.files.logic.file_operations import upload_file
from filehost.apps.files.logic.quota_operations import set_quota
from filehost.apps.files.logic.tree_operations import get_root_folder
from filehost.apps.files.models import File

User = get_user_model()

BUCKET_NAME = 'filehost'


@pytest.fixture
def user(db):
    """Create test user (root folder and quota come with the account).

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation and sharing tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def root(user):
    """Root folder of the test user."""
    return get_root_folder(user)


@pytest.fixture
def mock_s3():
    """Mock S3 service with the filehost bucket.

    Yields:
        boto3 S3 resource with the bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=BUCKET_NAME)

        yield conn


@pytest.fixture
def bucket(mock_s3):
    """The mocked bucket, for inspecting stored objects."""
    return mock_s3.Bucket(BUCKET_NAME)


@pytest.fixture
def upload(mock_s3):
    """Upload helper returning the UploadResult.

    Usage: ``upload(user, 'a.txt', b'data', folder=some_folder)``
    """
    def factory(owner, name, data=b'test file content', folder=None):
        folder_id = folder.pk if folder is not None else None
        return upload_file(owner, folder_id, name, ContentFile(data))

    return factory


@pytest.fixture
def make_file():
    """Create a file row without stored content.

    Enough for listing, quota and permission tests that never read bytes.
    """
    def factory(owner, folder, name, size_bytes=100):
        return File.objects.create(
            owner=owner,
            folder=folder,
            name=name,
            size_bytes=size_bytes,
            mime_type='text/plain',
        )

    return factory


@pytest.fixture
def small_quota(user):
    """Limit the test user to 1000 bytes."""
    return set_quota(user, 1000)
