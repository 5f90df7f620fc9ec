"""Django storage configuration for S3-compatible backends.

This module configures django-storages to work with:
- MinIO for local development
- Any S3-compatible service (AWS S3, Cloudflare R2) in production

Storage calls are bounded by botocore timeouts so a stalled backend
surfaces as a retryable failure instead of blocking the caller.
"""

from typing import Any, Final

from botocore.config import Config

from filehost.settings.components import config

STORAGE_CLIENT_CONFIG: Final = Config(
    connect_timeout=config(
        'FILEHOST_STORAGE_CONNECT_TIMEOUT',
        cast=float,
        default=5.0,
    ),
    read_timeout=config(
        'FILEHOST_STORAGE_READ_TIMEOUT',
        cast=float,
        default=30.0,
    ),
    retries={
        'max_attempts': config(
            'FILEHOST_STORAGE_MAX_ATTEMPTS',
            cast=int,
            default=3,
        ),
    },
)

# Uses S3-compatible storage for file content, local storage for static files
STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'filehost.apps.files.infrastructure.storage.FileStorage',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='filehost',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default='testing'),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default='testing'),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            'client_config': STORAGE_CLIENT_CONFIG,
            'file_overwrite': False,  # Prevent accidental overwrites
            'default_acl': None,  # Inherit bucket ACL
        },
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
