"""Django app configuration for files app."""

from typing import override

from django.apps import AppConfig


class FilesConfig(AppConfig):
    """Configuration for files app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'filehost.apps.files'
    verbose_name = 'Files'

    @override
    def ready(self) -> None:
        """Connect account provisioning when app is ready."""
        from filehost.apps.files import signals  # noqa: F401
