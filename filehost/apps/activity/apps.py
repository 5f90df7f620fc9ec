"""Django app configuration for activity app."""

from django.apps import AppConfig


class ActivityConfig(AppConfig):
    """Configuration for activity app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'filehost.apps.activity'
    verbose_name = 'Activity'
