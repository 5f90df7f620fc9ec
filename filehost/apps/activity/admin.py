"""Django admin configuration for activity app."""

from django.contrib import admin
from django.http import HttpRequest

from filehost.apps.activity.models import ActivityLog


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    """Read-only admin interface for the activity feed."""

    list_display = [
        'created_at',
        'user',
        'action',
        'resource_type',
        'resource_name',
    ]

    list_filter = [
        'action',
        'resource_type',
    ]

    search_fields = [
        'user__email',
        'resource_name',
    ]

    def has_add_permission(self, request: HttpRequest) -> bool:
        """Entries are written by the application only."""
        return False

    def has_change_permission(
        self,
        request: HttpRequest,
        obj: ActivityLog | None = None,
    ) -> bool:
        """Entries are immutable."""
        return False
