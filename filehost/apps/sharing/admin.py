"""Django admin configuration for sharing app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest

from filehost.apps.sharing.models import UserShare


@admin.register(UserShare)
class UserShareAdmin(admin.ModelAdmin):
    """Admin interface for UserShare model."""

    list_display = [
        'item_type',
        'item_id',
        'owner',
        'shared_with',
        'permission',
        'created_at',
    ]

    list_filter = [
        'item_type',
        'permission',
    ]

    search_fields = [
        'owner__email',
        'shared_with__email',
    ]

    readonly_fields = [
        'item_id',
        'item_type',
        'owner',
        'shared_with',
        'created_at',
    ]

    def get_queryset(self, request: HttpRequest) -> QuerySet[UserShare]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related(
            'owner',
            'shared_with',
        )
