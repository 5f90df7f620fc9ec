"""Django admin configuration for files app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html

from filehost.apps.files.logic.quota_operations import get_used_bytes
from filehost.apps.files.models import File, FileVersion, Folder, UserQuota


def _format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes < 1024:
        return f'{size_bytes} B'
    if size_bytes < 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / 1024:.1f} KB'
    if size_bytes < 1024 * 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / (1024 * 1024):.1f} MB'
    return f'{size_bytes / (1024 * 1024 * 1024):.1f} GB'


@admin.register(Folder)
class FolderAdmin(admin.ModelAdmin):
    """Admin interface for Folder model, trashed rows included."""

    list_display = [
        'name',
        'owner',
        'parent',
        'is_deleted',
        'created_at',
    ]

    list_filter = [
        'is_deleted',
        'created_at',
    ]

    search_fields = [
        'name',
        'owner__email',
    ]

    readonly_fields = [
        'id',
        'owner',
        'parent',
        'is_deleted',
        'deleted_at',
        'created_at',
    ]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Folder]:
        """Show live and trashed folders.

        Args:
            request: HTTP request.

        Returns:
            QuerySet over every folder row.
        """
        return Folder.all_objects.select_related('owner', 'parent')


class FileVersionInline(admin.TabularInline):
    """Read-only version history of a file."""

    model = FileVersion
    extra = 0
    can_delete = False
    readonly_fields = [
        'version',
        'storage_key',
        'checksum_sha256',
        'size_bytes',
        'created_at',
    ]


@admin.register(File)
class FileAdmin(admin.ModelAdmin):
    """Admin interface for File model, trashed rows included."""

    list_display = [
        'name',
        'owner',
        'folder',
        'size_display',
        'current_version',
        'mime_type',
        'is_deleted',
        'updated_at',
    ]

    list_filter = [
        'is_deleted',
        'mime_type',
        'updated_at',
    ]

    search_fields = [
        'name',
        'checksum_sha256',
        'owner__email',
    ]

    readonly_fields = [
        'id',
        'owner',
        'folder',
        'size_bytes',
        'mime_type',
        'checksum_sha256',
        'current_version',
        'storage_key',
        'is_deleted',
        'deleted_at',
        'created_at',
        'updated_at',
    ]

    inlines = [FileVersionInline]

    fieldsets = (
        ('File Information', {
            'fields': ('id', 'name', 'owner', 'folder'),
        }),
        ('Content', {
            'fields': (
                'size_bytes',
                'mime_type',
                'checksum_sha256',
                'current_version',
                'storage_key',
            ),
        }),
        ('Trash', {
            'fields': ('is_deleted', 'deleted_at'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    def size_display(self, obj: File) -> str:
        """Display file size in human-readable format.

        Args:
            obj: File instance.

        Returns:
            Formatted size string.
        """
        return _format_bytes(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[File]:
        """Show live and trashed files.

        Args:
            request: HTTP request.

        Returns:
            QuerySet over every file row.
        """
        return File.all_objects.select_related('owner', 'folder')


@admin.register(UserQuota)
class UserQuotaAdmin(admin.ModelAdmin):
    """Admin interface for UserQuota model."""

    list_display = [
        'user',
        'quota_display',
        'used_display',
        'status_display',
    ]

    search_fields = [
        'user__username',
        'user__email',
    ]

    readonly_fields = [
        'user',
        'used_display',
    ]

    fieldsets = (
        ('User', {
            'fields': ('user',),
        }),
        ('Quota Settings', {
            'fields': ('quota_bytes',),
        }),
        ('Current Usage', {
            'fields': ('used_display',),
        }),
    )

    def quota_display(self, obj: UserQuota) -> str:
        """Display quota in human-readable format."""
        return _format_bytes(obj.quota_bytes)
    quota_display.short_description = 'Quota'  # type: ignore[attr-defined]

    def used_display(self, obj: UserQuota) -> str:
        """Display live usage in human-readable format."""
        return _format_bytes(get_used_bytes(obj.user))
    used_display.short_description = 'Used'  # type: ignore[attr-defined]

    def status_display(self, obj: UserQuota) -> str:
        """Display status indicator based on usage.

        Args:
            obj: UserQuota instance.

        Returns:
            HTML formatted status indicator.
        """
        used_bytes = get_used_bytes(obj.user)
        if obj.quota_bytes == 0:
            percentage = 100.0 if used_bytes else 0.0
        else:
            percentage = (used_bytes / obj.quota_bytes) * 100

        if percentage >= 100:
            color = '#dc3545'  # Red - over quota
            status = 'Full'
        elif percentage >= 90:
            color = '#ffc107'  # Yellow - warning
            status = f'{percentage:.1f}%'
        else:
            color = '#28a745'  # Green - ok
            status = f'{percentage:.1f}%'

        return format_html(
            '<span style="color: {color}; font-weight: bold;">'
            '{status}</span>',
            color=color,
            status=status,
        )
    status_display.short_description = 'Status'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[UserQuota]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('user')
