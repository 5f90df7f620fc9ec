import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ActivityLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action', models.CharField(choices=[
                    ('file_upload', 'File upload'),
                    ('file_download', 'File download'),
                    ('file_delete', 'File delete'),
                    ('file_restore', 'File restore'),
                    ('file_purge', 'File permanent delete'),
                    ('file_rename', 'File rename'),
                    ('file_move', 'File move'),
                    ('folder_create', 'Folder create'),
                    ('folder_delete', 'Folder delete'),
                    ('folder_restore', 'Folder restore'),
                    ('folder_purge', 'Folder permanent delete'),
                    ('folder_rename', 'Folder rename'),
                    ('folder_move', 'Folder move'),
                    ('folder_download', 'Folder download'),
                    ('share_create', 'Share create'),
                    ('share_update', 'Share update'),
                    ('share_revoke', 'Share revoke'),
                    ('batch_delete', 'Batch delete'),
                    ('batch_move', 'Batch move'),
                    ('batch_restore', 'Batch restore'),
                ], max_length=32)),
                ('resource_type', models.CharField(blank=True, default='', help_text='file, folder or share', max_length=50)),
                ('resource_id', models.UUIDField(blank=True, null=True)),
                ('resource_name', models.TextField(blank=True, default='')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activity_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Activity Log',
                'verbose_name_plural': 'Activity Logs',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', '-created_at'], name='activity_user_recent_idx')],
            },
        ),
    ]
