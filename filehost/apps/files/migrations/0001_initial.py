import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import filehost.apps.files.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Folder',
            fields=[
                ('is_deleted', models.BooleanField(db_index=True, default=False)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='folders', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='children', to='files.folder')),
            ],
            options={
                'verbose_name': 'Folder',
                'verbose_name_plural': 'Folders',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['owner', 'parent'], name='folders_owner_parent_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('parent__isnull', True)), fields=('owner',), name='folders_single_root'),
                    models.UniqueConstraint(condition=models.Q(('is_deleted', False)), fields=('owner', 'parent', 'name'), name='folders_live_sibling_unique'),
                ],
            },
        ),
        migrations.CreateModel(
            name='File',
            fields=[
                ('is_deleted', models.BooleanField(db_index=True, default=False)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('size_bytes', models.BigIntegerField(default=0, help_text='File size in bytes')),
                ('mime_type', models.CharField(default='application/octet-stream', help_text='MIME type guessed from the file name', max_length=255)),
                ('checksum_sha256', models.CharField(blank=True, db_index=True, default='', help_text='SHA256 hash of the current version', max_length=64)),
                ('current_version', models.PositiveIntegerField(default=1)),
                ('storage_key', models.CharField(blank=True, default='', help_text='Storage key of the current version', max_length=1024)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('folder', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='files', to='files.folder')),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='files', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File',
                'verbose_name_plural': 'Files',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['owner', 'folder'], name='files_owner_folder_idx'),
                    models.Index(fields=['owner', 'is_deleted'], name='files_owner_deleted_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('folder__isnull', False), ('is_deleted', False)), fields=('owner', 'folder', 'name'), name='files_live_sibling_unique'),
                    models.UniqueConstraint(condition=models.Q(('folder__isnull', True), ('is_deleted', False)), fields=('owner', 'name'), name='files_live_root_unique'),
                    models.CheckConstraint(condition=models.Q(('current_version__gte', 1)), name='files_version_positive'),
                    models.CheckConstraint(condition=models.Q(('size_bytes__gte', 0)), name='files_size_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FileVersion',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('version', models.PositiveIntegerField()),
                ('storage_key', models.CharField(max_length=1024)),
                ('checksum_sha256', models.CharField(max_length=64)),
                ('size_bytes', models.BigIntegerField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('file', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='versions', to='files.file')),
            ],
            options={
                'verbose_name': 'File Version',
                'verbose_name_plural': 'File Versions',
                'ordering': ['file', '-version'],
                'constraints': [
                    models.UniqueConstraint(fields=('file', 'version'), name='file_versions_unique'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserQuota',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='quota', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('quota_bytes', models.BigIntegerField(default=filehost.apps.files.models.default_quota_bytes, help_text='Storage quota limit in bytes')),
            ],
            options={
                'verbose_name': 'User Quota',
                'verbose_name_plural': 'User Quotas',
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quota_bytes__gte', 0)), name='quota_bytes_non_negative'),
                ],
            },
        ),
    ]
