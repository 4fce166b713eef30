import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('original_name', models.CharField(max_length=255)),
                ('item_type', models.CharField(choices=[('file', 'File'), ('folder', 'Folder')], max_length=16)),
                ('description', models.TextField(blank=True, default='')),
                ('content', models.FileField(blank=True, help_text='Storage key of the item content', upload_to='')),
                ('thumbnail', models.FileField(blank=True, help_text='Storage key of the generated thumbnail (images only)', upload_to='')),
                ('extension', models.CharField(blank=True, default='', max_length=32)),
                ('mime_type', models.CharField(blank=True, default='', max_length=255)),
                ('size_bytes', models.BigIntegerField(blank=True, help_text='File size in bytes', null=True)),
                ('metadata', models.JSONField(blank=True, default=dict, help_text='Metadata extracted from the content (EXIF and similar)')),
                ('checksum_sha256', models.CharField(blank=True, db_index=True, default='', help_text='SHA256 hash for integrity verification', max_length=64)),
                ('compression_type', models.CharField(blank=True, default='', max_length=100)),
                ('is_encrypted', models.BooleanField(default=False)),
                ('original_location', models.CharField(blank=True, default='', max_length=1024)),
                ('originating_device_id', models.CharField(blank=True, default='', max_length=100)),
                ('internal_tags', models.JSONField(blank=True, default=list)),
                ('user_tags', models.JSONField(blank=True, default=list)),
                ('created_on', models.DateTimeField(default=django.utils.timezone.now)),
                ('last_modified_on', models.DateTimeField(default=django.utils.timezone.now)),
                ('file_created_on', models.DateTimeField(blank=True, null=True)),
                ('file_modified_on', models.DateTimeField(blank=True, null=True)),
                ('last_accessed_on', models.DateTimeField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('is_archived', models.BooleanField(default=False)),
                ('is_hidden', models.BooleanField(default=False)),
                ('custom_properties', models.JSONField(blank=True, default=dict)),
                ('shared_link', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('expiration_date', models.DateTimeField(blank=True, null=True)),
                ('last_modified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('owner', models.ForeignKey(editable=False, on_delete=django.db.models.deletion.CASCADE, related_name='owned_items', to=settings.AUTH_USER_MODEL)),
                ('parent_folder', models.ForeignKey(blank=True, db_constraint=False, null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name='children', to='items.item')),
            ],
            options={
                'verbose_name': 'Item',
                'verbose_name_plural': 'Items',
                'ordering': ['name', 'id'],
                'indexes': [
                    models.Index(fields=['owner', 'parent_folder'], name='items_owner_parent_idx'),
                    models.Index(fields=['owner', '-created_on'], name='items_owner_recent_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('version__gte', 1)), name='items_version_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AccessEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('permission', models.CharField(choices=[('read', 'Read'), ('write', 'Write'), ('admin', 'Admin')], max_length=16)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='access_entries', to='items.item')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='item_access', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Access entry',
                'verbose_name_plural': 'Access entries',
                'ordering': ['id'],
                'constraints': [
                    models.UniqueConstraint(fields=('item', 'user'), name='access_item_user_unique'),
                ],
            },
        ),
    ]
