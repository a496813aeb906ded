"""
Create the break-glass grant table.
"""
import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('rbac', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BreakGlassGrant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('token_hash', models.CharField(help_text='SHA-256 digest of the bearer token', max_length=64, unique=True)),
                ('resource_scope', models.CharField(blank=True, help_text='Resource the grant is limited to (null means any resource)', max_length=255, null=True)),
                ('issued_at', models.DateTimeField(default=django.utils.timezone.now, help_text='When the grant was issued')),
                ('expires_at', models.DateTimeField(db_index=True, help_text='Grant expiration time')),
                ('used', models.BooleanField(db_index=True, default=False, help_text='Whether the grant has been consumed or revoked')),
                ('used_at', models.DateTimeField(blank=True, help_text='When the grant was consumed or revoked', null=True)),
                ('justification', models.TextField(help_text='Clinical reason the override was needed')),
                ('revoked', models.BooleanField(default=False, help_text='Whether an administrator expired the grant before use')),
                ('issued_by', models.ForeignKey(blank=True, help_text='User who issued the grant', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='breakglass_grants_issued', to=settings.AUTH_USER_MODEL)),
                ('permission', models.ForeignKey(help_text='Permission this grant overrides', on_delete=django.db.models.deletion.PROTECT, related_name='breakglass_grants', to='rbac.permission')),
                ('principal', models.ForeignKey(help_text='Principal allowed to use this grant', on_delete=django.db.models.deletion.CASCADE, related_name='breakglass_grants', to=settings.AUTH_USER_MODEL)),
                ('revoked_by', models.ForeignKey(blank=True, help_text='Administrator who expired the grant', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='breakglass_grants_revoked', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'breakglass_grants',
                'ordering': ['-issued_at'],
                'indexes': [
                    models.Index(fields=['principal', 'permission', 'used', 'expires_at'], name='breakglass_lookup_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('expires_at__gt', models.F('issued_at'))), name='breakglass_expires_after_issue'),
                ],
            },
        ),
    ]
