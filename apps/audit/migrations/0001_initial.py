"""
Create the append-only audit trail table.
"""
import django.core.serializers.json
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='AuditEntry',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('timestamp', models.DateTimeField(db_index=True, help_text='Server-assigned time of the event (monotonically non-decreasing)')),
                ('actor_id', models.CharField(blank=True, db_index=True, help_text='Actor who performed the action (null for system actions)', max_length=64, null=True)),
                ('action', models.CharField(db_index=True, help_text="Namespaced action (e.g., 'breakglass.use', 'role.create')", max_length=100)),
                ('resource_type', models.CharField(db_index=True, help_text="Type of resource acted upon (e.g., 'Role', 'BreakGlassGrant')", max_length=50)),
                ('resource_id', models.CharField(blank=True, db_index=True, help_text='Identifier of the resource acted upon', max_length=64, null=True)),
                ('before', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, help_text='State snapshot before the change', null=True)),
                ('after', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, help_text='State snapshot after the change', null=True)),
                ('metadata', models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder, help_text='Additional context metadata')),
                ('ip_address', models.GenericIPAddressField(blank=True, help_text='Source IP address of the request', null=True)),
                ('request_id', models.CharField(blank=True, db_index=True, help_text='Request ID for tracing', max_length=64, null=True)),
                ('user_agent', models.TextField(blank=True, default='', help_text='User agent string')),
            ],
            options={
                'verbose_name_plural': 'audit entries',
                'db_table': 'audit_entries',
                'ordering': ['-timestamp', '-id'],
                'indexes': [
                    models.Index(fields=['actor_id', 'timestamp'], name='audit_actor_ts_idx'),
                    models.Index(fields=['action', 'timestamp'], name='audit_action_ts_idx'),
                    models.Index(fields=['resource_type', 'resource_id'], name='audit_resource_idx'),
                ],
            },
        ),
    ]
