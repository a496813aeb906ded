"""
Create the permission catalog and role graph tables.
"""
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
            name='Permission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('name', models.CharField(db_index=True, help_text="Unique permission name (e.g., 'billing.update')", max_length=100, unique=True)),
                ('description', models.TextField(blank=True, help_text='Detailed description of what this permission grants')),
                ('category', models.CharField(blank=True, db_index=True, help_text="Permission category, the prefix before the first dot (e.g., 'billing')", max_length=50)),
            ],
            options={
                'db_table': 'permissions',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Role',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('name', models.CharField(help_text="Role name (e.g., 'NURSE', 'DOCTOR')", max_length=100, unique=True)),
                ('description', models.TextField(blank=True, help_text='Role description')),
                ('is_system', models.BooleanField(db_index=True, default=False, help_text='Whether this is a system-seeded role')),
            ],
            options={
                'db_table': 'roles',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='RolePermission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('permission', models.ForeignKey(help_text='Permission being granted', on_delete=django.db.models.deletion.PROTECT, related_name='role_permissions', to='rbac.permission')),
                ('role', models.ForeignKey(help_text='Role that grants this permission', on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='rbac.role')),
            ],
            options={
                'db_table': 'role_permissions',
                'ordering': ['role', 'permission'],
                'constraints': [
                    models.UniqueConstraint(fields=('role', 'permission'), name='uniq_role_permission'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserRole',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('assigned_by', models.ForeignKey(blank=True, help_text='User who assigned this role', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='role_assignments_made', to=settings.AUTH_USER_MODEL)),
                ('role', models.ForeignKey(help_text='Role assigned to the principal', on_delete=django.db.models.deletion.CASCADE, related_name='user_roles', to='rbac.role')),
                ('user', models.ForeignKey(help_text='Principal who has this role', on_delete=django.db.models.deletion.CASCADE, related_name='role_assignments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_roles',
                'ordering': ['user', 'role'],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'role'), name='uniq_user_role'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserPermission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('reason', models.TextField(blank=True, help_text='Reason for this grant')),
                ('granted_by', models.ForeignKey(blank=True, help_text='User who created this grant', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='direct_permissions_granted', to=settings.AUTH_USER_MODEL)),
                ('permission', models.ForeignKey(help_text='Permission being granted', on_delete=django.db.models.deletion.PROTECT, related_name='user_permissions', to='rbac.permission')),
                ('user', models.ForeignKey(help_text='Principal this grant applies to', on_delete=django.db.models.deletion.CASCADE, related_name='direct_permissions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_permissions',
                'ordering': ['user', 'permission'],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'permission'), name='uniq_user_permission'),
                ],
            },
        ),
    ]
