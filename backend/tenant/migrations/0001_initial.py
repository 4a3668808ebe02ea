"""
Initial migration for tenant app.

Creates:
- tenant_directory: Maps tenants to their schema and database
- tenant_membership: User roles per tenant
"""
import uuid

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion

import tenant.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                (
                    "public_id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Public identifier for API exposure.",
                        unique=True,
                    ),
                ),
                ("slug", models.SlugField(max_length=100, unique=True)),
                ("name", models.CharField(max_length=255)),
                (
                    "schema_name",
                    models.CharField(
                        help_text="PostgreSQL schema holding this tenant's ledger. Immutable.",
                        max_length=63,
                        unique=True,
                        validators=[tenant.models.validate_schema_name],
                    ),
                ),
                (
                    "db_alias",
                    models.CharField(
                        default="default",
                        help_text="Database alias holding the ledger schema. 'ledger_<name>' aliases come from LEDGER_DATABASE_URL_<NAME>.",
                        max_length=100,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("ACTIVE", "Active"), ("SUSPENDED", "Suspended")],
                        default="ACTIVE",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "tenant_directory",
                "ordering": ["slug"],
                "indexes": [
                    models.Index(fields=["status"], name="tenant_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TenantMembership",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("OWNER", "Owner"),
                            ("ADMIN", "Admin"),
                            ("ACCOUNTANT", "Accountant"),
                            ("VIEWER", "Viewer"),
                        ],
                        default="VIEWER",
                        max_length=20,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "tenant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="memberships",
                        to="tenant.tenant",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tenant_memberships",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "tenant_membership",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant", "user"),
                        name="uniq_tenant_membership",
                    ),
                ],
            },
        ),
    ]
