"""
Tenant Directory - maps tenants to their storage namespace.

This module provides the Tenant model, which lives in the system
("public") schema and determines which database alias and which
PostgreSQL schema hold a tenant's ledger tables.

Design Principles:
- One tenant owns exactly one schema
- The schema name is fixed at provisioning and never changes
- No secrets stored in database (only db_alias references)
"""
import re
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


SCHEMA_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")

# Schemas that belong to the database itself and can never hold a tenant.
RESERVED_SCHEMAS = frozenset({"public", "information_schema", "pg_catalog", "pg_toast"})


def validate_schema_name(value: str) -> None:
    """Reject anything that is not a plain lowercase PostgreSQL identifier."""
    if not SCHEMA_NAME_RE.match(value or ""):
        raise ValidationError(
            f"Invalid schema name {value!r}: use lowercase letters, digits and underscores."
        )
    if value in RESERVED_SCHEMAS or value.startswith("pg_"):
        raise ValidationError(f"Schema name {value!r} is reserved.")


class Tenant(models.Model):
    """
    An isolated customer organization.

    This table lives in the SYSTEM schema and is consulted once per
    request to build a SchemaContext; ledger code never reads it again.

    db_alias maps to environment variables:
    - "default" -> the main database
    - "ledger_acme" -> LEDGER_DATABASE_URL_ACME env var
    """

    class Status(models.TextChoices):
        ACTIVE = "ACTIVE", "Active"
        SUSPENDED = "SUSPENDED", "Suspended"

    id = models.BigAutoField(primary_key=True)

    public_id = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
        help_text="Public identifier for API exposure.",
    )

    slug = models.SlugField(max_length=100, unique=True)
    name = models.CharField(max_length=255)

    schema_name = models.CharField(
        max_length=63,
        unique=True,
        validators=[validate_schema_name],
        help_text="PostgreSQL schema holding this tenant's ledger. Immutable.",
    )

    db_alias = models.CharField(
        max_length=100,
        default="default",
        help_text="Database alias holding the ledger schema. 'ledger_<name>' aliases come from LEDGER_DATABASE_URL_<NAME>.",
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenant_directory"
        ordering = ["slug"]
        indexes = [
            models.Index(fields=["status"], name="tenant_status_idx"),
        ]

    def __str__(self):
        return f"{self.slug} -> {self.db_alias}.{self.schema_name}"

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    def clean(self):
        validate_schema_name(self.schema_name)
        if self.db_alias not in settings.DATABASES:
            raise ValidationError(f"Unknown database alias {self.db_alias!r}.")

    def save(self, *args, **kwargs):
        # TRUE INVARIANT: the namespace of a provisioned tenant never changes.
        if self.pk is not None:
            stored = (
                Tenant.objects.filter(pk=self.pk)
                .values_list("schema_name", "db_alias")
                .first()
            )
            if stored and stored != (self.schema_name, self.db_alias):
                raise ValidationError("A tenant's schema and database cannot change once provisioned.")
        super().save(*args, **kwargs)


class TenantMembership(models.Model):
    """
    A user's role inside one tenant.

    Permissions are derived from the role (see tenant.permission_defaults).
    """

    class Role(models.TextChoices):
        OWNER = "OWNER", "Owner"
        ADMIN = "ADMIN", "Admin"
        ACCOUNTANT = "ACCOUNTANT", "Accountant"
        VIEWER = "VIEWER", "Viewer"

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="tenant_memberships",
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.VIEWER,
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "tenant_membership"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "user"],
                name="uniq_tenant_membership",
            ),
        ]

    def __str__(self):
        return f"{self.user_id}@{self.tenant.slug} ({self.role})"
