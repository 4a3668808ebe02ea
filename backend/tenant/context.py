"""
Schema context: the resolved, authorized tenant a ledger call runs against.

Every ledger operation takes a SchemaContext as its first argument. The
context is built once per request by resolve_context() and then passed
explicitly; there is no "current tenant" global anywhere.

Usage:
    ctx = resolve_context(tenant_id, request.user)
    require(ctx, "journal.post")

    with ledger_transaction(ctx):
        # On PostgreSQL, unqualified table names now resolve inside
        # ctx.schema_name for the rest of this transaction only.
        entry = JournalEntry.objects.select_for_update().get(...)
"""
from contextlib import contextmanager
from typing import Any, NamedTuple, Optional
from uuid import UUID
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import connections, transaction

from tenant.exceptions import Forbidden, TenantNotFound
from tenant.models import Tenant, TenantMembership
from tenant.permission_defaults import ROLE_DEFAULTS, perms_for_role


logger = logging.getLogger("tenant")

SYSTEM_ROLE = "SYSTEM"


class SchemaContext(NamedTuple):
    """Immutable tenant context for one request or job."""

    tenant_id: int
    tenant_public_id: UUID
    schema_name: str
    db_alias: str
    user: Optional[Any]
    role: str
    perms: frozenset

    @property
    def user_id(self) -> Optional[int]:
        return getattr(self.user, "id", None)

    def has(self, code: str) -> bool:
        return code in self.perms


def _load_tenant(tenant_id) -> Tenant:
    lookup = {"public_id": tenant_id} if isinstance(tenant_id, UUID) else {"pk": tenant_id}
    try:
        return Tenant.objects.using("default").get(**lookup)
    except (Tenant.DoesNotExist, ValueError, ValidationError):
        raise TenantNotFound(f"Tenant {tenant_id} not found.")


def resolve_context(tenant_id, principal) -> SchemaContext:
    """
    Resolve a tenant identifier and an authenticated principal into a context.

    Raises:
        TenantNotFound: no tenant with this id (UUID public id or pk)
        Forbidden: anonymous principal, no active membership, or suspended tenant
    """
    tenant = _load_tenant(tenant_id)

    if principal is None or not getattr(principal, "is_authenticated", False):
        raise Forbidden("Authentication required.")

    membership = (
        TenantMembership.objects.using("default")
        .filter(tenant=tenant, user_id=principal.id, is_active=True)
        .first()
    )
    if membership is None:
        logger.warning(
            "tenant.access_denied",
            extra={"tenant": tenant.slug, "user_id": principal.id},
        )
        raise Forbidden("Not a member of this tenant.")

    if not tenant.is_active:
        raise Forbidden(f"Tenant {tenant.slug} is suspended.")

    return SchemaContext(
        tenant_id=tenant.id,
        tenant_public_id=tenant.public_id,
        schema_name=tenant.schema_name,
        db_alias=tenant.db_alias,
        user=principal,
        role=membership.role,
        perms=perms_for_role(membership.role),
    )


def system_context(tenant: Tenant) -> SchemaContext:
    """
    Context for provisioning and management commands.

    Carries every permission and no user; never built from a request.
    """
    all_perms = frozenset().union(*ROLE_DEFAULTS.values())
    return SchemaContext(
        tenant_id=tenant.id,
        tenant_public_id=tenant.public_id,
        schema_name=tenant.schema_name,
        db_alias=tenant.db_alias,
        user=None,
        role=SYSTEM_ROLE,
        perms=all_perms,
    )


def require(ctx: SchemaContext, code: str) -> None:
    """Raise Forbidden unless the context grants the permission code."""
    if not ctx.has(code):
        raise Forbidden(f"Permission denied: {code}")


def uses_schemas(db_alias: str) -> bool:
    """True when the database can hold one schema per tenant."""
    return connections[db_alias].vendor == "postgresql"


@contextmanager
def schema_search_path(db_alias: str, schema_name: str):
    """
    Resolve unqualified table names inside one schema.

    Must run inside an atomic block. The setting is transaction-local; on
    normal exit the previous search_path is put back so an enclosing
    transaction continues to see the system tables. On error the
    enclosing savepoint rollback discards the change.
    """
    connection = connections[db_alias]
    with connection.cursor() as cursor:
        cursor.execute("SELECT current_setting('search_path')")
        previous = cursor.fetchone()[0]
        cursor.execute(
            "SELECT set_config('search_path', %s, true)",
            [connection.ops.quote_name(schema_name)],
        )
    yield
    with connection.cursor() as cursor:
        cursor.execute("SELECT set_config('search_path', %s, true)", [previous])


@contextmanager
def ledger_transaction(ctx: SchemaContext):
    """
    Open the transaction every ledger operation runs in.

    On PostgreSQL the tenant schema becomes the search_path and a
    lock_timeout is set for the transaction. Nested calls join the outer
    transaction as a savepoint.
    """
    with transaction.atomic(using=ctx.db_alias):
        if not uses_schemas(ctx.db_alias):
            yield ctx
            return

        with connections[ctx.db_alias].cursor() as cursor:
            cursor.execute(
                "SELECT set_config('lock_timeout', %s, true)",
                [f"{int(settings.LEDGER_LOCK_TIMEOUT_MS)}ms"],
            )
        with schema_search_path(ctx.db_alias, ctx.schema_name):
            yield ctx
