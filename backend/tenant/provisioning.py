"""
Tenant provisioning.

A tenant is created once, at organization signup:
1. Tenant row (and owner membership) in the system schema
2. CREATE SCHEMA <schema_name> with the ledger tables inside it
3. Entry-number counter row and the default chart of accounts

All of it commits together or not at all. On databases without schemas
(SQLite in development and tests) step 2 is skipped and the tenant
shares the ledger tables created by migrate, isolated by tenant id.
"""
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import connections, transaction

from accounting.models import Account, EntrySequence, JournalEntry, JournalLine
from accounting.registry import create_account

from tenant.context import ledger_transaction, schema_search_path, system_context, uses_schemas
from tenant.models import Tenant, TenantMembership, validate_schema_name


logger = logging.getLogger("tenant")

# Creation order matters: lines reference entries and accounts.
LEDGER_MODELS = (Account, JournalEntry, JournalLine, EntrySequence)
LEDGER_TABLES = tuple(model._meta.db_table for model in LEDGER_MODELS)

# (code, name, type, parent code)
DEFAULT_CHART = (
    ("1000", "Assets", "ASSET", None),
    ("1100", "Cash and Bank", "ASSET", "1000"),
    ("1200", "Accounts Receivable", "ASSET", "1000"),
    ("1300", "Inventory", "ASSET", "1000"),
    ("1400", "Prepaid Expenses", "ASSET", "1000"),
    ("1500", "Fixed Assets", "ASSET", "1000"),
    ("1600", "Accumulated Depreciation", "ASSET", "1000"),
    ("2000", "Liabilities", "LIABILITY", None),
    ("2100", "Accounts Payable", "LIABILITY", "2000"),
    ("2200", "VAT Payable", "LIABILITY", "2000"),
    ("2300", "Payroll Liabilities", "LIABILITY", "2000"),
    ("2400", "Short-term Loans", "LIABILITY", "2000"),
    ("2500", "Long-term Loans", "LIABILITY", "2000"),
    ("3000", "Equity", "EQUITY", None),
    ("3100", "Share Capital", "EQUITY", "3000"),
    ("3200", "Retained Earnings", "EQUITY", "3000"),
    ("3300", "Current Year Profit/Loss", "EQUITY", "3000"),
    ("4000", "Revenue", "REVENUE", None),
    ("4100", "Sales Revenue", "REVENUE", "4000"),
    ("4200", "Service Revenue", "REVENUE", "4000"),
    ("4300", "Other Income", "REVENUE", "4000"),
    ("5000", "Expenses", "EXPENSE", None),
    ("5100", "Cost of Goods Sold", "EXPENSE", "5000"),
    ("5200", "Salary Expenses", "EXPENSE", "5000"),
    ("5300", "Rent Expense", "EXPENSE", "5000"),
    ("5400", "Utilities Expense", "EXPENSE", "5000"),
    ("5500", "Office Supplies", "EXPENSE", "5000"),
    ("5600", "Depreciation Expense", "EXPENSE", "5000"),
    ("5700", "Interest Expense", "EXPENSE", "5000"),
    ("5900", "Other Expenses", "EXPENSE", "5000"),
)


def default_schema_name(slug: str) -> str:
    return f"tenant_{slug.replace('-', '_').lower()}"


def create_tenant_schema(tenant: Tenant) -> bool:
    """
    Create the tenant's schema and its ledger tables.

    Returns False (and does nothing) on databases without schemas.
    """
    if not uses_schemas(tenant.db_alias):
        logger.info(
            "tenant.schema_skipped",
            extra={"tenant": tenant.slug, "db_alias": tenant.db_alias},
        )
        return False

    connection = connections[tenant.db_alias]
    with transaction.atomic(using=tenant.db_alias):
        with connection.cursor() as cursor:
            cursor.execute(f"CREATE SCHEMA {connection.ops.quote_name(tenant.schema_name)}")
        with schema_search_path(tenant.db_alias, tenant.schema_name):
            with connection.schema_editor(atomic=False) as editor:
                for model in LEDGER_MODELS:
                    editor.create_model(model)

    logger.info(
        "tenant.schema_created",
        extra={"tenant": tenant.slug, "schema": tenant.schema_name, "tables": list(LEDGER_TABLES)},
    )
    return True


def missing_ledger_tables(tenant: Tenant) -> list[str]:
    """Ledger tables absent from the tenant's schema (PostgreSQL only)."""
    connection = connections[tenant.db_alias]
    with connection.cursor() as cursor:
        cursor.execute(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = %s",
            [tenant.schema_name],
        )
        present = {row[0] for row in cursor.fetchall()}
    return [table for table in LEDGER_TABLES if table not in present]


def seed_ledger(tenant: Tenant, seed_chart: bool = True) -> None:
    """Counter row and (optionally) the default system chart of accounts."""
    ctx = system_context(tenant)
    with ledger_transaction(ctx):
        EntrySequence.objects.db_manager(ctx.db_alias).get_or_create(
            tenant_id=ctx.tenant_id,
            defaults={"next_value": 1},
        )
        if not seed_chart:
            return

        created = {}
        for code, name, account_type, parent_code in DEFAULT_CHART:
            parent = created.get(parent_code)
            created[code] = create_account(
                ctx,
                code=code,
                name=name,
                account_type=account_type,
                parent_id=parent.pk if parent else None,
                is_system=True,
            )


def provision_tenant(
    slug: str,
    name: str,
    schema_name: str = None,
    db_alias: str = "default",
    owner=None,
    seed_chart: bool = True,
) -> Tenant:
    """
    Create a tenant with its own schema, ready to post to.

    Args:
        slug: URL-safe unique identifier
        name: Display name
        schema_name: Storage namespace (default: tenant_<slug>)
        db_alias: Database holding the schema (must be in settings.DATABASES)
        owner: Optional user granted the OWNER role
        seed_chart: Seed the default chart of accounts as system accounts

    Raises:
        ValidationError: invalid schema name, unknown alias, duplicate tenant
    """
    schema_name = schema_name or default_schema_name(slug)
    validate_schema_name(schema_name)
    if db_alias not in settings.DATABASES:
        raise ValidationError(f"Unknown database alias {db_alias!r}.")
    if Tenant.objects.filter(slug=slug).exists():
        raise ValidationError(f"Tenant {slug!r} already exists.")
    if Tenant.objects.filter(schema_name=schema_name).exists():
        raise ValidationError(f"Schema {schema_name!r} is already assigned.")

    with transaction.atomic(using="default"), transaction.atomic(using=db_alias):
        tenant = Tenant.objects.create(
            slug=slug,
            name=name,
            schema_name=schema_name,
            db_alias=db_alias,
        )
        if owner is not None:
            TenantMembership.objects.create(
                tenant=tenant,
                user=owner,
                role=TenantMembership.Role.OWNER,
            )
        create_tenant_schema(tenant)
        seed_ledger(tenant, seed_chart=seed_chart)

    logger.info(
        "tenant.provisioned",
        extra={"tenant": tenant.slug, "schema": schema_name, "db_alias": db_alias},
    )
    return tenant


def drop_tenant_schema(tenant: Tenant) -> None:
    """Remove a tenant's schema and everything in it. Used by test teardown and ops scripts."""
    if not uses_schemas(tenant.db_alias):
        return
    connection = connections[tenant.db_alias]
    with connection.cursor() as cursor:
        cursor.execute(f"DROP SCHEMA IF EXISTS {connection.ops.quote_name(tenant.schema_name)} CASCADE")
    logger.warning("tenant.schema_dropped", extra={"tenant": tenant.slug, "schema": tenant.schema_name})
