# tests/test_provisioning.py
"""
Tests for tenant provisioning.

Tests cover:
- provision_tenant: tenant row, owner membership, counter, default chart
- Validation failures leave nothing behind
- The provision_tenant management command
- Ledger policy system checks
"""

import pytest
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError

from accounting.apps import check_ledger_policies
from accounting.exceptions import SystemAccountLocked
from accounting.models import Account, EntrySequence
from accounting.registry import change_account_type
from tenant.context import ledger_transaction, resolve_context, system_context, uses_schemas
from tenant.models import Tenant, TenantMembership
from tenant.provisioning import (
    DEFAULT_CHART,
    default_schema_name,
    missing_ledger_tables,
    provision_tenant,
)


User = get_user_model()


@pytest.mark.django_db
class TestProvisionTenant:

    def test_creates_tenant_and_owner(self, user):
        tenant = provision_tenant("initech", "Initech", owner=user, seed_chart=False)

        assert tenant.schema_name == "tenant_initech"
        assert tenant.db_alias == "default"
        assert tenant.is_active
        membership = TenantMembership.objects.get(tenant=tenant, user=user)
        assert membership.role == TenantMembership.Role.OWNER

    def test_seeds_counter(self, db):
        tenant = provision_tenant("initech", "Initech", seed_chart=False)
        ctx = system_context(tenant)

        with ledger_transaction(ctx):
            assert EntrySequence.objects.for_context(ctx).get().next_value == 1

    def test_seeds_default_chart(self, user):
        tenant = provision_tenant("initech", "Initech", owner=user)
        ctx = resolve_context(tenant.public_id, user)

        with ledger_transaction(ctx):
            accounts = {a.code: a for a in Account.objects.for_context(ctx).select_related("parent")}

        assert len(accounts) == len(DEFAULT_CHART)
        assert all(a.is_system for a in accounts.values())
        assert accounts["1100"].parent.code == "1000"
        assert accounts["4100"].account_type == Account.AccountType.REVENUE

    def test_seeded_accounts_are_type_locked(self, user):
        tenant = provision_tenant("initech", "Initech", owner=user)
        ctx = resolve_context(tenant.public_id, user)
        with ledger_transaction(ctx):
            cash = Account.objects.for_context(ctx).get(code="1100")

        with pytest.raises(SystemAccountLocked):
            change_account_type(ctx, cash.pk, "EXPENSE")

    def test_custom_schema_name(self):
        tenant = provision_tenant("initech", "Initech", schema_name="ledger_initech", seed_chart=False)
        assert tenant.schema_name == "ledger_initech"

    def test_duplicate_slug(self, tenant):
        with pytest.raises(ValidationError):
            provision_tenant(tenant.slug, "Copycat", schema_name="tenant_copycat")

    def test_duplicate_schema(self, tenant):
        with pytest.raises(ValidationError):
            provision_tenant("copycat", "Copycat", schema_name=tenant.schema_name)

    def test_reserved_schema(self):
        with pytest.raises(ValidationError):
            provision_tenant("initech", "Initech", schema_name="public")
        assert not Tenant.objects.filter(slug="initech").exists()

    def test_unknown_db_alias(self):
        with pytest.raises(ValidationError):
            provision_tenant("initech", "Initech", db_alias="nowhere")

    def test_default_schema_name(self):
        assert default_schema_name("acme-co") == "tenant_acme_co"

    def test_schema_tables_present(self, tenant):
        if not uses_schemas(tenant.db_alias):
            pytest.skip("schemas are PostgreSQL only")
        assert missing_ledger_tables(tenant) == []


@pytest.mark.django_db
class TestProvisionCommand:

    def test_provision_command(self, user):
        call_command("provision_tenant", "initech", "Initech", "--owner", "owner", "--no-chart")

        tenant = Tenant.objects.get(slug="initech")
        assert TenantMembership.objects.filter(tenant=tenant, user=user).exists()

    def test_unknown_owner(self):
        with pytest.raises(CommandError):
            call_command("provision_tenant", "initech", "Initech", "--owner", "ghost")

    def test_invalid_schema(self):
        with pytest.raises(CommandError):
            call_command("provision_tenant", "initech", "Initech", "--schema", "pg_initech")


class TestPolicyChecks:

    def test_defaults_pass(self, settings):
        settings.LEDGER_VOID_DATE_POLICY = "VOID_DATE"
        settings.LEDGER_INACTIVE_ACCOUNT_ON_POST = "ALLOW"
        settings.LEDGER_LOCK_TIMEOUT_MS = 5000

        assert check_ledger_policies(None) == []

    def test_bad_values_are_reported(self, settings):
        settings.LEDGER_VOID_DATE_POLICY = "YESTERDAY"
        settings.LEDGER_INACTIVE_ACCOUNT_ON_POST = "MAYBE"
        settings.LEDGER_LOCK_TIMEOUT_MS = 0

        ids = sorted(error.id for error in check_ledger_policies(None))
        assert ids == ["accounting.E001", "accounting.E002", "accounting.E003"]
