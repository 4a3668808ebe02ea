# tests/conftest.py
"""
Pytest fixtures for ledger tests.

Tenants are created with provision_tenant(), so on PostgreSQL every
tenant gets its own schema and on SQLite the tenants share the ledger
tables and are isolated by tenant id. Direct ORM access in tests goes
through ledger_transaction(ctx) so it sees the tenant's tables on
either backend.
"""

from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from accounting.commands import create_draft, post_entry
from accounting.registry import create_account
from tenant.context import resolve_context
from tenant.models import TenantMembership
from tenant.provisioning import provision_tenant


User = get_user_model()

ENTRY_DATE = date(2024, 1, 15)


# =============================================================================
# Users & Tenants
# =============================================================================

@pytest.fixture
def user(db):
    """Owner of the main tenant."""
    return User.objects.create_user(username="owner", password="testpass123")


@pytest.fixture
def other_user(db):
    """Owner of the second tenant, not a member of the main one."""
    return User.objects.create_user(username="other", password="testpass123")


@pytest.fixture
def tenant(db, user):
    return provision_tenant("acme", "Acme Ltd", owner=user, seed_chart=False)


@pytest.fixture
def other_tenant(db, other_user):
    """Second tenant for isolation tests."""
    return provision_tenant("globex", "Globex Corp", owner=other_user, seed_chart=False)


@pytest.fixture
def member(db, tenant):
    """
    Factory for users holding a given role in the main tenant.

    Usage:
        viewer = member(TenantMembership.Role.VIEWER)
    """
    def _member(role, username=None, is_active=True):
        username = username or f"{role.lower()}_user"
        member_user = User.objects.create_user(username=username, password="testpass123")
        TenantMembership.objects.create(
            tenant=tenant,
            user=member_user,
            role=role,
            is_active=is_active,
        )
        return member_user
    return _member


# =============================================================================
# Contexts
# =============================================================================

@pytest.fixture
def ctx(tenant, user):
    """Owner context for the main tenant."""
    return resolve_context(tenant.public_id, user)


@pytest.fixture
def other_ctx(other_tenant, other_user):
    return resolve_context(other_tenant.public_id, other_user)


@pytest.fixture
def viewer_ctx(tenant, member):
    return resolve_context(tenant.public_id, member(TenantMembership.Role.VIEWER))


@pytest.fixture
def accountant_ctx(tenant, member):
    return resolve_context(tenant.public_id, member(TenantMembership.Role.ACCOUNTANT))


# =============================================================================
# Chart of Accounts
# =============================================================================

@pytest.fixture
def accounts(ctx):
    """One account of each type in the main tenant, keyed by role."""
    return {
        "cash": create_account(ctx, "1000", "Cash", "ASSET"),
        "payable": create_account(ctx, "2000", "Accounts Payable", "LIABILITY"),
        "capital": create_account(ctx, "3000", "Share Capital", "EQUITY"),
        "revenue": create_account(ctx, "4000", "Sales Revenue", "REVENUE"),
        "expense": create_account(ctx, "5000", "Rent Expense", "EXPENSE"),
    }


@pytest.fixture
def other_accounts(other_ctx):
    return {
        "cash": create_account(other_ctx, "1000", "Cash", "ASSET"),
        "revenue": create_account(other_ctx, "4000", "Sales Revenue", "REVENUE"),
    }


def lines_for(debit_account, credit_account, amount):
    """Two-line entry moving amount from credit_account to debit_account."""
    amount = Decimal(amount)
    return [
        {"account_id": debit_account.pk, "debit": amount, "credit": Decimal("0")},
        {"account_id": credit_account.pk, "debit": Decimal("0"), "credit": amount},
    ]


@pytest.fixture
def make_entry():
    """
    Factory for journal entries.

    Usage:
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")
        draft = make_entry(ctx, cash, revenue, "50.00", post=False)
    """
    def _make_entry(ctx, debit_account, credit_account, amount, entry_date=ENTRY_DATE, post=True):
        entry = create_draft(
            ctx,
            entry_date=entry_date,
            description="Test entry",
            lines=lines_for(debit_account, credit_account, amount),
        )
        if post:
            entry = post_entry(ctx, entry.pk)
        return entry
    return _make_entry


# =============================================================================
# API Clients
# =============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, user):
    """API client authenticated as the main tenant's owner."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def make_lines():
    """The lines_for helper, for tests that build drafts by hand."""
    return lines_for
