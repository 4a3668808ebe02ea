# accounting/registry.py
"""
Account registry: the chart of accounts.

Commands here own every write to Account. Each runs inside
ledger_transaction(ctx), so it sees only the context's tenant and
rolls back completely when it raises.

Pattern:
1. Validate permissions (require)
2. Apply business policies
3. Perform the operation
4. Log and return the account
"""

import logging

from django.db import IntegrityError, transaction

from tenant.context import SchemaContext, ledger_transaction, require

from .exceptions import (
    AccountHasPostings,
    AccountNotFound,
    DuplicateCode,
    InactiveAccount,
    InvalidAccountType,
    InvalidParent,
    UnknownAccount,
)
from .models import Account, JournalLine
from .policies import assert_can_change_account_type


logger = logging.getLogger("accounting")

_UNSET = object()


def _lock_account(ctx: SchemaContext, account_id) -> Account:
    try:
        return Account.objects.for_context(ctx).select_for_update().get(pk=account_id)
    except (Account.DoesNotExist, ValueError, TypeError):
        raise AccountNotFound(account_id)


def _validate_type(account_type: str) -> str:
    if account_type not in Account.AccountType.values:
        raise InvalidAccountType(account_type)
    return account_type


def _validate_parent(ctx: SchemaContext, parent_id, account: Account = None) -> Account:
    """
    Load a prospective parent.

    The lookup is tenant-filtered, so a parent from another tenant is
    indistinguishable from a missing one.
    """
    parent = Account.objects.for_context(ctx).filter(pk=parent_id).first()
    if parent is None:
        raise InvalidParent(f"Parent account {parent_id} not found.")
    if not parent.is_active:
        raise InvalidParent(f"Parent account {parent.code} is inactive.")
    if account is not None:
        if parent.pk == account.pk or any(a.pk == account.pk for a in parent.get_ancestors()):
            raise InvalidParent(f"Parent account {parent.code} would create a cycle.")
    return parent


# =============================================================================
# Reads
# =============================================================================

def get_account(ctx: SchemaContext, account_id) -> Account:
    """Load an account regardless of activation state (for reads)."""
    require(ctx, "accounts.view")
    with ledger_transaction(ctx):
        try:
            return Account.objects.for_context(ctx).get(pk=account_id)
        except (Account.DoesNotExist, ValueError, TypeError):
            raise AccountNotFound(account_id)


def list_accounts(ctx: SchemaContext, active_only: bool = False) -> list[Account]:
    require(ctx, "accounts.view")
    with ledger_transaction(ctx):
        qs = Account.objects.for_context(ctx)
        if active_only:
            qs = qs.filter(is_active=True)
        return list(qs.order_by("code"))


def resolve_account(ctx: SchemaContext, account_id) -> Account:
    """
    Resolve an account that may receive new postings.

    Raises:
        AccountNotFound: no such account in this tenant
        InactiveAccount: the account exists but is deactivated
    """
    with ledger_transaction(ctx):
        try:
            account = Account.objects.for_context(ctx).get(pk=account_id)
        except (Account.DoesNotExist, ValueError, TypeError):
            raise AccountNotFound(account_id)
    if not account.is_active:
        raise InactiveAccount(account)
    return account


def resolve_accounts(ctx: SchemaContext, account_ids, allow_inactive: bool = False) -> dict:
    """
    Bulk resolution used by the journal engine to validate line references.

    Returns {account_id: Account}. Raises UnknownAccount for the first id
    that is not an account of this tenant, and InactiveAccount for the
    first deactivated one unless allow_inactive is set.
    """
    wanted = list(dict.fromkeys(account_ids))
    accounts = Account.objects.for_context(ctx).in_bulk(wanted)
    for account_id in wanted:
        account = accounts.get(account_id)
        if account is None:
            raise UnknownAccount(account_id)
        if not allow_inactive and not account.is_active:
            raise InactiveAccount(account)
    return accounts


# =============================================================================
# Commands
# =============================================================================

def create_account(
    ctx: SchemaContext,
    code: str,
    name: str,
    account_type: str,
    parent_id: int = None,
    description: str = "",
    is_system: bool = False,
) -> Account:
    """
    Create a new account in the chart of accounts.

    Args:
        ctx: The schema context
        code: Account code (unique per tenant)
        name: Account name
        account_type: One of Account.AccountType choices
        parent_id: Optional parent account ID (same tenant, active, no cycle)
        description: Free text
        is_system: Lock the account's type (seeded accounts)

    Raises:
        DuplicateCode, InvalidParent, InvalidAccountType
    """
    require(ctx, "accounts.manage")
    _validate_type(account_type)
    code = (code or "").strip()

    with ledger_transaction(ctx):
        if Account.objects.for_context(ctx).filter(code=code).exists():
            raise DuplicateCode(code)

        parent = _validate_parent(ctx, parent_id) if parent_id else None

        try:
            with transaction.atomic(using=ctx.db_alias):
                account = Account.objects.db_manager(ctx.db_alias).create(
                    tenant_id=ctx.tenant_id,
                    code=code,
                    name=name,
                    account_type=account_type,
                    parent=parent,
                    description=description,
                    is_system=is_system,
                )
        except IntegrityError:
            # Lost a race with a concurrent create of the same code
            raise DuplicateCode(code)

    logger.info(
        "account.created",
        extra={
            "tenant": ctx.schema_name,
            "account_id": account.pk,
            "code": account.code,
            "account_type": account.account_type,
            "user_id": ctx.user_id,
        },
    )
    return account


def update_account(
    ctx: SchemaContext,
    account_id: int,
    name: str = None,
    description: str = None,
    parent_id=_UNSET,
) -> Account:
    """
    Rename, re-describe or re-parent an account.

    Pass parent_id=None to detach the account from its parent.
    """
    require(ctx, "accounts.manage")

    with ledger_transaction(ctx):
        account = _lock_account(ctx, account_id)
        update_fields = ["updated_at"]

        if name is not None:
            account.name = name
            update_fields.append("name")
        if description is not None:
            account.description = description
            update_fields.append("description")
        if parent_id is not _UNSET:
            account.parent = _validate_parent(ctx, parent_id, account) if parent_id else None
            update_fields.append("parent")

        account.save(update_fields=update_fields)

    logger.info(
        "account.updated",
        extra={
            "tenant": ctx.schema_name,
            "account_id": account.pk,
            "fields": update_fields[1:],
            "user_id": ctx.user_id,
        },
    )
    return account


def deactivate_account(ctx: SchemaContext, account_id: int) -> Account:
    """
    Stop an account from receiving new postings.

    Allowed regardless of posting history; historical balances are kept.
    """
    require(ctx, "accounts.manage")

    with ledger_transaction(ctx):
        account = _lock_account(ctx, account_id)
        if account.is_active:
            account.is_active = False
            account.save(update_fields=["is_active", "updated_at"])

    logger.info(
        "account.deactivated",
        extra={"tenant": ctx.schema_name, "account_id": account.pk, "user_id": ctx.user_id},
    )
    return account


def reactivate_account(ctx: SchemaContext, account_id: int) -> Account:
    require(ctx, "accounts.manage")

    with ledger_transaction(ctx):
        account = _lock_account(ctx, account_id)
        if not account.is_active:
            account.is_active = True
            account.save(update_fields=["is_active", "updated_at"])

    logger.info(
        "account.reactivated",
        extra={"tenant": ctx.schema_name, "account_id": account.pk, "user_id": ctx.user_id},
    )
    return account


def change_account_type(ctx: SchemaContext, account_id: int, new_type: str) -> Account:
    """
    Change an account's type.

    The type decides the balance sign, so it is frozen as soon as any
    journal line (draft or posted) references the account.

    Raises:
        AccountNotFound, InvalidAccountType, SystemAccountLocked, AccountHasPostings
    """
    require(ctx, "accounts.manage")
    _validate_type(new_type)

    with ledger_transaction(ctx):
        account = _lock_account(ctx, account_id)
        assert_can_change_account_type(account)

        if account.account_type == new_type:
            return account

        if JournalLine.objects.for_context(ctx).filter(account_id=account.pk).exists():
            raise AccountHasPostings()

        old_type = account.account_type
        account.account_type = new_type
        account.save(update_fields=["account_type", "updated_at"])

    logger.info(
        "account.type_changed",
        extra={
            "tenant": ctx.schema_name,
            "account_id": account.pk,
            "old_type": old_type,
            "new_type": new_type,
            "user_id": ctx.user_id,
        },
    )
    return account
