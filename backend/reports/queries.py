# reports/queries.py
"""
Ledger queries: the read side.

Every figure is derived from journal lines of entries that were posted,
i.e. status POSTED or VOID. A voided original keeps contributing; its
reversal is a separate POSTED entry with every amount mirrored, so the
two cancel from the reversal's date onward and an as-of date before the
void still shows the original effect.

Balances are signed by the account's normal side:
- debit-normal (ASSET, EXPENSE): debit - credit
- credit-normal (LIABILITY, EQUITY, REVENUE): credit - debit
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from django.db.models import Sum

from accounting.exceptions import AccountNotFound, TrialBalanceMismatch
from accounting.models import Account, JournalEntry, JournalLine
from ops.logging_config import get_logger
from ops.metrics import trial_balance_mismatches
from tenant.context import SchemaContext, ledger_transaction, require


logger = get_logger("reports")

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class BalanceRow:
    account: Account
    total_debit: Decimal
    total_credit: Decimal

    @property
    def balance(self) -> Decimal:
        """Signed by the account's normal side."""
        return signed_balance(self.account, self.total_debit, self.total_credit)

    @property
    def debit(self) -> Decimal:
        """Trial balance debit column: the net when it is a debit."""
        net = self.total_debit - self.total_credit
        return net if net > 0 else ZERO

    @property
    def credit(self) -> Decimal:
        net = self.total_credit - self.total_debit
        return net if net > 0 else ZERO


@dataclass(frozen=True)
class TrialBalance:
    as_of_date: date
    rows: list
    total_debit: Decimal
    total_credit: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


@dataclass(frozen=True)
class LedgerLine:
    entry_id: int
    entry_number: int
    entry_date: date
    description: str
    reference: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class AccountLedger:
    account: Account
    date_from: Optional[date]
    date_to: Optional[date]
    opening_balance: Decimal
    lines: list = field(default_factory=list)

    @property
    def closing_balance(self) -> Decimal:
        return self.lines[-1].balance if self.lines else self.opening_balance

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)


@dataclass(frozen=True)
class IncomeStatement:
    date_from: date
    date_to: date
    revenue: list
    expenses: list

    @property
    def total_revenue(self) -> Decimal:
        return sum((row.balance for row in self.revenue), ZERO)

    @property
    def total_expenses(self) -> Decimal:
        return sum((row.balance for row in self.expenses), ZERO)

    @property
    def net_income(self) -> Decimal:
        return self.total_revenue - self.total_expenses


@dataclass(frozen=True)
class BalanceSheet:
    as_of_date: date
    assets: list
    liabilities: list
    equity: list
    retained_earnings: Decimal

    @property
    def total_assets(self) -> Decimal:
        return sum((row.balance for row in self.assets), ZERO)

    @property
    def total_liabilities(self) -> Decimal:
        return sum((row.balance for row in self.liabilities), ZERO)

    @property
    def total_equity(self) -> Decimal:
        return sum((row.balance for row in self.equity), ZERO) + self.retained_earnings

    @property
    def is_balanced(self) -> bool:
        return self.total_assets == self.total_liabilities + self.total_equity


def signed_balance(account: Account, debit: Decimal, credit: Decimal) -> Decimal:
    if account.is_debit_normal:
        return debit - credit
    return credit - debit


def _effective_lines(ctx: SchemaContext, date_from: date = None, date_to: date = None):
    qs = JournalLine.objects.for_context(ctx).filter(
        entry__status__in=JournalEntry.EFFECTIVE_STATUSES,
    )
    if date_from is not None:
        qs = qs.filter(entry__entry_date__gte=date_from)
    if date_to is not None:
        qs = qs.filter(entry__entry_date__lte=date_to)
    return qs


def _totals(qs) -> tuple[Decimal, Decimal]:
    totals = qs.aggregate(total_debit=Sum("debit"), total_credit=Sum("credit"))
    return totals["total_debit"] or ZERO, totals["total_credit"] or ZERO


def _balance_rows(
    ctx: SchemaContext,
    date_from: date = None,
    date_to: date = None,
    types=None,
    include_idle: bool = False,
):
    """
    One BalanceRow per account, ordered by code.

    Only accounts with effective activity in the window, unless
    include_idle, which adds every other account (inactive ones too) at zero.
    """
    sums = (
        _effective_lines(ctx, date_from, date_to)
        .values("account_id")
        .annotate(total_debit=Sum("debit"), total_credit=Sum("credit"))
    )
    by_account = {row["account_id"]: row for row in sums}

    accounts = Account.objects.for_context(ctx)
    if not include_idle:
        accounts = accounts.filter(pk__in=list(by_account))
    if types is not None:
        accounts = accounts.filter(account_type__in=types)

    return [
        BalanceRow(
            account=account,
            total_debit=by_account.get(account.pk, {}).get("total_debit") or ZERO,
            total_credit=by_account.get(account.pk, {}).get("total_credit") or ZERO,
        )
        for account in accounts.order_by("code")
    ]


def _load_account(ctx: SchemaContext, account_id) -> Account:
    try:
        return Account.objects.for_context(ctx).get(pk=account_id)
    except (Account.DoesNotExist, ValueError, TypeError):
        raise AccountNotFound(account_id)


# =============================================================================
# Queries
# =============================================================================

def account_balance(ctx: SchemaContext, account_id: int, as_of_date: date) -> Decimal:
    """Signed balance of one account over entries dated on or before as_of_date."""
    require(ctx, "reports.view")
    with ledger_transaction(ctx):
        account = _load_account(ctx, account_id)
        debit, credit = _totals(_effective_lines(ctx, date_to=as_of_date).filter(account=account))
    return signed_balance(account, debit, credit)


def trial_balance(ctx: SchemaContext, as_of_date: date) -> TrialBalance:
    """
    Every account's net balance as of a date, in debit/credit columns.
    Accounts without activity, active or not, appear with zero balances.

    Unequal totals cannot happen while the per-entry balance invariant
    holds; if they differ the ledger has been altered out of band. That is
    logged as CRITICAL, counted for alerting, and raised as
    TrialBalanceMismatch instead of being rendered.
    """
    require(ctx, "reports.view")
    with ledger_transaction(ctx):
        rows = _balance_rows(ctx, date_to=as_of_date, include_idle=True)

    total_debit = sum((row.debit for row in rows), ZERO)
    total_credit = sum((row.credit for row in rows), ZERO)
    result = TrialBalance(
        as_of_date=as_of_date,
        rows=rows,
        total_debit=total_debit,
        total_credit=total_credit,
    )

    if not result.is_balanced:
        trial_balance_mismatches.labels(tenant=ctx.schema_name).inc()
        logger.critical(
            "trial_balance.mismatch",
            extra={
                "tenant": ctx.schema_name,
                "as_of_date": as_of_date.isoformat(),
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
            },
        )
        raise TrialBalanceMismatch(total_debit, total_credit)

    return result


def account_ledger(
    ctx: SchemaContext,
    account_id: int,
    date_from: date = None,
    date_to: date = None,
) -> AccountLedger:
    """Opening balance, each effective line with a running balance, closing balance."""
    require(ctx, "reports.view")
    with ledger_transaction(ctx):
        account = _load_account(ctx, account_id)

        opening = ZERO
        if date_from is not None:
            before = _effective_lines(ctx).filter(account=account, entry__entry_date__lt=date_from)
            opening = signed_balance(account, *_totals(before))

        lines = (
            _effective_lines(ctx, date_from, date_to)
            .filter(account=account)
            .select_related("entry")
            .order_by("entry__entry_date", "entry__entry_number", "line_no")
        )

        running = opening
        ledger_lines = []
        for line in lines:
            running += signed_balance(account, line.debit, line.credit)
            ledger_lines.append(LedgerLine(
                entry_id=line.entry_id,
                entry_number=line.entry.entry_number,
                entry_date=line.entry.entry_date,
                description=line.description or line.entry.description,
                reference=line.entry.reference,
                debit=line.debit,
                credit=line.credit,
                balance=running,
            ))

    return AccountLedger(
        account=account,
        date_from=date_from,
        date_to=date_to,
        opening_balance=opening,
        lines=ledger_lines,
    )


def income_statement(ctx: SchemaContext, date_from: date, date_to: date) -> IncomeStatement:
    """Revenue and expense activity between two dates (inclusive)."""
    require(ctx, "reports.view")
    with ledger_transaction(ctx):
        rows = _balance_rows(
            ctx,
            date_from=date_from,
            date_to=date_to,
            types=[Account.AccountType.REVENUE, Account.AccountType.EXPENSE],
        )
    return IncomeStatement(
        date_from=date_from,
        date_to=date_to,
        revenue=[r for r in rows if r.account.account_type == Account.AccountType.REVENUE],
        expenses=[r for r in rows if r.account.account_type == Account.AccountType.EXPENSE],
    )


def balance_sheet(ctx: SchemaContext, as_of_date: date) -> BalanceSheet:
    """
    Assets against liabilities and equity as of a date.

    Revenue and expense accounts are not closed into equity by entries;
    their cumulative net is reported as retained earnings.
    """
    require(ctx, "reports.view")
    with ledger_transaction(ctx):
        rows = _balance_rows(ctx, date_to=as_of_date)

    def of_type(account_type):
        return [r for r in rows if r.account.account_type == account_type]

    retained = (
        sum((r.balance for r in of_type(Account.AccountType.REVENUE)), ZERO)
        - sum((r.balance for r in of_type(Account.AccountType.EXPENSE)), ZERO)
    )
    sheet = BalanceSheet(
        as_of_date=as_of_date,
        assets=of_type(Account.AccountType.ASSET),
        liabilities=of_type(Account.AccountType.LIABILITY),
        equity=of_type(Account.AccountType.EQUITY),
        retained_earnings=retained,
    )
    if not sheet.is_balanced:
        logger.critical(
            "balance_sheet.mismatch",
            extra={
                "tenant": ctx.schema_name,
                "as_of_date": as_of_date.isoformat(),
                "total_assets": str(sheet.total_assets),
                "total_liabilities_equity": str(sheet.total_liabilities + sheet.total_equity),
            },
        )
    return sheet
