# accounting/commands.py
"""
Journal engine: the command layer for journal entries.

Commands are the single point where journal entries change state.
Views call commands; commands enforce rules and raise LedgerError
subclasses on refusal.

Pattern:
1. Validate permissions (require)
2. Validate input before any row is written
3. Apply business policies (assert_can_*)
4. Perform the operation inside ledger_transaction(ctx)
5. Log, count and return the entry

State machine: DRAFT -> POSTED -> VOID (see accounting.policies).

Locking discipline (PostgreSQL):
- post/void lock the entry row first, validate, then lock the tenant's
  EntrySequence row only to allocate the number and flip the status.
- The sequence row is per tenant, so tenants never wait on each other.
- Every raise rolls back the whole transaction: a failed call leaves
  all rows in their pre-call state.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from ops.metrics import entries_posted, entries_voided, observe_operation
from tenant.context import SchemaContext, ledger_transaction, require

from .exceptions import (
    EntryNotFound,
    InactiveAccount,
    InvalidLine,
    LedgerValidationError,
    TooFewLines,
    Unbalanced,
)
from .models import EntrySequence, JournalEntry, JournalLine
from .policies import (
    ORIGINAL_DATE,
    assert_can_delete_entry,
    assert_can_edit_entry,
    assert_can_post_entry,
    assert_can_void_entry,
    assert_status_transition,
    reject_inactive_accounts_on_post,
    void_date_policy,
)
from .registry import resolve_accounts


logger = logging.getLogger("accounting")

MONEY_Q = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest amount a DecimalField(max_digits=18, decimal_places=2) column holds
MAX_AMOUNT = Decimal("9999999999999999.99")

Status = JournalEntry.Status


@dataclass(frozen=True)
class LineInput:
    """One validated, normalized journal line awaiting persistence."""

    account_id: int
    debit: Decimal
    credit: Decimal
    description: str = ""


# =============================================================================
# Validation helpers
# =============================================================================

def _to_money(value, line_no: int) -> Decimal:
    if value is None or value == "":
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidLine(f"Line {line_no}: invalid amount {value!r}.")
    if not amount.is_finite():
        raise InvalidLine(f"Line {line_no}: invalid amount {value!r}.")
    if amount != amount.quantize(MONEY_Q):
        raise InvalidLine(f"Line {line_no}: amounts have at most 2 decimal places.")
    if abs(amount) > MAX_AMOUNT:
        raise InvalidLine(f"Line {line_no}: amount exceeds {MAX_AMOUNT}.")
    return amount.quantize(MONEY_Q)


def _to_account_id(value, line_no: int) -> int:
    # Whole numbers only: int(1.9) would land on account 1
    if isinstance(value, bool):
        value = None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise InvalidLine(f"Line {line_no}: account_id must be an integer.")


def _line_field(raw, name, default=None):
    if isinstance(raw, dict):
        return raw.get(name, default)
    return getattr(raw, name, default)


def normalize_lines(lines) -> list[LineInput]:
    """
    Shape and per-line checks, in order:
    1. At least two lines (TooFewLines)
    2. Exactly one of debit/credit > 0, the other exactly 0 (InvalidLine)
    """
    lines = list(lines or [])
    if len(lines) < 2:
        raise TooFewLines()

    normalized = []
    for line_no, raw in enumerate(lines, start=1):
        debit = _to_money(_line_field(raw, "debit"), line_no)
        credit = _to_money(_line_field(raw, "credit"), line_no)

        if debit < 0 or credit < 0:
            raise InvalidLine(f"Line {line_no}: debit and credit cannot be negative.")
        if (debit > 0) == (credit > 0):
            raise InvalidLine(
                f"Line {line_no}: exactly one of debit or credit must be greater than zero."
            )

        account_id = _to_account_id(_line_field(raw, "account_id"), line_no)

        normalized.append(LineInput(
            account_id=account_id,
            debit=debit,
            credit=credit,
            description=_line_field(raw, "description", "") or "",
        ))
    return normalized


def assert_balanced(lines) -> Decimal:
    """Exact to the cent; returns the (equal) total."""
    total_debit = sum((line.debit for line in lines), ZERO)
    total_credit = sum((line.credit for line in lines), ZERO)
    if total_debit != total_credit:
        raise Unbalanced(total_debit, total_credit)
    return total_debit


def validate_lines(ctx: SchemaContext, lines) -> list[LineInput]:
    """
    Full draft validation, performed before any row is written.

    Order: line count, per-line shape, account resolution
    (UnknownAccount / InactiveAccount), balance (Unbalanced).
    """
    normalized = normalize_lines(lines)
    resolve_accounts(ctx, [line.account_id for line in normalized])
    assert_balanced(normalized)
    return normalized


def _write_lines(ctx: SchemaContext, entry: JournalEntry, lines: list[LineInput]) -> None:
    JournalLine.objects.db_manager(ctx.db_alias).bulk_create([
        JournalLine(
            entry=entry,
            tenant_id=ctx.tenant_id,
            line_no=line_no,
            account_id=line.account_id,
            debit=line.debit,
            credit=line.credit,
            description=line.description,
        )
        for line_no, line in enumerate(lines, start=1)
    ])


def _lock_entry(ctx: SchemaContext, entry_id) -> JournalEntry:
    try:
        return JournalEntry.objects.for_context(ctx).select_for_update().get(pk=entry_id)
    except (JournalEntry.DoesNotExist, ValueError, TypeError):
        raise EntryNotFound(entry_id)


def _next_entry_number(ctx: SchemaContext) -> int:
    """
    Allocate the next entry number for the context's tenant.

    Uses select_for_update on the tenant's counter row, so concurrent
    posts serialize here. Must be called inside ledger_transaction(ctx):
    the increment commits or rolls back with the status flip, which keeps
    the sequence free of gaps from aborted posts.
    """
    try:
        seq = EntrySequence.objects.for_context(ctx).select_for_update().get()
    except EntrySequence.DoesNotExist:
        try:
            with transaction.atomic(using=ctx.db_alias):
                seq = EntrySequence.objects.db_manager(ctx.db_alias).create(
                    tenant_id=ctx.tenant_id,
                    next_value=1,
                )
        except IntegrityError:
            seq = EntrySequence.objects.for_context(ctx).select_for_update().get()

    value = seq.next_value
    seq.next_value = value + 1
    seq.save(update_fields=["next_value", "updated_at"])

    logger.debug(
        "entry_number.allocated",
        extra={"tenant": ctx.schema_name, "entry_number": value},
    )
    return value


def _mark_posted(ctx: SchemaContext, entry: JournalEntry) -> JournalEntry:
    """Assign the number and flip DRAFT -> POSTED. Caller holds the entry lock."""
    assert_status_transition(entry.status, Status.POSTED)
    entry.entry_number = _next_entry_number(ctx)
    entry.status = Status.POSTED
    entry.posted_at = timezone.now()
    entry.posted_by_id = ctx.user_id
    entry.save(update_fields=[
        "entry_number", "status", "posted_at", "posted_by", "updated_at",
    ])
    entries_posted.labels(tenant=ctx.schema_name).inc()
    return entry


# =============================================================================
# Reads
# =============================================================================

def get_entry(ctx: SchemaContext, entry_id) -> JournalEntry:
    require(ctx, "journal.view")
    with ledger_transaction(ctx):
        try:
            return (
                JournalEntry.objects.for_context(ctx)
                .select_related("reversal_of")
                .prefetch_related("lines__account")
                .get(pk=entry_id)
            )
        except (JournalEntry.DoesNotExist, ValueError, TypeError):
            raise EntryNotFound(entry_id)


def list_entries(
    ctx: SchemaContext,
    status: str = None,
    date_from: date = None,
    date_to: date = None,
) -> list[JournalEntry]:
    require(ctx, "journal.view")
    if status is not None and status not in Status.values:
        raise LedgerValidationError(f"Unknown status {status!r}.")

    with ledger_transaction(ctx):
        qs = JournalEntry.objects.for_context(ctx).prefetch_related("lines__account")
        if status:
            qs = qs.filter(status=status)
        if date_from:
            qs = qs.filter(entry_date__gte=date_from)
        if date_to:
            qs = qs.filter(entry_date__lte=date_to)
        return list(qs.order_by("-entry_date", "-id"))


# =============================================================================
# Commands
# =============================================================================

def create_draft(
    ctx: SchemaContext,
    entry_date: date,
    description: str = "",
    reference: str = "",
    lines=(),
    source_type: str = "",
    source_id: str = "",
) -> JournalEntry:
    """
    Create a balanced DRAFT entry.

    Args:
        ctx: The schema context
        entry_date: Accounting date of the entry
        description: Entry memo
        reference: External reference (invoice number, ...)
        lines: Iterable of dicts/objects with account_id, debit, credit, description
        source_type, source_id: Submitting module and document, for integrations

    Raises:
        TooFewLines, InvalidLine, UnknownAccount, InactiveAccount, Unbalanced
    """
    require(ctx, "journal.create")

    with observe_operation("create_draft"), ledger_transaction(ctx):
        normalized = validate_lines(ctx, lines)

        entry = JournalEntry.objects.db_manager(ctx.db_alias).create(
            tenant_id=ctx.tenant_id,
            entry_date=entry_date,
            description=description or "",
            reference=reference or "",
            status=Status.DRAFT,
            source_type=source_type or "",
            source_id=source_id or "",
            created_by_id=ctx.user_id,
        )
        _write_lines(ctx, entry, normalized)

    logger.info(
        "journal_entry.created",
        extra={
            "tenant": ctx.schema_name,
            "entry_id": entry.pk,
            "line_count": len(normalized),
            "user_id": ctx.user_id,
        },
    )
    return entry


def update_draft(
    ctx: SchemaContext,
    entry_id: int,
    entry_date: date = None,
    description: str = None,
    reference: str = None,
    lines=None,
) -> JournalEntry:
    """
    Edit a DRAFT entry. Passing lines replaces the whole line set,
    re-validated exactly as in create_draft.
    """
    require(ctx, "journal.create")

    with observe_operation("update_draft"), ledger_transaction(ctx):
        entry = _lock_entry(ctx, entry_id)
        assert_can_edit_entry(entry)

        normalized = validate_lines(ctx, lines) if lines is not None else None

        update_fields = ["updated_at"]
        if entry_date is not None:
            entry.entry_date = entry_date
            update_fields.append("entry_date")
        if description is not None:
            entry.description = description
            update_fields.append("description")
        if reference is not None:
            entry.reference = reference
            update_fields.append("reference")
        entry.save(update_fields=update_fields)

        if normalized is not None:
            entry.lines.all().delete()
            _write_lines(ctx, entry, normalized)

    logger.info(
        "journal_entry.updated",
        extra={"tenant": ctx.schema_name, "entry_id": entry.pk, "user_id": ctx.user_id},
    )
    return entry


def post_entry(ctx: SchemaContext, entry_id: int) -> JournalEntry:
    """
    Post a DRAFT entry: assign the next entry number and freeze it.

    The balance is re-validated from the stored lines. A second call on
    the same entry raises AlreadyPosted and leaves the number unchanged.

    Raises:
        EntryNotFound, AlreadyPosted, AlreadyVoided, TooFewLines,
        Unbalanced, InactiveAccount (only with the REJECT policy)
    """
    require(ctx, "journal.post")

    with observe_operation("post"), ledger_transaction(ctx):
        entry = _lock_entry(ctx, entry_id)
        assert_can_post_entry(entry)

        lines = list(entry.lines.select_related("account"))
        if len(lines) < 2:
            raise TooFewLines()
        assert_balanced(lines)

        if reject_inactive_accounts_on_post():
            for line in lines:
                if not line.account.is_active:
                    raise InactiveAccount(line.account)

        _mark_posted(ctx, entry)

    logger.info(
        "journal_entry.posted",
        extra={
            "tenant": ctx.schema_name,
            "entry_id": entry.pk,
            "entry_number": entry.entry_number,
            "user_id": ctx.user_id,
        },
    )
    return entry


def void_entry(ctx: SchemaContext, entry_id: int, reason: str) -> dict:
    """
    Void a POSTED entry by emitting a posted mirror-image reversal.

    In one transaction: lock the original, create the reversal with every
    line's debit and credit swapped, post it under the normal numbering
    discipline, then flip the original to VOID. The original's lines are
    never touched.

    The reversal is dated per LEDGER_VOID_DATE_POLICY.

    Returns:
        {"original": entry, "reversal": reversal_entry}

    Raises:
        EntryNotFound, NotPosted, AlreadyVoided, CannotVoidReversal,
        LedgerValidationError (empty reason)
    """
    require(ctx, "journal.void")
    reason = (reason or "").strip()

    with observe_operation("void"), ledger_transaction(ctx):
        original = _lock_entry(ctx, entry_id)
        assert_can_void_entry(original)
        if not reason:
            raise LedgerValidationError("A reason is required to void an entry.")

        now = timezone.now()
        if void_date_policy() == ORIGINAL_DATE:
            reversal_date = original.entry_date
        else:
            reversal_date = timezone.localdate(now)

        mirrored = [
            LineInput(
                account_id=line.account_id,
                debit=line.credit,
                credit=line.debit,
                description=line.description,
            )
            for line in original.lines.order_by("line_no")
        ]

        reversal = JournalEntry.objects.db_manager(ctx.db_alias).create(
            tenant_id=ctx.tenant_id,
            entry_date=reversal_date,
            description=f"Reversal of {original.display_number}: {reason}"[:255],
            reference=original.display_number,
            status=Status.DRAFT,
            reversal_of=original,
            source_type=original.source_type,
            source_id=original.source_id,
            created_by_id=ctx.user_id,
        )
        _write_lines(ctx, reversal, mirrored)
        _mark_posted(ctx, reversal)

        assert_status_transition(original.status, Status.VOID)
        original.status = Status.VOID
        original.voided_at = now
        original.voided_by_id = ctx.user_id
        original.void_reason = reason[:255]
        original.save(update_fields=[
            "status", "voided_at", "voided_by", "void_reason", "updated_at",
        ])
        entries_voided.labels(tenant=ctx.schema_name).inc()

    logger.info(
        "journal_entry.voided",
        extra={
            "tenant": ctx.schema_name,
            "entry_id": original.pk,
            "entry_number": original.entry_number,
            "reversal_id": reversal.pk,
            "reversal_number": reversal.entry_number,
            "user_id": ctx.user_id,
        },
    )
    return {"original": original, "reversal": reversal}


def delete_draft(ctx: SchemaContext, entry_id: int) -> None:
    """
    Delete a DRAFT entry and its lines.

    Raises:
        EntryNotFound, CannotDeletePosted
    """
    require(ctx, "journal.create")

    with observe_operation("delete"), ledger_transaction(ctx):
        entry = _lock_entry(ctx, entry_id)
        assert_can_delete_entry(entry)
        entry.delete()

    logger.info(
        "journal_entry.deleted",
        extra={"tenant": ctx.schema_name, "entry_id": entry_id, "user_id": ctx.user_id},
    )
