# tests/test_journal_engine.py
"""
Tests for the journal engine.

Tests cover:
- Draft validation order and atomicity (nothing written on failure)
- Posting: numbering, idempotency signal, re-validation, inactive-account policy
- Voiding: mirrored reversal, state conflicts, reversal date policy
- Draft edits and deletion
- Tenant boundaries and role permissions
"""

from datetime import date
from decimal import Decimal

import pytest
from django.utils import timezone

from accounting.commands import (
    create_draft,
    delete_draft,
    get_entry,
    list_entries,
    post_entry,
    update_draft,
    void_entry,
)
from accounting.exceptions import (
    AlreadyPosted,
    AlreadyVoided,
    CannotDeletePosted,
    CannotVoidReversal,
    EntryNotFound,
    InactiveAccount,
    InvalidLine,
    LedgerValidationError,
    NotPosted,
    TooFewLines,
    Unbalanced,
    UnknownAccount,
)
from accounting.models import EntrySequence, JournalEntry, JournalLine
from accounting.registry import deactivate_account
from tenant.context import ledger_transaction
from tenant.exceptions import Forbidden


def _entry_count(ctx) -> int:
    with ledger_transaction(ctx):
        return JournalEntry.objects.for_context(ctx).count()


def _line_count(ctx) -> int:
    with ledger_transaction(ctx):
        return JournalLine.objects.for_context(ctx).count()


# =============================================================================
# Create Draft
# =============================================================================

@pytest.mark.django_db
class TestCreateDraft:

    def test_create_draft(self, ctx, accounts, make_lines):
        entry = create_draft(
            ctx,
            entry_date=date(2024, 1, 15),
            description="Cash sale",
            reference="INV-001",
            lines=make_lines(accounts["cash"], accounts["revenue"], "100.00"),
        )

        assert entry.status == JournalEntry.Status.DRAFT
        assert entry.entry_number is None
        assert entry.display_number == f"DRAFT-{entry.pk}"
        assert entry.created_by_id == ctx.user_id

        stored = get_entry(ctx, entry.pk)
        lines = list(stored.lines.all())
        assert [line.line_no for line in lines] == [1, 2]
        assert lines[0].debit == Decimal("100.00")
        assert lines[1].credit == Decimal("100.00")
        assert all(line.tenant_id == ctx.tenant_id for line in lines)

    def test_too_few_lines(self, ctx, accounts):
        with pytest.raises(TooFewLines):
            create_draft(ctx, entry_date=date(2024, 1, 15), lines=[
                {"account_id": accounts["cash"].pk, "debit": "100.00", "credit": "0"},
            ])

    def test_no_lines(self, ctx):
        with pytest.raises(TooFewLines):
            create_draft(ctx, entry_date=date(2024, 1, 15), lines=[])

    @pytest.mark.parametrize("debit,credit", [
        ("100.00", "100.00"),
        ("0", "0"),
        ("-100.00", "0"),
        ("100.001", "0"),
        ("abc", "0"),
    ])
    def test_invalid_line(self, ctx, accounts, debit, credit):
        lines = [
            {"account_id": accounts["cash"].pk, "debit": debit, "credit": credit},
            {"account_id": accounts["revenue"].pk, "debit": "0", "credit": "100.00"},
        ]
        with pytest.raises(InvalidLine):
            create_draft(ctx, entry_date=date(2024, 1, 15), lines=lines)

    def test_amount_too_large_for_column(self, ctx, accounts):
        huge = "100000000000000000000.00"
        lines = [
            {"account_id": accounts["cash"].pk, "debit": huge, "credit": "0"},
            {"account_id": accounts["revenue"].pk, "debit": "0", "credit": huge},
        ]
        with pytest.raises(InvalidLine):
            create_draft(ctx, entry_date=date(2024, 1, 15), lines=lines)
        assert _entry_count(ctx) == 0

    @pytest.mark.parametrize("bad_id", [0.9, "1.9", "abc", None, True])
    def test_account_id_must_be_whole(self, ctx, accounts, bad_id):
        account_id = accounts["cash"].pk + bad_id if isinstance(bad_id, float) else bad_id
        lines = [
            {"account_id": account_id, "debit": "100.00", "credit": "0"},
            {"account_id": accounts["revenue"].pk, "debit": "0", "credit": "100.00"},
        ]
        with pytest.raises(InvalidLine):
            create_draft(ctx, entry_date=date(2024, 1, 15), lines=lines)
        assert _line_count(ctx) == 0

    def test_account_id_as_digit_string(self, ctx, accounts):
        lines = [
            {"account_id": str(accounts["cash"].pk), "debit": "100.00", "credit": "0"},
            {"account_id": accounts["revenue"].pk, "debit": "0", "credit": "100.00"},
        ]
        entry = create_draft(ctx, entry_date=date(2024, 1, 15), lines=lines)

        stored = get_entry(ctx, entry.pk)
        assert [line.account_id for line in stored.lines.all()] == [
            accounts["cash"].pk, accounts["revenue"].pk,
        ]
        assert stored.total_debit == stored.total_credit == Decimal("100.00")

    def test_unknown_account(self, ctx, accounts):
        lines = [
            {"account_id": accounts["cash"].pk, "debit": "100.00", "credit": "0"},
            {"account_id": 999999, "debit": "0", "credit": "100.00"},
        ]
        with pytest.raises(UnknownAccount):
            create_draft(ctx, entry_date=date(2024, 1, 15), lines=lines)

    def test_other_tenant_account_is_unknown(self, ctx, accounts, other_accounts, make_lines):
        with pytest.raises(UnknownAccount):
            create_draft(
                ctx,
                entry_date=date(2024, 1, 15),
                lines=make_lines(accounts["cash"], other_accounts["revenue"], "100.00"),
            )

    def test_inactive_account(self, ctx, accounts, make_lines):
        deactivate_account(ctx, accounts["revenue"].pk)

        with pytest.raises(InactiveAccount):
            create_draft(
                ctx,
                entry_date=date(2024, 1, 15),
                lines=make_lines(accounts["cash"], accounts["revenue"], "100.00"),
            )

    def test_unbalanced_reports_exact_difference(self, ctx, accounts):
        lines = [
            {"account_id": accounts["cash"].pk, "debit": "100.00", "credit": "0"},
            {"account_id": accounts["revenue"].pk, "debit": "0", "credit": "99.99"},
        ]
        with pytest.raises(Unbalanced) as exc_info:
            create_draft(ctx, entry_date=date(2024, 1, 15), lines=lines)

        assert exc_info.value.difference == Decimal("0.01")
        assert exc_info.value.as_dict()["difference"] == "0.01"

    def test_failed_create_writes_nothing(self, ctx, accounts):
        lines = [
            {"account_id": accounts["cash"].pk, "debit": "100.00", "credit": "0"},
            {"account_id": accounts["revenue"].pk, "debit": "0", "credit": "99.99"},
        ]
        with pytest.raises(Unbalanced):
            create_draft(ctx, entry_date=date(2024, 1, 15), lines=lines)

        assert _entry_count(ctx) == 0
        assert _line_count(ctx) == 0

    def test_multi_line_entry(self, ctx, accounts):
        lines = [
            {"account_id": accounts["expense"].pk, "debit": "60.00", "credit": "0"},
            {"account_id": accounts["cash"].pk, "debit": "40.00", "credit": "0"},
            {"account_id": accounts["revenue"].pk, "debit": "0", "credit": "100.00"},
        ]
        entry = create_draft(ctx, entry_date=date(2024, 1, 15), lines=lines)
        assert get_entry(ctx, entry.pk).lines.count() == 3

    def test_viewer_cannot_create(self, viewer_ctx, accounts, make_lines):
        with pytest.raises(Forbidden):
            create_draft(
                viewer_ctx,
                entry_date=date(2024, 1, 15),
                lines=make_lines(accounts["cash"], accounts["revenue"], "100.00"),
            )


# =============================================================================
# Post
# =============================================================================

@pytest.mark.django_db
class TestPostEntry:

    def test_post_assigns_number(self, ctx, accounts, make_entry):
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00", post=False)

        entry = post_entry(ctx, draft.pk)

        assert entry.status == JournalEntry.Status.POSTED
        assert entry.entry_number == 1
        assert entry.display_number == "JE-00001"
        assert entry.posted_at is not None
        assert entry.posted_by_id == ctx.user_id

    def test_numbers_are_sequential(self, ctx, accounts, make_entry):
        numbers = [
            make_entry(ctx, accounts["cash"], accounts["revenue"], "10.00").entry_number
            for _ in range(3)
        ]
        assert numbers == [1, 2, 3]

    def test_numbers_are_per_tenant(self, ctx, accounts, other_ctx, other_accounts, make_entry):
        make_entry(ctx, accounts["cash"], accounts["revenue"], "10.00")
        make_entry(ctx, accounts["cash"], accounts["revenue"], "10.00")

        other = make_entry(other_ctx, other_accounts["cash"], other_accounts["revenue"], "10.00")
        assert other.entry_number == 1

    def test_drafts_do_not_consume_numbers(self, ctx, accounts, make_entry):
        make_entry(ctx, accounts["cash"], accounts["revenue"], "10.00", post=False)
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "10.00")
        assert entry.entry_number == 1

    def test_post_twice_is_already_posted(self, ctx, accounts, make_entry):
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")

        with pytest.raises(AlreadyPosted) as exc_info:
            post_entry(ctx, entry.pk)

        assert exc_info.value.details["entry_number"] == 1
        assert get_entry(ctx, entry.pk).entry_number == 1
        with ledger_transaction(ctx):
            assert EntrySequence.objects.for_context(ctx).get().next_value == 2

    def test_post_void_entry(self, ctx, accounts, make_entry):
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")
        void_entry(ctx, entry.pk, "Duplicate")

        with pytest.raises(AlreadyVoided):
            post_entry(ctx, entry.pk)

    def test_post_revalidates_balance(self, ctx, accounts, make_entry):
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00", post=False)
        with ledger_transaction(ctx):
            JournalLine.objects.for_context(ctx).filter(entry_id=draft.pk, line_no=1).update(
                debit=Decimal("150.00"),
            )

        with pytest.raises(Unbalanced):
            post_entry(ctx, draft.pk)

        stored = get_entry(ctx, draft.pk)
        assert stored.status == JournalEntry.Status.DRAFT
        assert stored.entry_number is None
        with ledger_transaction(ctx):
            assert EntrySequence.objects.for_context(ctx).get().next_value == 1

    def test_post_unknown_entry(self, ctx):
        with pytest.raises(EntryNotFound):
            post_entry(ctx, 999999)

    def test_post_other_tenant_entry(self, ctx, other_ctx, other_accounts, make_entry):
        foreign = make_entry(
            other_ctx, other_accounts["cash"], other_accounts["revenue"], "10.00", post=False,
        )
        with pytest.raises(EntryNotFound):
            post_entry(ctx, foreign.pk)

    def test_viewer_cannot_post(self, ctx, viewer_ctx, accounts, make_entry):
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "10.00", post=False)
        with pytest.raises(Forbidden):
            post_entry(viewer_ctx, draft.pk)


@pytest.mark.django_db
class TestInactiveAccountOnPost:

    def test_allow_policy_posts(self, ctx, accounts, make_entry, settings):
        settings.LEDGER_INACTIVE_ACCOUNT_ON_POST = "ALLOW"
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00", post=False)
        deactivate_account(ctx, accounts["revenue"].pk)

        entry = post_entry(ctx, draft.pk)
        assert entry.status == JournalEntry.Status.POSTED

    def test_reject_policy_refuses(self, ctx, accounts, make_entry, settings):
        settings.LEDGER_INACTIVE_ACCOUNT_ON_POST = "REJECT"
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00", post=False)
        deactivate_account(ctx, accounts["revenue"].pk)

        with pytest.raises(InactiveAccount):
            post_entry(ctx, draft.pk)
        assert get_entry(ctx, draft.pk).status == JournalEntry.Status.DRAFT


# =============================================================================
# Void
# =============================================================================

@pytest.mark.django_db
class TestVoidEntry:

    def test_void_creates_posted_mirror(self, ctx, accounts, make_entry):
        original = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")

        result = void_entry(ctx, original.pk, "Entered twice")

        voided = get_entry(ctx, result["original"].pk)
        reversal = get_entry(ctx, result["reversal"].pk)

        assert voided.status == JournalEntry.Status.VOID
        assert voided.entry_number == 1
        assert voided.void_reason == "Entered twice"
        assert voided.voided_by_id == ctx.user_id
        assert voided.voided_at is not None

        assert reversal.status == JournalEntry.Status.POSTED
        assert reversal.entry_number == 2
        assert reversal.reversal_of_id == original.pk
        assert reversal.is_reversal
        assert reversal.reference == "JE-00001"
        assert "Entered twice" in reversal.description

        original_lines = list(voided.lines.all())
        reversal_lines = list(reversal.lines.all())
        assert len(original_lines) == len(reversal_lines)
        for before, after in zip(original_lines, reversal_lines):
            assert after.account_id == before.account_id
            assert after.debit == before.credit
            assert after.credit == before.debit

    def test_original_lines_untouched(self, ctx, accounts, make_entry):
        original = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")
        before = [(l.account_id, l.debit, l.credit) for l in get_entry(ctx, original.pk).lines.all()]

        void_entry(ctx, original.pk, "Wrong customer")

        after = [(l.account_id, l.debit, l.credit) for l in get_entry(ctx, original.pk).lines.all()]
        assert before == after

    def test_void_draft_is_not_posted(self, ctx, accounts, make_entry):
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00", post=False)

        with pytest.raises(NotPosted):
            void_entry(ctx, draft.pk, "Oops")
        assert _entry_count(ctx) == 1

    def test_void_draft_without_reason_is_not_posted(self, ctx, accounts, make_entry):
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00", post=False)

        with pytest.raises(NotPosted):
            void_entry(ctx, draft.pk, "")

    def test_void_twice(self, ctx, accounts, make_entry):
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")
        void_entry(ctx, entry.pk, "First")

        with pytest.raises(AlreadyVoided):
            void_entry(ctx, entry.pk, "Second")
        assert _entry_count(ctx) == 2

    def test_reversal_cannot_be_voided(self, ctx, accounts, make_entry):
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")
        reversal = void_entry(ctx, entry.pk, "Mistake")["reversal"]

        with pytest.raises(CannotVoidReversal):
            void_entry(ctx, reversal.pk, "Undo the undo")

    def test_reason_required(self, ctx, accounts, make_entry):
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")

        with pytest.raises(LedgerValidationError):
            void_entry(ctx, entry.pk, "   ")
        assert get_entry(ctx, entry.pk).status == JournalEntry.Status.POSTED

    def test_accountant_cannot_void(self, ctx, accountant_ctx, accounts, make_entry):
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")
        with pytest.raises(Forbidden):
            void_entry(accountant_ctx, entry.pk, "No rights")

    def test_void_date_policy_void_date(self, ctx, accounts, make_entry, settings):
        settings.LEDGER_VOID_DATE_POLICY = "VOID_DATE"
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")

        reversal = void_entry(ctx, entry.pk, "Late correction")["reversal"]
        assert reversal.entry_date == timezone.localdate()

    def test_void_date_policy_original_date(self, ctx, accounts, make_entry, settings):
        settings.LEDGER_VOID_DATE_POLICY = "ORIGINAL_DATE"
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")

        reversal = void_entry(ctx, entry.pk, "Same-period correction")["reversal"]
        assert reversal.entry_date == entry.entry_date


# =============================================================================
# Edit / Delete Drafts
# =============================================================================

@pytest.mark.django_db
class TestDraftEdits:

    def test_update_replaces_lines(self, ctx, accounts, make_entry, make_lines):
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00", post=False)

        update_draft(
            ctx,
            draft.pk,
            description="Corrected",
            lines=make_lines(accounts["expense"], accounts["cash"], "40.00"),
        )

        stored = get_entry(ctx, draft.pk)
        assert stored.description == "Corrected"
        assert [(l.account_id, l.debit) for l in stored.lines.all()] == [
            (accounts["expense"].pk, Decimal("40.00")),
            (accounts["cash"].pk, Decimal("0.00")),
        ]

    def test_update_with_unbalanced_lines_keeps_old_lines(self, ctx, accounts, make_entry):
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00", post=False)

        with pytest.raises(Unbalanced):
            update_draft(ctx, draft.pk, lines=[
                {"account_id": accounts["cash"].pk, "debit": "50.00", "credit": "0"},
                {"account_id": accounts["revenue"].pk, "debit": "0", "credit": "40.00"},
            ])
        assert sum(l.debit for l in get_entry(ctx, draft.pk).lines.all()) == Decimal("100.00")

    def test_update_posted_entry(self, ctx, accounts, make_entry):
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")

        with pytest.raises(AlreadyPosted):
            update_draft(ctx, entry.pk, description="Rewrite history")

    def test_delete_draft(self, ctx, accounts, make_entry):
        draft = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00", post=False)

        delete_draft(ctx, draft.pk)

        assert _entry_count(ctx) == 0
        assert _line_count(ctx) == 0
        with pytest.raises(EntryNotFound):
            get_entry(ctx, draft.pk)

    def test_delete_posted(self, ctx, accounts, make_entry):
        entry = make_entry(ctx, accounts["cash"], accounts["revenue"], "100.00")

        with pytest.raises(CannotDeletePosted):
            delete_draft(ctx, entry.pk)
        assert get_entry(ctx, entry.pk).status == JournalEntry.Status.POSTED

    def test_delete_other_tenant_draft(self, ctx, other_ctx, other_accounts, make_entry):
        foreign = make_entry(
            other_ctx, other_accounts["cash"], other_accounts["revenue"], "10.00", post=False,
        )
        with pytest.raises(EntryNotFound):
            delete_draft(ctx, foreign.pk)
        assert _entry_count(other_ctx) == 1


# =============================================================================
# Reads
# =============================================================================

@pytest.mark.django_db
class TestListEntries:

    def test_filters(self, ctx, accounts, make_entry):
        make_entry(ctx, accounts["cash"], accounts["revenue"], "10.00", entry_date=date(2024, 1, 5))
        make_entry(ctx, accounts["cash"], accounts["revenue"], "20.00", entry_date=date(2024, 2, 5))
        make_entry(
            ctx, accounts["cash"], accounts["revenue"], "30.00",
            entry_date=date(2024, 3, 5), post=False,
        )

        assert len(list_entries(ctx)) == 3
        assert len(list_entries(ctx, status="DRAFT")) == 1
        assert len(list_entries(ctx, date_from=date(2024, 2, 1))) == 2
        assert [e.entry_date for e in list_entries(ctx, status="POSTED", date_to=date(2024, 1, 31))] == [
            date(2024, 1, 5),
        ]

    def test_newest_first(self, ctx, accounts, make_entry):
        make_entry(ctx, accounts["cash"], accounts["revenue"], "10.00", entry_date=date(2024, 1, 5))
        make_entry(ctx, accounts["cash"], accounts["revenue"], "20.00", entry_date=date(2024, 2, 5))

        dates = [e.entry_date for e in list_entries(ctx)]
        assert dates == sorted(dates, reverse=True)

    def test_unknown_status(self, ctx):
        with pytest.raises(LedgerValidationError):
            list_entries(ctx, status="PENDING")

    def test_tenant_scoped(self, ctx, accounts, other_ctx, other_accounts, make_entry):
        make_entry(ctx, accounts["cash"], accounts["revenue"], "10.00")
        make_entry(other_ctx, other_accounts["cash"], other_accounts["revenue"], "10.00")

        assert len(list_entries(ctx)) == 1
        assert len(list_entries(other_ctx)) == 1
