# accounting/models.py
"""
Ledger models.

These tables live inside each tenant's schema (see tenant.provisioning and
tenant.context.ledger_transaction). Every row also carries the owning
tenant id and every query filters on it.

DO NOT write to these models outside the command layer:
- accounting/registry.py (chart of accounts)
- accounting/commands.py (journal entries and lines)

Models:
- Account: Chart of Accounts
- JournalEntry: Journal entry headers
- JournalLine: Journal entry lines
- EntrySequence: Per-tenant entry number counter
"""

from decimal import Decimal
import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q


class TenantScopedQuerySet(models.QuerySet):
    def for_context(self, ctx):
        """Rows owned by the context's tenant, read from the tenant's database."""
        return self.using(ctx.db_alias).filter(tenant_id=ctx.tenant_id)


class Account(models.Model):
    """
    Chart of Accounts entry.

    Supports:
    - Hierarchical structure (parent/child, same tenant, acyclic)
    - Account types with normal balance rules
    - Soft deactivation (history keeps its balance)
    - System accounts whose type is locked
    """

    class AccountType(models.TextChoices):
        ASSET = "ASSET", "Asset"
        LIABILITY = "LIABILITY", "Liability"
        EQUITY = "EQUITY", "Equity"
        REVENUE = "REVENUE", "Revenue"
        EXPENSE = "EXPENSE", "Expense"

    class NormalBalance(models.TextChoices):
        DEBIT = "DEBIT", "Debit"
        CREDIT = "CREDIT", "Credit"

    # Map account types to their normal balance
    NORMAL_BALANCE_MAP = {
        AccountType.ASSET: NormalBalance.DEBIT,
        AccountType.EXPENSE: NormalBalance.DEBIT,
        AccountType.LIABILITY: NormalBalance.CREDIT,
        AccountType.EQUITY: NormalBalance.CREDIT,
        AccountType.REVENUE: NormalBalance.CREDIT,
    }

    objects = TenantScopedQuerySet.as_manager()

    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.DO_NOTHING,
        related_name="+",
        db_constraint=False,  # Tenant lives in the system schema
    )

    public_id = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
    )

    code = models.CharField(max_length=20)
    name = models.CharField(max_length=255)

    account_type = models.CharField(
        max_length=20,
        choices=AccountType.choices,
        db_column="type",
    )

    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="children",
    )

    is_active = models.BooleanField(default=True)
    is_system = models.BooleanField(
        default=False,
        help_text="System accounts are seeded at provisioning; their type cannot change.",
    )

    description = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "accounts"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "code"],
                name="uniq_account_code_per_tenant",
            )
        ]
        ordering = ["code"]
        indexes = [
            models.Index(fields=["tenant", "account_type"], name="account_tenant_type_idx"),
            models.Index(fields=["tenant", "parent"], name="account_tenant_parent_idx"),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    @property
    def normal_balance(self) -> str:
        return self.NORMAL_BALANCE_MAP[self.account_type]

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == self.NormalBalance.DEBIT

    def get_ancestors(self) -> list["Account"]:
        """Returns list of ancestor accounts from root to immediate parent."""
        ancestors = []
        seen = set()
        current = self.parent
        while current and current.pk not in seen:
            seen.add(current.pk)
            ancestors.insert(0, current)
            current = current.parent
        return ancestors


class JournalEntry(models.Model):
    """
    Journal Entry header.

    Workflow: DRAFT -> POSTED -> VOID
    - DRAFT: Balanced entry awaiting posting; lines may change, no number
    - POSTED: Numbered and frozen; affects balances
    - VOID: Was posted, then compensated by a separate reversal entry
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        POSTED = "POSTED", "Posted"
        VOID = "VOID", "Void"

    # Statuses whose lines count toward balances. A VOID original keeps its
    # effect; its reversal (a POSTED entry) neutralises it from its own date.
    EFFECTIVE_STATUSES = (Status.POSTED, Status.VOID)

    objects = TenantScopedQuerySet.as_manager()

    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.DO_NOTHING,
        related_name="+",
        db_constraint=False,  # Tenant lives in the system schema
    )

    public_id = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
    )

    # Assigned exactly once, at posting
    entry_number = models.PositiveBigIntegerField(null=True, blank=True)

    entry_date = models.DateField()
    description = models.CharField(max_length=255, blank=True, default="")
    reference = models.CharField(max_length=100, blank=True, default="")

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT,
    )

    reversal_of = models.OneToOneField(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reversal",
    )

    # Source tracking (for integrations)
    source_type = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Module that submitted this entry (e.g., 'invoicing', 'payroll')",
    )
    source_id = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Identifier of the source document",
    )

    # Posting metadata
    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.DO_NOTHING,
        related_name="+",
        db_constraint=False,  # Cross-schema FK (User in system schema)
    )

    # Void metadata
    voided_at = models.DateTimeField(null=True, blank=True)
    voided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.DO_NOTHING,
        related_name="+",
        db_constraint=False,  # Cross-schema FK (User in system schema)
    )
    void_reason = models.CharField(max_length=255, blank=True, default="")

    # Audit
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.DO_NOTHING,
        related_name="+",
        db_constraint=False,  # Cross-schema FK (User in system schema)
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "journal_entries"
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "entry_number"],
                name="uniq_entry_number_per_tenant",
            ),
            models.CheckConstraint(
                condition=Q(status="DRAFT", entry_number__isnull=True)
                | (~Q(status="DRAFT") & Q(entry_number__isnull=False)),
                name="chk_entry_number_iff_posted",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "entry_date", "id"], name="entry_tenant_date_idx"),
            models.Index(fields=["tenant", "status"], name="entry_tenant_status_idx"),
        ]
        ordering = ["-entry_date", "-id"]

    def __str__(self):
        return f"JE {self.display_number} ({self.entry_date}) {self.status}"

    @property
    def display_number(self) -> str:
        if self.entry_number is None:
            return f"DRAFT-{self.pk}"
        return f"JE-{self.entry_number:05d}"

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines.all()), Decimal("0.00"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines.all()), Decimal("0.00"))


class JournalLine(models.Model):
    """
    Individual line within a journal entry.
    Each line affects one account with either a debit or credit amount.
    """

    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    objects = TenantScopedQuerySet.as_manager()

    tenant = models.ForeignKey(
        "tenant.Tenant",
        on_delete=models.DO_NOTHING,
        related_name="+",
        db_constraint=False,  # Tenant lives in the system schema
    )

    line_no = models.PositiveIntegerField()

    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )

    description = models.CharField(max_length=255, blank=True, default="")

    debit = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    class Meta:
        db_table = "journal_entry_lines"
        ordering = ["entry", "line_no"]
        constraints = [
            models.UniqueConstraint(
                fields=["entry", "line_no"],
                name="uniq_line_no_per_entry",
            ),
            models.CheckConstraint(
                condition=~(Q(debit__gt=0) & Q(credit__gt=0)),
                name="chk_line_not_both_debit_credit",
            ),
            models.CheckConstraint(
                condition=~(Q(debit__exact=0) & Q(credit__exact=0)),
                name="chk_line_not_both_zero",
            ),
            models.CheckConstraint(
                condition=Q(debit__gte=0) & Q(credit__gte=0),
                name="chk_line_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "account"], name="line_tenant_account_idx"),
        ]

    def __str__(self):
        return f"JE#{self.entry_id} L{self.line_no}"


class EntrySequence(models.Model):
    """
    Per-tenant counter for journal entry numbers.

    Locked with SELECT ... FOR UPDATE by the posting path, so concurrent
    posts in one tenant serialize here and never share a number. Other
    tenants hold their own row and never wait on it.
    """

    objects = TenantScopedQuerySet.as_manager()

    tenant = models.OneToOneField(
        "tenant.Tenant",
        on_delete=models.DO_NOTHING,
        related_name="+",
        db_constraint=False,  # Tenant lives in the system schema
    )
    next_value = models.PositiveBigIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "entry_sequences"

    def __str__(self):
        return f"{self.tenant_id}:journal_entry_number={self.next_value}"
