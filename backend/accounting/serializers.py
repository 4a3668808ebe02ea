# accounting/serializers.py
"""
Serializers for accounting API.

Note: These serializers are used for:
1. Input shape validation (types, lengths, decimal places)
2. Output formatting

Ledger rules (balance, account resolution, state machine) live in
registry.py and commands.py, which report failures as LedgerError.
Output serializers touch related rows, so views run them inside a
ledger_transaction of their own once the command has committed.
"""

from django.core.exceptions import ObjectDoesNotExist
from rest_framework import serializers

from .models import Account, JournalEntry, JournalLine


# =============================================================================
# Account Serializers
# =============================================================================

class AccountSerializer(serializers.ModelSerializer):
    normal_balance = serializers.ReadOnlyField()
    parent_id = serializers.IntegerField(read_only=True, allow_null=True)
    parent_code = serializers.CharField(source="parent.code", read_only=True, default=None)

    class Meta:
        model = Account
        fields = [
            "id",
            "public_id",
            "code",
            "name",
            "account_type",
            "normal_balance",
            "parent_id",
            "parent_code",
            "is_active",
            "is_system",
            "description",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AccountCreateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20)
    name = serializers.CharField(max_length=255)
    # Checked by the registry so an unknown type answers invalid_account_type
    account_type = serializers.CharField(max_length=20)
    parent_id = serializers.IntegerField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, default="")


class AccountUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    parent_id = serializers.IntegerField(required=False, allow_null=True)


class AccountTypeChangeSerializer(serializers.Serializer):
    account_type = serializers.CharField(max_length=20)


# =============================================================================
# Journal Entry Serializers
# =============================================================================

class JournalLineSerializer(serializers.ModelSerializer):
    account_id = serializers.IntegerField(read_only=True)
    account_code = serializers.CharField(source="account.code", read_only=True)
    account_name = serializers.CharField(source="account.name", read_only=True)

    class Meta:
        model = JournalLine
        fields = [
            "line_no",
            "account_id",
            "account_code",
            "account_name",
            "description",
            "debit",
            "credit",
        ]
        read_only_fields = fields


class JournalEntrySerializer(serializers.ModelSerializer):
    display_number = serializers.ReadOnlyField()
    reversal_of_id = serializers.IntegerField(read_only=True, allow_null=True)
    reversal_id = serializers.SerializerMethodField()
    total_debit = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    total_credit = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    lines = JournalLineSerializer(many=True, read_only=True)

    class Meta:
        model = JournalEntry
        fields = [
            "id",
            "public_id",
            "entry_number",
            "display_number",
            "entry_date",
            "description",
            "reference",
            "status",
            "reversal_of_id",
            "reversal_id",
            "source_type",
            "source_id",
            "created_at",
            "created_by_id",
            "posted_at",
            "posted_by_id",
            "voided_at",
            "voided_by_id",
            "void_reason",
            "total_debit",
            "total_credit",
            "lines",
        ]
        read_only_fields = fields

    def get_reversal_id(self, obj):
        try:
            return obj.reversal.pk
        except ObjectDoesNotExist:
            return None


class JournalLineInputSerializer(serializers.Serializer):
    account_id = serializers.IntegerField()
    debit = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, default=0)
    credit = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, default=0)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class JournalEntryCreateSerializer(serializers.Serializer):
    entry_date = serializers.DateField()
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    # Line count is a ledger rule (too_few_lines), not a shape rule
    lines = JournalLineInputSerializer(many=True, allow_empty=True)
    source_type = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    source_id = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")


class JournalEntryUpdateSerializer(serializers.Serializer):
    entry_date = serializers.DateField(required=False)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True)
    lines = JournalLineInputSerializer(many=True, required=False, allow_empty=True)


class JournalEntryVoidSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
