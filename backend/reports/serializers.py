# reports/serializers.py
"""
Output serializers for ledger reports.

The report objects are plain dataclasses from reports.queries; these
serializers only format them. Amounts are rendered as decimal strings.
"""

from rest_framework import serializers


def _money(**kwargs):
    return serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True, **kwargs)


class ReportAccountSerializer(serializers.Serializer):
    id = serializers.IntegerField(source="pk")
    code = serializers.CharField()
    name = serializers.CharField()
    account_type = serializers.CharField()
    normal_balance = serializers.CharField()
    is_active = serializers.BooleanField()


class BalanceRowSerializer(serializers.Serializer):
    account_id = serializers.IntegerField(source="account.pk")
    code = serializers.CharField(source="account.code")
    name = serializers.CharField(source="account.name")
    account_type = serializers.CharField(source="account.account_type")
    debit = _money()
    credit = _money()
    balance = _money()


class TrialBalanceSerializer(serializers.Serializer):
    as_of_date = serializers.DateField()
    rows = BalanceRowSerializer(many=True)
    total_debit = _money()
    total_credit = _money()
    is_balanced = serializers.BooleanField()


class LedgerLineSerializer(serializers.Serializer):
    entry_id = serializers.IntegerField()
    entry_number = serializers.IntegerField()
    entry_date = serializers.DateField()
    description = serializers.CharField()
    reference = serializers.CharField()
    debit = _money()
    credit = _money()
    balance = _money()


class AccountLedgerSerializer(serializers.Serializer):
    account = ReportAccountSerializer()
    date_from = serializers.DateField(allow_null=True)
    date_to = serializers.DateField(allow_null=True)
    opening_balance = _money()
    lines = LedgerLineSerializer(many=True)
    total_debit = _money()
    total_credit = _money()
    closing_balance = _money()


class IncomeStatementSerializer(serializers.Serializer):
    date_from = serializers.DateField()
    date_to = serializers.DateField()
    revenue = BalanceRowSerializer(many=True)
    expenses = BalanceRowSerializer(many=True)
    total_revenue = _money()
    total_expenses = _money()
    net_income = _money()


class BalanceSheetSerializer(serializers.Serializer):
    as_of_date = serializers.DateField()
    assets = BalanceRowSerializer(many=True)
    liabilities = BalanceRowSerializer(many=True)
    equity = BalanceRowSerializer(many=True)
    retained_earnings = _money()
    total_assets = _money()
    total_liabilities = _money()
    total_equity = _money()
    is_balanced = serializers.BooleanField()
