# reports/views.py
"""
Read-only report endpoints over reports.queries.

Mounted under /api/tenants/<uuid:tenant_id>/reports/. Dates are
YYYY-MM-DD query parameters; as_of_date defaults to today.
"""

from datetime import date

from django.utils import timezone
from rest_framework.response import Response

from accounting.views import LedgerAPIView, parse_date_param
from accounting.registry import get_account

from .queries import (
    account_balance,
    account_ledger,
    balance_sheet,
    income_statement,
    trial_balance,
)
from .serializers import (
    AccountLedgerSerializer,
    BalanceSheetSerializer,
    IncomeStatementSerializer,
    ReportAccountSerializer,
    TrialBalanceSerializer,
)


def _as_of_date(request) -> date:
    return parse_date_param(request, "as_of_date", default=timezone.localdate())


class TrialBalanceView(LedgerAPIView):
    """
    GET /api/tenants/<tenant_id>/reports/trial-balance/?as_of_date=

    A mismatch between the debit and credit totals answers 500
    trial_balance_mismatch instead of rendering the figures.
    """

    def get(self, request, tenant_id):
        ctx = self.get_context(request, tenant_id)
        report = trial_balance(ctx, _as_of_date(request))
        return Response(TrialBalanceSerializer(report).data)


class AccountBalanceView(LedgerAPIView):
    """GET /api/tenants/<tenant_id>/reports/account-balance/<account_id>/?as_of_date="""

    def get(self, request, tenant_id, account_id):
        ctx = self.get_context(request, tenant_id)
        as_of = _as_of_date(request)

        balance = account_balance(ctx, account_id, as_of)
        account = get_account(ctx, account_id)
        return Response({
            "account": ReportAccountSerializer(account).data,
            "as_of_date": as_of.isoformat(),
            "balance": f"{balance:.2f}",
        })


class AccountLedgerView(LedgerAPIView):
    """GET /api/tenants/<tenant_id>/reports/account-ledger/<account_id>/?date_from=&date_to="""

    def get(self, request, tenant_id, account_id):
        ctx = self.get_context(request, tenant_id)
        report = account_ledger(
            ctx,
            account_id,
            date_from=parse_date_param(request, "date_from"),
            date_to=parse_date_param(request, "date_to"),
        )
        return Response(AccountLedgerSerializer(report).data)


class IncomeStatementView(LedgerAPIView):
    """
    GET /api/tenants/<tenant_id>/reports/income-statement/?date_from=&date_to=

    Defaults to the calendar year to date.
    """

    def get(self, request, tenant_id):
        ctx = self.get_context(request, tenant_id)
        date_to = parse_date_param(request, "date_to", default=timezone.localdate())
        date_from = parse_date_param(request, "date_from", default=date_to.replace(month=1, day=1))

        report = income_statement(ctx, date_from, date_to)
        return Response(IncomeStatementSerializer(report).data)


class BalanceSheetView(LedgerAPIView):
    """GET /api/tenants/<tenant_id>/reports/balance-sheet/?as_of_date="""

    def get(self, request, tenant_id):
        ctx = self.get_context(request, tenant_id)
        report = balance_sheet(ctx, _as_of_date(request))
        return Response(BalanceSheetSerializer(report).data)
