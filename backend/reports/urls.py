# reports/urls.py
"""
URL configuration for ledger reports.

Mounted under /api/tenants/<uuid:tenant_id>/reports/.
"""

from django.urls import path

from .views import (
    AccountBalanceView,
    AccountLedgerView,
    BalanceSheetView,
    IncomeStatementView,
    TrialBalanceView,
)

app_name = "reports"

urlpatterns = [
    path(
        "trial-balance/",
        TrialBalanceView.as_view(),
        name="trial-balance",
    ),
    path(
        "account-balance/<int:account_id>/",
        AccountBalanceView.as_view(),
        name="account-balance",
    ),
    path(
        "account-ledger/<int:account_id>/",
        AccountLedgerView.as_view(),
        name="account-ledger",
    ),
    path(
        "income-statement/",
        IncomeStatementView.as_view(),
        name="income-statement",
    ),
    path(
        "balance-sheet/",
        BalanceSheetView.as_view(),
        name="balance-sheet",
    ),
]
