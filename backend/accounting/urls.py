# accounting/urls.py
"""
URL configuration for accounting API.

Mounted under /api/tenants/<uuid:tenant_id>/.

Endpoints:
- /accounts/ - Chart of accounts with activation and type changes
- /journal-entries/ - Journal entries with post and void actions
"""

from django.urls import path

from .views import (
    # Account views
    AccountListCreateView,
    AccountDetailView,
    AccountDeactivateView,
    AccountReactivateView,
    AccountChangeTypeView,
    # Journal entry views
    JournalEntryListCreateView,
    JournalEntryDetailView,
    JournalEntryPostView,
    JournalEntryVoidView,
)

app_name = "accounting"

urlpatterns = [
    # ==========================================================================
    # Accounts (Chart of Accounts)
    # ==========================================================================
    path(
        "accounts/",
        AccountListCreateView.as_view(),
        name="account-list-create",
    ),
    path(
        "accounts/<int:account_id>/",
        AccountDetailView.as_view(),
        name="account-detail",
    ),
    path(
        "accounts/<int:account_id>/deactivate/",
        AccountDeactivateView.as_view(),
        name="account-deactivate",
    ),
    path(
        "accounts/<int:account_id>/reactivate/",
        AccountReactivateView.as_view(),
        name="account-reactivate",
    ),
    path(
        "accounts/<int:account_id>/change-type/",
        AccountChangeTypeView.as_view(),
        name="account-change-type",
    ),

    # ==========================================================================
    # Journal Entries
    # ==========================================================================
    path(
        "journal-entries/",
        JournalEntryListCreateView.as_view(),
        name="journal-entry-list-create",
    ),
    path(
        "journal-entries/<int:entry_id>/",
        JournalEntryDetailView.as_view(),
        name="journal-entry-detail",
    ),

    # Journal Entry Workflow Actions
    path(
        "journal-entries/<int:entry_id>/post/",
        JournalEntryPostView.as_view(),
        name="journal-entry-post",
    ),
    path(
        "journal-entries/<int:entry_id>/void/",
        JournalEntryVoidView.as_view(),
        name="journal-entry-void",
    ),
]
