# accounting/apps.py
"""Accounting app configuration."""

from django.apps import AppConfig
from django.core import checks


class AccountingConfig(AppConfig):
    """Configuration for the accounting app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "accounting"
    verbose_name = "Accounting"

    def ready(self):
        """Validate ledger policy settings at startup (manage.py check, runserver)."""
        checks.register(check_ledger_policies)


def check_ledger_policies(app_configs, **kwargs):
    from django.conf import settings

    from .policies import reject_inactive_accounts_on_post, void_date_policy

    errors = []
    for check_id, policy in (
        ("accounting.E001", void_date_policy),
        ("accounting.E002", reject_inactive_accounts_on_post),
    ):
        try:
            policy()
        except ValueError as e:
            errors.append(checks.Error(str(e), id=check_id))

    timeout = getattr(settings, "LEDGER_LOCK_TIMEOUT_MS", None)
    if not isinstance(timeout, int) or timeout <= 0:
        errors.append(checks.Error(
            f"LEDGER_LOCK_TIMEOUT_MS must be a positive integer, got {timeout!r}.",
            id="accounting.E003",
        ))
    return errors
