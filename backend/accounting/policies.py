# accounting/policies.py
"""
Business policy functions for ledger operations.

Policies answer: "Is this action allowed given the current state?"
They do NOT perform the action - that's the command's job.

The journal entry state machine is closed:

    DRAFT -> POSTED -> VOID

Every transition a command performs is checked against
ALLOWED_TRANSITIONS; anything else is a programming error.

Usage:
    from accounting.policies import assert_can_post_entry

    assert_can_post_entry(entry)   # raises AlreadyPosted / AlreadyVoided
"""

from django.conf import settings

from .exceptions import (
    AlreadyPosted,
    AlreadyVoided,
    CannotDeletePosted,
    CannotVoidReversal,
    NotPosted,
    SystemAccountLocked,
)
from .models import Account, JournalEntry


Status = JournalEntry.Status

ALLOWED_TRANSITIONS = {
    Status.DRAFT: {Status.POSTED},
    Status.POSTED: {Status.VOID},
    Status.VOID: set(),
}

VOID_DATE = "VOID_DATE"
ORIGINAL_DATE = "ORIGINAL_DATE"
VOID_DATE_POLICIES = (VOID_DATE, ORIGINAL_DATE)

ALLOW = "ALLOW"
REJECT = "REJECT"


# =============================================================================
# Status Transitions
# =============================================================================

def validate_status_transition(old_status, new_status) -> tuple[bool, str]:
    """
    Check a journal entry status transition against the state machine.

    Returns:
        (True, "") if allowed
        (False, reason) if not allowed
    """
    if new_status in ALLOWED_TRANSITIONS.get(old_status, set()):
        return True, ""
    return False, f"Cannot transition from {old_status} to {new_status}."


def assert_status_transition(old_status, new_status) -> None:
    allowed, reason = validate_status_transition(old_status, new_status)
    if not allowed:
        raise RuntimeError(reason)


# =============================================================================
# Journal Entry Policies
# =============================================================================

def assert_can_edit_entry(entry) -> None:
    """Only drafts have mutable content."""
    if entry.status == Status.POSTED:
        raise AlreadyPosted(entry)
    if entry.status == Status.VOID:
        raise AlreadyVoided()


def assert_can_post_entry(entry) -> None:
    assert_can_edit_entry(entry)


def assert_can_void_entry(entry) -> None:
    if entry.status == Status.DRAFT:
        raise NotPosted()
    if entry.status == Status.VOID:
        raise AlreadyVoided()
    if entry.reversal_of_id is not None:
        raise CannotVoidReversal()


def assert_can_delete_entry(entry) -> None:
    if entry.status != Status.DRAFT:
        raise CannotDeletePosted()


# =============================================================================
# Account Policies
# =============================================================================

def assert_can_change_account_type(account: Account) -> None:
    if account.is_system:
        raise SystemAccountLocked()


# =============================================================================
# Configured Policies
# =============================================================================

def void_date_policy() -> str:
    policy = getattr(settings, "LEDGER_VOID_DATE_POLICY", VOID_DATE)
    if policy not in VOID_DATE_POLICIES:
        raise ValueError(
            f"LEDGER_VOID_DATE_POLICY must be one of {VOID_DATE_POLICIES}, got {policy!r}."
        )
    return policy


def reject_inactive_accounts_on_post() -> bool:
    policy = getattr(settings, "LEDGER_INACTIVE_ACCOUNT_ON_POST", ALLOW)
    if policy not in (ALLOW, REJECT):
        raise ValueError(
            f"LEDGER_INACTIVE_ACCOUNT_ON_POST must be ALLOW or REJECT, got {policy!r}."
        )
    return policy == REJECT
