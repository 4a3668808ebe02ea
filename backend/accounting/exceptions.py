# accounting/exceptions.py
"""
Ledger error taxonomy.

Every class carries a machine-readable ``code`` and the HTTP status the
REST layer answers with. Commands raise these inside the ledger
transaction, so a failure always rolls back to the pre-call state.

- LedgerValidationError (400): bad input, caught before any write
- LedgerNotFound (404)
- LedgerConflict (409): caller-side logic error on entry/account state
- LedgerConsistencyError (500): an invariant was found broken in storage
"""

from decimal import Decimal


class LedgerError(Exception):
    code = "ledger_error"
    status_code = 400
    default_message = "Ledger operation failed."

    def __init__(self, message: str = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def as_dict(self) -> dict:
        payload = {"error": self.code, "detail": self.message}
        payload.update(self.details)
        return payload


# =============================================================================
# Validation
# =============================================================================

class LedgerValidationError(LedgerError):
    code = "validation_error"
    status_code = 400


class Unbalanced(LedgerValidationError):
    code = "unbalanced"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.difference = abs(total_debit - total_credit)
        super().__init__(
            f"Entry is not balanced. Debit={total_debit} Credit={total_credit} "
            f"Difference={self.difference}",
            difference=str(self.difference),
            total_debit=str(total_debit),
            total_credit=str(total_credit),
        )


class TooFewLines(LedgerValidationError):
    code = "too_few_lines"
    default_message = "Journal entry must have at least 2 lines."


class InvalidLine(LedgerValidationError):
    code = "invalid_line"
    default_message = "Each line needs exactly one of debit or credit greater than zero."


class UnknownAccount(LedgerValidationError):
    code = "unknown_account"

    def __init__(self, account_id):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found.", account_id=account_id)


class InactiveAccount(LedgerValidationError):
    code = "inactive_account"

    def __init__(self, account):
        self.account_id = account.pk
        super().__init__(
            f"Account {account.code} is inactive.",
            account_id=account.pk,
            account_code=account.code,
        )


class DuplicateCode(LedgerValidationError):
    code = "duplicate_code"

    def __init__(self, code: str):
        super().__init__(f"Account code {code!r} already exists.", code=code)


class InvalidParent(LedgerValidationError):
    code = "invalid_parent"
    default_message = "Invalid parent account."


class InvalidAccountType(LedgerValidationError):
    code = "invalid_account_type"

    def __init__(self, account_type):
        super().__init__(f"Unknown account type {account_type!r}.", account_type=account_type)


class InvalidDate(LedgerValidationError):
    code = "invalid_date"

    def __init__(self, name: str, value):
        super().__init__(f"{name} must be a date in YYYY-MM-DD format, got {value!r}.", param=name)


# =============================================================================
# Not found
# =============================================================================

class LedgerNotFound(LedgerError):
    code = "not_found"
    status_code = 404


class EntryNotFound(LedgerNotFound):
    code = "entry_not_found"

    def __init__(self, entry_id):
        super().__init__(f"Journal entry {entry_id} not found.")


class AccountNotFound(LedgerNotFound):
    code = "account_not_found"

    def __init__(self, account_id):
        super().__init__(f"Account {account_id} not found.")


# =============================================================================
# State conflicts
# =============================================================================

class LedgerConflict(LedgerError):
    code = "conflict"
    status_code = 409


class AlreadyPosted(LedgerConflict):
    code = "already_posted"

    def __init__(self, entry):
        super().__init__(
            f"Entry {entry.display_number} is already posted.",
            entry_number=entry.entry_number,
        )


class AlreadyVoided(LedgerConflict):
    code = "already_voided"
    default_message = "Entry is already void."


class NotPosted(LedgerConflict):
    code = "not_posted"
    default_message = "Only posted entries can be voided. Delete the draft instead."


class CannotDeletePosted(LedgerConflict):
    code = "cannot_delete_posted"
    default_message = "Only draft entries can be deleted."


class AccountHasPostings(LedgerConflict):
    code = "account_has_postings"
    default_message = "Account type cannot change once journal lines reference the account."


class SystemAccountLocked(LedgerConflict):
    code = "system_account_locked"
    default_message = "System accounts cannot change type."


class CannotVoidReversal(LedgerConflict):
    code = "cannot_void_reversal"
    default_message = "A reversal entry cannot be voided."


# =============================================================================
# Consistency
# =============================================================================

class TrialBalanceMismatch(LedgerError):
    code = "trial_balance_mismatch"
    status_code = 500

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        super().__init__(
            f"Trial balance does not balance. Debit={total_debit} Credit={total_credit}",
            total_debit=str(total_debit),
            total_credit=str(total_credit),
        )
