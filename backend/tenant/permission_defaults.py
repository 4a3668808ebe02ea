# tenant/permission_defaults.py

ROLE_DEFAULTS = {
    "OWNER": {
        "accounts.view",
        "accounts.manage",
        "journal.view",
        "journal.create",
        "journal.post",
        "journal.void",
        "reports.view",
    },
    "ADMIN": {
        "accounts.view",
        "accounts.manage",
        "journal.view",
        "journal.create",
        "journal.post",
        "journal.void",
        "reports.view",
    },
    "ACCOUNTANT": {
        "accounts.view",
        "journal.view",
        "journal.create",
        "journal.post",
        "reports.view",
    },
    "VIEWER": {
        "accounts.view",
        "journal.view",
        "reports.view",
    },
}


def perms_for_role(role: str) -> frozenset:
    return frozenset(ROLE_DEFAULTS.get(role, ()))
