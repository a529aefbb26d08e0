# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- REGISTERS --

REGISTER_PERMISSIONS = [
    (
        "access_cash_register",
        "Access Cash Register",
        "Open and close register sessions, record cash entries, view summaries",
        PermissionCategory.REGISTERS,
    ),
]


# -- LEDGER --

LEDGER_PERMISSIONS = [
    (
        "manage_cash_entries",
        "Manage Cash Entries",
        "Edit every field of a cash entry (type, amount, description, payment method)",
        PermissionCategory.LEDGER,
    ),
    (
        "edit_cash_entries",
        "Edit Cash Entries",
        "Change the payment method of a cash entry",
        PermissionCategory.LEDGER,
    ),
    (
        "delete_cash_entries",
        "Delete Cash Entries",
        "Delete cash entries from a register session",
        PermissionCategory.LEDGER,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "view_cash_report",
        "View Cash Report",
        "View register session reports across a date range",
        PermissionCategory.REPORTS,
    ),
]


PERMISSION_DEFINITIONS = (
    REGISTER_PERMISSIONS
    + LEDGER_PERMISSIONS
    + REPORT_PERMISSIONS
)
