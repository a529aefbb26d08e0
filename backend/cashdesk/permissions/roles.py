# Overview: Default role -> permission mappings.
# Least privilege: cashiers run the drawer, managers fix mistakes, admins rewrite entries.

DEFAULT_ROLE_PERMISSIONS = {
    "admin": [
        "access_cash_register",
        "manage_cash_entries",
        "edit_cash_entries",
        "delete_cash_entries",
        "view_cash_report",
    ],

    "manager": [
        "access_cash_register",
        "edit_cash_entries",
        "delete_cash_entries",
        "view_cash_report",
    ],

    "cashier": [
        "access_cash_register",
    ],
}

DEFAULT_ROLE_DESCRIPTIONS = {
    "admin": "Full access, including editing every field of cash entries",
    "manager": "Store manager: corrects payment methods, deletes entries, views reports",
    "cashier": "Front-line cashier: opens and closes the register",
}
