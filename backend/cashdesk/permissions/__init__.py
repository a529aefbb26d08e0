# Overview: Permission system package.
# Re-exports all public APIs for convenient imports.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    REGISTER_PERMISSIONS,
    LEDGER_PERMISSIONS,
    REPORT_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS, DEFAULT_ROLE_DESCRIPTIONS
from .helpers import (
    get_all_permission_codes,
    get_permission_definition,
    validate_permission_code,
    get_default_roles_for,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "REGISTER_PERMISSIONS",
    "LEDGER_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "DEFAULT_ROLE_DESCRIPTIONS",
    "get_all_permission_codes",
    "get_permission_definition",
    "validate_permission_code",
    "get_default_roles_for",
]
