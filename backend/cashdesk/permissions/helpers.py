# Overview: Lookups over the permission definitions and role defaults.

from .definitions import PERMISSION_DEFINITIONS
from .roles import DEFAULT_ROLE_PERMISSIONS

_BY_CODE = {perm[0]: perm for perm in PERMISSION_DEFINITIONS}


def get_all_permission_codes() -> list[str]:
    return list(_BY_CODE)


def get_permission_definition(code: str) -> dict | None:
    """Full definition for a capability code, or None if unknown."""
    perm = _BY_CODE.get(code)
    if perm is None:
        return None
    code, name, description, category = perm
    return {
        "code": code,
        "name": name,
        "description": description,
        "category": category,
    }


def validate_permission_code(code: str) -> bool:
    return code in _BY_CODE


def get_default_roles_for(code: str) -> list[str]:
    """Roles that receive a capability out of the box."""
    return [role for role, codes in DEFAULT_ROLE_PERMISSIONS.items() if code in codes]
