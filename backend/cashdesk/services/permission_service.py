# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Oracle and Security Event Logging

WHY: Register and ledger code only asks yes/no capability questions.
Role strings never leak past this module.

DESIGN PRINCIPLES:
- Fail closed: Deny by default, require explicit permission grant
- Log denials only: Permission grants are not logged
- Denials are recorded as SecurityEvent rows, not as application errors
"""

from ..extensions import db
from ..models import User, UserRole, Role, RolePermission, Permission, SecurityEvent
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS, DEFAULT_ROLE_DESCRIPTIONS
from cashdesk.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when an actor lacks a required capability."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    store_id: int | None = None,
    *,
    commit: bool = True,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - UNKNOWN_OPERATOR
    - ROLE_ASSIGNED
    """
    event = SecurityEvent(
        user_id=user_id,
        store_id=store_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        occurred_at=utcnow()
    )

    db.session.add(event)
    if commit:
        db.session.commit()

    return event


def _actor_id(actor) -> int | None:
    if actor is None:
        return None
    if isinstance(actor, User):
        return actor.id
    return int(actor)


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all capability codes for a user: the union over their roles.

    Inactive users hold no capabilities.
    """
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return set()

    rows = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id)
        .all()
    )
    return {code for (code,) in rows}


def has_capability(actor, capability: str) -> bool:
    """
    Permission Oracle: does this actor (User or user id) hold the capability?

    An unknown or missing actor holds nothing.
    """
    user_id = _actor_id(actor)
    if user_id is None:
        return False
    return capability in get_user_permissions(user_id)


def require_permission(
    actor,
    permission_code: str,
    resource: str | None = None,
    store_id: int | None = None,
) -> None:
    """
    Require actor to hold a capability, raise PermissionDeniedError if not.

    Usage:
        require_permission(user.id, "delete_cash_entries", resource="ledger_entry:42")
    """
    if has_capability(actor, permission_code):
        return

    # Log only denials (policy: no granted logs)
    log_security_event(
        user_id=_actor_id(actor),
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        store_id=store_id,
    )
    raise PermissionDeniedError(f"Permission denied: {permission_code}")


def require_any_permission(
    actor,
    permission_codes: tuple[str, ...],
    resource: str | None = None,
    store_id: int | None = None,
) -> str:
    """
    Require at least one of the capabilities; return the first one held.

    The returned code lets callers branch on how much the actor may do.
    """
    held = get_user_permissions(_actor_id(actor)) if actor is not None else set()
    for code in permission_codes:
        if code in held:
            return code

    log_security_event(
        user_id=_actor_id(actor),
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=f"ANY_OF:{','.join(permission_codes)}",
        reason=f"Missing any of: {', '.join(permission_codes)}",
        store_id=store_id,
    )
    raise PermissionDeniedError(f"Permission denied: requires any of {', '.join(permission_codes)}")


def get_user_role_names(user_id: int) -> list[str]:
    """Get list of role names for a user."""
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name)
        .all()
    )
    return [name for (name,) in rows]


def initialize_permissions() -> int:
    """
    Initialize all permission definitions in database.

    Idempotent: Safe to run multiple times.
    """
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(code=code).first()

        if not existing:
            db.session.add(Permission(
                code=code,
                name=name,
                description=description,
                category=category
            ))
            created_count += 1

    db.session.commit()
    return created_count


def create_default_roles() -> int:
    """Create the admin, manager and cashier roles if missing. Idempotent."""
    created_count = 0
    for role_name in DEFAULT_ROLE_PERMISSIONS:
        if db.session.query(Role).filter_by(name=role_name).first():
            continue
        db.session.add(Role(name=role_name, description=DEFAULT_ROLE_DESCRIPTIONS.get(role_name)))
        created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions() -> int:
    """
    Link roles to their default capabilities from DEFAULT_ROLE_PERMISSIONS.

    Idempotent: Safe to run multiple times (skips existing).
    """
    created_count = 0

    for role_name, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(name=role_name).first()

        if not role:
            continue  # Role doesn't exist, skip

        for permission_code in permission_codes:
            permission = db.session.query(Permission).filter_by(code=permission_code).first()

            if not permission:
                continue  # Permission doesn't exist, skip

            existing = db.session.query(RolePermission).filter_by(
                role_id=role.id,
                permission_id=permission.id
            ).first()

            if not existing:
                db.session.add(RolePermission(
                    role_id=role.id,
                    permission_id=permission.id
                ))
                created_count += 1

    db.session.commit()
    return created_count


def bootstrap_permissions() -> dict:
    """Permissions, roles and role grants in one call (used by `flask system init`)."""
    return {
        "permissions_created": initialize_permissions(),
        "roles_created": create_default_roles(),
        "grants_created": assign_default_role_permissions(),
    }


def grant_permission_to_role(role_name: str, permission_code: str) -> RolePermission:
    """Grant a permission to a role."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")

    permission = db.session.query(Permission).filter_by(code=permission_code).first()
    if not permission:
        raise ValueError(f"Permission '{permission_code}' not found")

    existing = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id
    ).first()

    if existing:
        return existing  # Already granted

    role_permission = RolePermission(
        role_id=role.id,
        permission_id=permission.id
    )

    db.session.add(role_permission)
    db.session.commit()

    return role_permission


def revoke_permission_from_role(role_name: str, permission_code: str) -> bool:
    """Revoke a permission from a role."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")

    permission = db.session.query(Permission).filter_by(code=permission_code).first()
    if not permission:
        raise ValueError(f"Permission '{permission_code}' not found")

    role_permission = db.session.query(RolePermission).filter_by(
        role_id=role.id,
        permission_id=permission.id
    ).first()

    if role_permission:
        db.session.delete(role_permission)
        db.session.commit()
        return True

    return False  # Wasn't granted in the first place
