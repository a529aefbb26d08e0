# Overview: Service-layer operations for operators; encapsulates business logic and database work.

"""
Operator identity and role assignment.

WHY: Every register session and cash entry must be attributable to an
operator. Login (passwords, tokens) happens upstream; this module only
creates operators, resolves them from an id, and assigns roles.
"""

from ..extensions import db
from ..models import User, Role, UserRole, Store
from .concurrency import run_with_retry


class OperatorError(Exception):
    """Raised for operator lookup or creation errors."""
    pass


def create_operator(
    username: str,
    name: str,
    store_id: int | None = None,
    roles: list[str] | tuple[str, ...] = (),
) -> User:
    """
    Create an operator and optionally assign roles.

    Raises:
        OperatorError: If the username is taken or the store doesn't exist
        ValueError: If a role doesn't exist
    """
    def _op():
        if not username or not username.strip():
            raise OperatorError("username is required")

        existing = db.session.query(User).filter_by(username=username.strip()).first()
        if existing:
            raise OperatorError(f"Username '{username}' already exists")

        if store_id is not None and db.session.get(Store, store_id) is None:
            raise OperatorError("Store not found")

        user = User(
            username=username.strip(),
            name=(name or username).strip(),
            store_id=store_id,
        )
        db.session.add(user)
        db.session.commit()
        return user

    user = run_with_retry(_op)
    for role_name in roles:
        assign_role(user.id, role_name)
    return user


def get_active_operator(user_id: int) -> User | None:
    """Resolve an operator id to an active User, or None."""
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign role to user."""
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(
        user_id=user_id,
        role_id=role.id
    ).first()

    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)

    db.session.add(user_role)
    db.session.commit()
    return user_role
