# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import auth_service, permission_service
from .services.permission_service import PermissionDeniedError

OPERATOR_HEADER = "X-Operator-Id"


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def require_operator(f):
    """
    Resolve the acting operator from the X-Operator-Id header.

    Login happens upstream; the gateway forwards the operator id. Sets:
    - g.current_user: The active User
    - g.store_id: The operator's home store (may be None)

    Returns 401 if the header is missing, malformed or names no active operator.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(OPERATOR_HEADER, "").strip()
        if not raw:
            return jsonify({"error": "Operator identification required", "state_changed": False}), 401
        if not raw.isdigit():
            return jsonify({"error": f"{OPERATOR_HEADER} must be an integer", "state_changed": False}), 401

        user = auth_service.get_active_operator(int(raw))
        if user is None:
            permission_service.log_security_event(
                user_id=None,
                event_type="UNKNOWN_OPERATOR",
                success=False,
                resource=request.path,
                action=request.method,
                reason=f"No active operator with id {raw}",
            )
            return jsonify({"error": "Unknown or inactive operator", "state_changed": False}), 401

        g.current_user = user
        g.store_id = user.store_id

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a specific capability. Use after @require_operator."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Operator identification required", "state_changed": False}), 401

            try:
                permission_service.require_permission(
                    g.current_user.id,
                    permission_code,
                    resource=request.path,
                    store_id=g.store_id,
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Access denied",
                    "required_permission": permission_code,
                    "message": str(e),
                    "state_changed": False,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
