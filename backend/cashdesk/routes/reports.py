from flask import Blueprint, jsonify, request, g, current_app

from cashdesk.decorators import require_operator, require_permission
from cashdesk.services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/register-sessions")
@require_operator
@require_permission("view_cash_report")
def register_sessions_report():
    """
    Per-session reconciliation for a store and the totals across them.

    Query: store_id (required), start_date, end_date (inclusive, on opened_at),
    operator_id, status=all|open|closed.

    Operators bound to a store may only report on that store.
    """
    store_id = request.args.get("store_id", type=int)
    if not store_id:
        return jsonify({"error": "store_id is required", "state_changed": False}), 400
    if g.current_user.store_id and g.current_user.store_id != store_id:
        return jsonify({"error": "Store access denied", "state_changed": False}), 403

    operator_id = request.args.get("operator_id", type=int)
    status = request.args.get("status", "all")
    start = request.args.get("start_date")
    end = request.args.get("end_date")

    try:
        report = reporting_service.register_sessions_report(
            store_id=store_id,
            start=start,
            end=end,
            operator_id=operator_id,
            status=status,
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc), "state_changed": False}), 400
    except Exception:
        current_app.logger.exception("Failed to build register session report for store %s", store_id)
        return jsonify({"error": "Internal server error", "state_changed": False}), 500
