# Overview: Read-only reporting routes over the discrepancy history.

from flask import Blueprint, jsonify, request

from cashdesk.decorators import require_actor
from cashdesk.services import reconciliation_service
from cashdesk.validation import NotFoundError, ValidationError, format_amount, parse_day


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

_AMOUNT_FIELDS = (
    "discrepancy_this_month",
    "discrepancy_total",
    "total_discrepancy",
    "total_surplus",
    "total_shortage",
)


def _format_amounts(row: dict) -> dict:
    return {
        key: format_amount(value) if key in _AMOUNT_FIELDS else value
        for key, value in row.items()
    }


@reports_bp.get("/cashiers/<int:user_id>/statistics")
@require_actor
def cashier_statistics(user_id: int):
    branch_id = request.args.get("branch_id", type=int)

    try:
        stats = reconciliation_service.get_cashier_statistics(user_id, branch_id)
    except NotFoundError as exc:
        return jsonify({"error": str(exc)}), 404

    return jsonify(_format_amounts(stats)), 200


@reports_bp.get("/cashiers/<int:user_id>/closings")
@require_actor
def cashier_closings(user_id: int):
    limit = request.args.get("limit", 10, type=int)
    if limit <= 0 or limit > 200:
        return jsonify({"error": "limit must be between 1 and 200"}), 400

    records = reconciliation_service.list_discrepancy_history(
        user_id,
        branch_id=request.args.get("branch_id", type=int),
        limit=limit,
    )
    return jsonify({"closings": [r.to_dict() for r in records]}), 200


@reports_bp.get("/branches/<int:branch_id>/discrepancies")
@require_actor
def branch_discrepancies(branch_id: int):
    try:
        start_day = parse_day(request.args.get("start"), "start")
        end_day = parse_day(request.args.get("end"), "end")
        report = reconciliation_service.get_branch_discrepancy_report(branch_id, start_day, end_day)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except NotFoundError as exc:
        return jsonify({"error": str(exc)}), 404

    return jsonify({
        "branch_id": branch_id,
        "start": start_day.isoformat() if start_day else None,
        "end": end_day.isoformat() if end_day else None,
        "rows": [_format_amounts(row) for row in report],
    }), 200


@reports_bp.get("/branches/<int:branch_id>/day")
@require_actor
def branch_day(branch_id: int):
    try:
        day = parse_day(request.args.get("day"), "day")
        summary = reconciliation_service.get_branch_day_summary(branch_id, day)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except NotFoundError as exc:
        return jsonify({"error": str(exc)}), 404

    return jsonify(_format_amounts(summary)), 200
