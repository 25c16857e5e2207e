# Overview: Flask API routes for registers, shifts, movements and transfers; parses input and returns JSON responses.

# backend/cashdesk/routes/registers.py
"""
Register & Shift API Routes

WHY: Expose the cash engine to till devices and branch dashboards.

DESIGN:
- Shift lifecycle: open -> close (immutable once closed)
- Movements are append-only; request_id makes resubmission safe
- Transfers move cash one tier up (sales -> relief -> vault) atomically
- Dashboards poll /dashboard every DASHBOARD_REFRESH_SECONDS

ERRORS:
- 400 validation (bad amount, bad kind, illegal hierarchy hop)
- 404 missing register / shift / branch
- 409 state conflict (already open, not open, destination closed,
  insufficient funds with the available amount)
- 500 storage/transport fault: generic retry message, logged
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor, require_json
from ..services import movement_service, register_service, shift_service, transfer_service
from ..services.register_service import RegisterError
from ..services.transfer_service import TransferError
from ..validation import (
    ConflictError,
    InsufficientFunds,
    NotFoundError,
    ValidationError,
    format_amount,
    parse_day,
)


registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")

INTERNAL_ERROR = {"error": "Internal server error, please retry"}


def _domain_error(exc: Exception):
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, InsufficientFunds):
        return jsonify({
            "error": str(exc),
            "code": type(exc).__name__,
            "requested": format_amount(exc.requested),
            "available": format_amount(exc.available),
        }), 409
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc), "code": type(exc).__name__}), 409
    return jsonify({"error": str(exc), "code": type(exc).__name__}), 400


DOMAIN_ERRORS = (ValidationError, ConflictError, NotFoundError, RegisterError, TransferError)


def _register_with_shift(register) -> dict:
    d = register.to_dict()
    current_shift = shift_service.get_open_shift(register.id)
    d["current_shift"] = current_shift.to_dict() if current_shift else None
    return d


# =============================================================================
# REGISTERS (read-only catalog)
# =============================================================================

@registers_bp.get("/")
@registers_bp.get("")
@require_actor
def list_registers_route():
    """
    List active registers of a branch with their open shift.

    Query params:
    - branch_id: required
    """
    branch_id = request.args.get("branch_id", type=int)
    if not branch_id:
        return jsonify({"error": "branch_id is required"}), 400

    registers = register_service.get_active_registers(branch_id)
    return jsonify({
        "registers": [_register_with_shift(r) for r in registers]
    }), 200


@registers_bp.get("/dashboard")
@require_actor
def dashboard_route():
    """
    Branch cash dashboard: registers grouped by kind with live balances.

    Clients refresh at refresh_seconds; there is no push channel.
    """
    branch_id = request.args.get("branch_id", type=int)
    if not branch_id:
        return jsonify({"error": "branch_id is required"}), 400

    try:
        register_service.get_branch(branch_id)
        rows = shift_service.get_open_shifts_for_branch(branch_id)
    except DOMAIN_ERRORS as e:
        return _domain_error(e)

    by_kind: dict[str, list] = {}
    for row in rows:
        register = row["register"]
        by_kind.setdefault(register.kind, []).append({
            "register": register.to_dict(),
            "shift": row["shift"].to_dict() if row["shift"] else None,
            "balance": format_amount(row["balance"]),
        })

    return jsonify({
        "branch_id": branch_id,
        "registers_by_kind": by_kind,
        "refresh_seconds": current_app.config["DASHBOARD_REFRESH_SECONDS"],
    }), 200


# =============================================================================
# SHIFT MANAGEMENT
# =============================================================================

@registers_bp.post("/<int:register_id>/shifts/open")
@require_actor
def open_shift_route(register_id: int):
    """
    Open a new shift on a register.

    Request body (optional):
    {
        "opening_amount": "1000.00"  // Starting cash, defaults to 0
    }

    Returns 409 if the register already has an open shift.
    """
    try:
        data = request.get_json(silent=True) or {}
        opening_amount = data.get("opening_amount", 0)

        shift = shift_service.open_shift(
            register_id=register_id,
            opener_id=g.actor_id,
            opening_amount=opening_amount,
        )

        return jsonify({"shift": shift.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify(INTERNAL_ERROR), 500


@registers_bp.get("/<int:register_id>/shifts/current")
@require_actor
def current_shift_route(register_id: int):
    """Open shift of a register with its live balance (shift is null when closed)."""
    try:
        register_service.get_register(register_id)
    except NotFoundError as e:
        return _domain_error(e)

    shift = shift_service.get_open_shift(register_id)
    if not shift:
        return jsonify({"shift": None, "balance": None}), 200

    return jsonify({
        "shift": shift.to_dict(),
        "balance": format_amount(movement_service.compute_balance(shift.id)),
    }), 200


@registers_bp.get("/<int:register_id>/shifts")
@require_actor
def list_shifts_route(register_id: int):
    """
    List shifts of a register, newest first.

    Query params:
    - start, end: inclusive operational days (YYYY-MM-DD)
    - status: open | closed
    - limit: max rows, 1..200 (default 50)
    """
    limit = request.args.get("limit", 50, type=int)
    if limit <= 0 or limit > 200:
        return jsonify({"error": "limit must be between 1 and 200"}), 400

    try:
        start_day = parse_day(request.args.get("start"), "start")
        end_day = parse_day(request.args.get("end"), "end")
        shifts = shift_service.list_shifts(
            register_id,
            start_day,
            end_day,
            status=request.args.get("status") or None,
            limit=limit,
        )
    except DOMAIN_ERRORS as e:
        return _domain_error(e)

    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


@registers_bp.post("/shifts/<int:shift_id>/close")
@require_actor
@require_json
def close_shift_route(shift_id: int):
    """
    Close a shift and reconcile cash.

    Request body:
    {
        "counted_amount": "1290.00",  // Cash physically counted
        "notes": "..."                 (optional)
    }

    discrepancy = counted - expected. Closing twice returns 409.
    """
    try:
        data = request.get_json()
        if data.get("counted_amount") is None:
            return jsonify({"error": "counted_amount required"}), 400

        shift = shift_service.close_shift(
            shift_id=shift_id,
            closer_id=g.actor_id,
            counted_amount=data.get("counted_amount"),
            notes=data.get("notes"),
        )

        return jsonify({"shift": shift.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify(INTERNAL_ERROR), 500


@registers_bp.get("/shifts/<int:shift_id>")
@require_actor
def shift_summary_route(shift_id: int):
    """Shift-close summary for display and printing."""
    try:
        summary = shift_service.get_shift_summary(shift_id)
    except DOMAIN_ERRORS as e:
        return _domain_error(e)
    return jsonify(summary), 200


# =============================================================================
# MOVEMENTS
# =============================================================================

@registers_bp.post("/shifts/<int:shift_id>/movements")
@require_actor
@require_json
def record_movement_route(shift_id: int):
    """
    Record a cash event on an open shift.

    Request body:
    {
        "kind": "income" | "expense" | "deposit" | "withdrawal",
        "amount": "500.00",
        "payment_method": "cash",
        "concept": "Venta mostrador",
        "request_id": "uuid",          (optional, idempotency key)
        "order_id": "...",             (optional)
        "expense_category": "..."      (optional, expenses)
    }
    """
    try:
        data = request.get_json()
        movement = movement_service.record_movement(
            shift_id,
            data.get("kind"),
            data.get("amount"),
            data.get("payment_method") or "cash",
            data.get("concept"),
            g.actor_id,
            request_id=data.get("request_id"),
            order_id=data.get("order_id"),
            expense_category=data.get("expense_category"),
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to record movement")
        return jsonify(INTERNAL_ERROR), 500


@registers_bp.get("/shifts/<int:shift_id>/movements")
@require_actor
def list_movements_route(shift_id: int):
    try:
        movements = movement_service.list_movements(shift_id)
    except DOMAIN_ERRORS as e:
        return _domain_error(e)
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@registers_bp.get("/shifts/<int:shift_id>/balance")
@require_actor
def balance_route(shift_id: int):
    """Expected cash, recomputed from the movement log."""
    try:
        balance = movement_service.compute_balance(shift_id)
    except DOMAIN_ERRORS as e:
        return _domain_error(e)
    return jsonify({"shift_id": shift_id, "balance": format_amount(balance)}), 200


# =============================================================================
# TRANSFERS
# =============================================================================

@registers_bp.post("/shifts/<int:shift_id>/transfers")
@require_actor
@require_json
def transfer_route(shift_id: int):
    """
    Move cash to the next tier's open shift.

    Request body:
    {
        "destination_register_id": 2,
        "amount": "300.00",
        "notes": "Alivio de mediodía"  (optional)
    }
    """
    try:
        data = request.get_json()
        destination_register_id = data.get("destination_register_id")
        if not isinstance(destination_register_id, int) or isinstance(destination_register_id, bool):
            return jsonify({"error": "destination_register_id required"}), 400

        transfer = transfer_service.transfer_between_registers(
            source_shift_id=shift_id,
            destination_register_id=destination_register_id,
            amount=data.get("amount"),
            actor_id=g.actor_id,
            notes=data.get("notes"),
        )
        legs = transfer_service.get_transfer_legs(transfer.id)

        return jsonify({
            "transfer": transfer.to_dict(),
            "movements": [m.to_dict() for m in legs],
        }), 201

    except DOMAIN_ERRORS as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to transfer between registers")
        return jsonify(INTERNAL_ERROR), 500


@registers_bp.post("/shifts/<int:shift_id>/final-withdrawal")
@require_actor
@require_json
def final_withdrawal_route(shift_id: int):
    """
    Take cash out of the system from the main safe (bank deposit, owner draw).

    Request body:
    {
        "amount": "5000.00",
        "reason": "Depósito bancario"
    }
    """
    try:
        data = request.get_json()
        transfer = transfer_service.final_withdrawal(
            source_shift_id=shift_id,
            amount=data.get("amount"),
            actor_id=g.actor_id,
            reason=data.get("reason"),
        )
        legs = transfer_service.get_transfer_legs(transfer.id)

        return jsonify({
            "transfer": transfer.to_dict(),
            "movements": [m.to_dict() for m in legs],
        }), 201

    except DOMAIN_ERRORS as e:
        return _domain_error(e)
    except Exception:
        current_app.logger.exception("Failed to record final withdrawal")
        return jsonify(INTERNAL_ERROR), 500


@registers_bp.get("/shifts/<int:shift_id>/transfers")
@require_actor
def list_transfers_route(shift_id: int):
    try:
        shift_service.get_shift(shift_id)
    except NotFoundError as e:
        return _domain_error(e)
    transfers = transfer_service.list_transfers(shift_id)
    return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200
