# backend/cashdesk/services/transfer_service.py
"""
Cash transfers across the register hierarchy.

WHY: Cash is consolidated as the day goes on: sales till -> relief safe
("alivio") -> main safe ("fuerte") -> out of the building. Each hop must be
traceable on both ends so cash never vanishes between tiers.

RULES:
1. A tier transfer is exactly two movements committed together: a cash
   withdrawal on the source shift and a cash deposit on the destination
   register's open shift. Both commit or neither does.
2. Only the next tier is a valid destination (sales -> relief, relief -> vault).
3. No open shift at the destination: DestinationShiftNotOpen, nothing written.
   Source and destination are claimed (claim_open_shift) before the funds
   check, so a racing close or a second transfer out of the same shift waits
   or fails instead of overdrawing.
4. Amount may not exceed the source shift's current cash balance.
5. A final withdrawal (vault -> outside) is the only single-leg transfer and
   is flagged is_final_withdrawal on its header.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import CashMovement, CashRegister, CashRegisterShift, CashTransfer, SHIFT_STATUS_OPEN
from ..models.registers import (
    MOVEMENT_DEPOSIT,
    MOVEMENT_WITHDRAWAL,
    REGISTER_KIND_RELIEF,
    REGISTER_KIND_SALES,
    REGISTER_KIND_VAULT,
)
from ..time_utils import utcnow
from ..validation import (
    DestinationShiftNotOpen,
    InsufficientFunds,
    NotFoundError,
    ShiftNotOpen,
    format_amount,
    optional_text,
    parse_amount,
    require_text,
)
from .concurrency import lock_for_update, run_with_retry
from .movement_service import claim_open_shift, compute_balance, record_movement


# Cash tier hierarchy: where each register kind may send cash
NEXT_TIER = {
    REGISTER_KIND_SALES: (REGISTER_KIND_RELIEF,),
    REGISTER_KIND_RELIEF: (REGISTER_KIND_VAULT,),
    REGISTER_KIND_VAULT: (),
}

CASH = "cash"


class TransferError(ValueError):
    """Raised when a transfer violates the register hierarchy."""
    pass


def _lock_open_source(source_shift_id: int) -> CashRegisterShift:
    shift = lock_for_update(db.session.query(CashRegisterShift).filter_by(id=source_shift_id)).first()
    if not shift:
        raise NotFoundError("Source shift not found")
    if not claim_open_shift(shift.id):
        raise ShiftNotOpen(f"Source shift {source_shift_id} is not open")
    return shift


def _ensure_funds(shift: CashRegisterShift, amount) -> None:
    available = compute_balance(shift.id)
    if amount > available:
        raise InsufficientFunds(requested=amount, available=available)


def _next_sequence(source_shift_id: int) -> int:
    count = db.session.query(CashTransfer).filter_by(source_shift_id=source_shift_id).count()
    return count + 1


def transfer_between_registers(
    source_shift_id: int,
    destination_register_id: int,
    amount,
    actor_id: int,
    notes: str | None = None,
    *,
    now: datetime | None = None,
) -> CashTransfer:
    """
    Move cash from an open shift to the next tier's open shift.

    Args:
        source_shift_id: Open shift the cash leaves
        destination_register_id: Register one tier up
        amount: Cash amount (> 0, <= source balance)
        actor_id: Identity performing the transfer
        notes: Optional free text appended to both concepts

    Raises:
        InvalidAmount, ShiftNotOpen, TransferError,
        DestinationShiftNotOpen, InsufficientFunds (no writes in any case)
    """
    amount = parse_amount(amount)
    notes = optional_text(notes, "notes", max_length=120)

    def _op():
        source = _lock_open_source(source_shift_id)
        source_register = source.register

        destination_register = db.session.get(CashRegister, destination_register_id)
        if not destination_register:
            raise NotFoundError("Destination register not found")
        if destination_register.id == source_register.id:
            raise TransferError("Cannot transfer to the same register")
        if destination_register.branch_id != source_register.branch_id:
            raise TransferError("Destination register belongs to another branch")
        if not destination_register.is_active:
            raise TransferError("Destination register is inactive")
        if destination_register.kind not in NEXT_TIER[source_register.kind]:
            raise TransferError(
                f"Cannot transfer from a {source_register.kind} register to a {destination_register.kind} register"
            )

        destination = lock_for_update(
            db.session.query(CashRegisterShift).filter_by(
                register_id=destination_register.id,
                status=SHIFT_STATUS_OPEN,
            )
        ).first()
        if not destination or not claim_open_shift(destination.id):
            raise DestinationShiftNotOpen(
                f"Register '{destination_register.name}' has no open shift to receive the cash"
            )

        _ensure_funds(source, amount)

        created_at = now or utcnow()
        sequence = _next_sequence(source.id)
        suffix = f" - {notes}" if notes else ""

        transfer = CashTransfer(
            branch_id=source.branch_id,
            source_shift_id=source.id,
            source_register_id=source_register.id,
            destination_shift_id=destination.id,
            destination_register_id=destination_register.id,
            amount=amount,
            concept=f"Alivio a {destination_register.name}{suffix} (Nº {sequence})",
            sequence=sequence,
            is_final_withdrawal=False,
            actor_id=actor_id,
            created_at=created_at,
        )
        db.session.add(transfer)
        db.session.flush()

        record_movement(
            source.id,
            MOVEMENT_WITHDRAWAL,
            amount,
            CASH,
            transfer.concept,
            actor_id,
            transfer_id=transfer.id,
            now=created_at,
            commit=False,
        )
        record_movement(
            destination.id,
            MOVEMENT_DEPOSIT,
            amount,
            CASH,
            f"Alivio desde {source_register.name}{suffix} (Nº {sequence})",
            actor_id,
            transfer_id=transfer.id,
            now=created_at,
            commit=False,
        )

        db.session.commit()
        return transfer

    transfer = run_with_retry(_op)
    current_app.logger.info(
        "Transfer %s: %s from shift %s to shift %s",
        transfer.id, format_amount(transfer.amount), transfer.source_shift_id, transfer.destination_shift_id,
    )
    return transfer


def final_withdrawal(
    source_shift_id: int,
    amount,
    actor_id: int,
    reason: str,
    *,
    now: datetime | None = None,
) -> CashTransfer:
    """
    Take cash out of the tracked system from the main safe.

    WHY: Bank deposits and owner draws are the one legitimate single-leg
    transfer. They are recorded with is_final_withdrawal=True and a
    "Retiro final" concept so they are never mistaken for a transfer whose
    deposit leg went missing.

    Raises:
        InvalidAmount, ShiftNotOpen, TransferError (source not a vault),
        InsufficientFunds
    """
    amount = parse_amount(amount)
    reason = require_text(reason, "reason", max_length=120)

    def _op():
        source = _lock_open_source(source_shift_id)
        if source.register.kind != REGISTER_KIND_VAULT:
            raise TransferError("Final withdrawals are only allowed from the main safe (vault)")

        _ensure_funds(source, amount)

        created_at = now or utcnow()
        sequence = _next_sequence(source.id)

        transfer = CashTransfer(
            branch_id=source.branch_id,
            source_shift_id=source.id,
            source_register_id=source.register_id,
            destination_shift_id=None,
            destination_register_id=None,
            amount=amount,
            concept=f"Retiro final: {reason} (Nº {sequence})",
            sequence=sequence,
            is_final_withdrawal=True,
            actor_id=actor_id,
            created_at=created_at,
        )
        db.session.add(transfer)
        db.session.flush()

        record_movement(
            source.id,
            MOVEMENT_WITHDRAWAL,
            amount,
            CASH,
            transfer.concept,
            actor_id,
            transfer_id=transfer.id,
            now=created_at,
            commit=False,
        )

        db.session.commit()
        return transfer

    transfer = run_with_retry(_op)
    current_app.logger.info(
        "Final withdrawal %s: %s left the system from shift %s",
        transfer.id, format_amount(transfer.amount), transfer.source_shift_id,
    )
    return transfer


def get_transfer(transfer_id: int) -> CashTransfer:
    transfer = db.session.get(CashTransfer, transfer_id)
    if not transfer:
        raise NotFoundError("Transfer not found")
    return transfer


def get_transfer_legs(transfer_id: int) -> list[CashMovement]:
    """Withdrawal leg first, then the deposit leg (absent for final withdrawals)."""
    get_transfer(transfer_id)
    legs = db.session.query(CashMovement).filter_by(transfer_id=transfer_id).all()
    return sorted(legs, key=lambda m: 0 if m.kind == MOVEMENT_WITHDRAWAL else 1)


def list_transfers(shift_id: int) -> list[CashTransfer]:
    """Transfers leaving or arriving at a shift, oldest first."""
    return db.session.query(CashTransfer).filter(
        (CashTransfer.source_shift_id == shift_id) | (CashTransfer.destination_shift_id == shift_id)
    ).order_by(CashTransfer.created_at, CashTransfer.id).all()
