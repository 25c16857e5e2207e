"""
Register catalog access.

WHY: Branch configuration owns the register catalog (name, kind, active
flag); the cash engine mostly reads it. The create/deactivate helpers exist
for bootstrap tooling (CLI) and tests.

DESIGN PRINCIPLES:
- Registers are never deleted, only deactivated
- A register with an open shift cannot be deactivated
- Each branch resolves its own wall clock for operational days
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Branch, CashRegister, CashRegisterShift, REGISTER_KINDS, SHIFT_STATUS_OPEN
from ..validation import NotFoundError, require_text


class RegisterError(ValueError):
    """Raised for register catalog errors (inactive, bad kind, duplicates)."""
    pass


def create_branch(name: str, code: str | None = None, timezone: str | None = None) -> Branch:
    name = require_text(name, "name", max_length=120)

    existing = db.session.query(Branch).filter_by(name=name).first()
    if existing:
        raise RegisterError(f"Branch '{name}' already exists")

    branch = Branch(name=name, code=code, timezone=timezone, is_active=True)
    db.session.add(branch)
    db.session.commit()
    return branch


def get_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if not branch:
        raise NotFoundError("Branch not found")
    return branch


def branch_timezone(branch: Branch | None) -> str:
    """IANA timezone of the branch, falling back to DEFAULT_TIMEZONE."""
    if branch is not None and branch.timezone:
        return branch.timezone
    return current_app.config["DEFAULT_TIMEZONE"]


def create_register(
    branch_id: int,
    name: str,
    kind: str = "sales",
    display_order: int = 0,
) -> CashRegister:
    """
    Create a register in a branch.

    Args:
        branch_id: Branch the register belongs to
        name: Display name (e.g., "Caja 1", "Caja de Alivio")
        kind: sales | relief | vault
        display_order: Position in dashboards
    """
    get_branch(branch_id)
    name = require_text(name, "name", max_length=128)

    if kind not in REGISTER_KINDS:
        raise RegisterError(f"Invalid register kind '{kind}'. Must be one of: {', '.join(REGISTER_KINDS)}")

    existing = db.session.query(CashRegister).filter_by(branch_id=branch_id, name=name).first()
    if existing:
        raise RegisterError(f"Register '{name}' already exists in this branch")

    register = CashRegister(
        branch_id=branch_id,
        name=name,
        kind=kind,
        display_order=display_order,
        is_active=True,
    )
    db.session.add(register)
    db.session.commit()
    return register


def get_register(register_id: int) -> CashRegister:
    register = db.session.get(CashRegister, register_id)
    if not register:
        raise NotFoundError("Register not found")
    return register


def get_active_registers(branch_id: int) -> list[CashRegister]:
    """Active registers of a branch in display order."""
    return db.session.query(CashRegister).filter_by(
        branch_id=branch_id,
        is_active=True,
    ).order_by(CashRegister.display_order, CashRegister.id).all()


def deactivate_register(register_id: int) -> CashRegister:
    """
    Deactivate a register (soft delete).

    WHY: Registers are never deleted (preserve shift history).
    Inactive registers cannot open new shifts.
    """
    register = get_register(register_id)

    open_shift = db.session.query(CashRegisterShift).filter_by(
        register_id=register_id,
        status=SHIFT_STATUS_OPEN,
    ).first()

    if open_shift:
        raise RegisterError("Cannot deactivate register with open shift. Close shift first.")

    register.is_active = False
    db.session.commit()

    return register
