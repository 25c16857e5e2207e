from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


CENT = Decimal("0.01")

# Numeric(12, 2) upper bound: 9,999,999,999.99
MAX_AMOUNT = Decimal("9999999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (operation illegal given persisted state)."""


class InvalidAmount(ValidationError):
    """Amount is non-numeric, non-finite, or not strictly positive."""


class RegisterAlreadyOpen(ConflictError):
    """The register already has a shift in status 'open'."""


class ShiftNotOpen(ConflictError):
    """The referenced shift is closed (or otherwise not open)."""


class DestinationShiftNotOpen(ConflictError):
    """The destination register of a transfer has no open shift."""


class InsufficientFunds(ConflictError):
    """Requested amount exceeds the source shift's cash balance."""

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient cash: requested {requested}, available {available}"
        )


def quantize_amount(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Any, field: str = "amount", *, allow_zero: bool = False) -> Decimal:
    """
    Coerce client input to a cent-precision Decimal.

    - bool, None, blank strings, NaN/Infinity and non-numeric text are rejected
    - floats are routed through str() so 0.1 stays 0.10, not its binary expansion
    - allow_zero=False (default) requires amount > 0; True requires amount >= 0
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount(f"{field} is required and must be a number")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = _to_decimal(str(value), field)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidAmount(f"{field} must be a number")
        amount = _to_decimal(stripped, field)
    else:
        raise InvalidAmount(f"{field} must be a number")

    if not amount.is_finite():
        raise InvalidAmount(f"{field} must be a finite number")

    amount = quantize_amount(amount)

    if allow_zero:
        if amount < 0:
            raise InvalidAmount(f"{field} cannot be negative")
    elif amount <= 0:
        raise InvalidAmount(f"{field} must be greater than zero")

    if amount > MAX_AMOUNT:
        raise InvalidAmount(f"{field} exceeds maximum allowed ({MAX_AMOUNT})")

    return amount


def _to_decimal(raw: str, field: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise InvalidAmount(f"{field} must be a number")


def parse_day(value: Any, field: str) -> date | None:
    """Parse an optional YYYY-MM-DD string."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")


def require_text(value: Any, field: str, *, max_length: int = 255) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(value: Any, field: str, *, max_length: int = 255) -> str | None:
    if value is None or not str(value).strip():
        return None
    return require_text(value, field, max_length=max_length)


def format_amount(value: Decimal | None) -> str | None:
    """Signed decimal string with two places, as returned by the API."""
    if value is None:
        return None
    return str(quantize_amount(Decimal(value)))


class NotFoundError(LookupError):
    """404-level missing entity (register, shift, branch, transfer)."""
