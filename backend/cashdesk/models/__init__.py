from .branches import Branch
from .registers import (
    CashRegister,
    CashRegisterShift,
    CashMovement,
    CashTransfer,
    REGISTER_KINDS,
    SHIFT_STATUSES,
    MOVEMENT_KINDS,
    SHIFT_STATUS_OPEN,
    SHIFT_STATUS_CLOSED,
)
from .reconciliation import DiscrepancyRecord

__all__ = [
    'Branch',
    'CashRegister', 'CashRegisterShift', 'CashMovement', 'CashTransfer',
    'REGISTER_KINDS', 'SHIFT_STATUSES', 'MOVEMENT_KINDS',
    'SHIFT_STATUS_OPEN', 'SHIFT_STATUS_CLOSED',
    'DiscrepancyRecord',
]
