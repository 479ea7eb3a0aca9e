"""Loyalty credit: accrual rule, balances and movements."""

from .accrual import STAMPS_PER_VISIT, points_earned, resolve_program_type, reward_description
from .codes import generate_transaction_code, is_valid_customer_code
from .ledger import (
    AdjustmentAction,
    LoyaltyLedger,
    MovementType,
    PointsMovement,
    adjustment_delta,
)

__all__ = [
    "STAMPS_PER_VISIT",
    "AdjustmentAction",
    "LoyaltyLedger",
    "MovementType",
    "PointsMovement",
    "adjustment_delta",
    "generate_transaction_code",
    "is_valid_customer_code",
    "points_earned",
    "resolve_program_type",
    "reward_description",
]
