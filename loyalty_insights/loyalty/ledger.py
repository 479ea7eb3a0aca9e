"""Loyalty account balances and the movements that change them.

Every balance change goes through :class:`LoyaltyLedger` and leaves a
:class:`PointsMovement` behind. Accrual is keyed on the transaction id so a
transaction can be credited at most once; the hosted store is expected to
enforce the same guarantee with a unique constraint under concurrency.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from loyalty_insights.config import BalancePolicy, InsightConfig
from loyalty_insights.errors import DuplicateAccrualError, ValidationError
from loyalty_insights.foundation.records import LoyaltyAccount, LoyaltyProgram, Transaction
from loyalty_insights.loyalty.accrual import points_earned, reward_description

logger = logging.getLogger(__name__)


class MovementType(str, Enum):
    EARNED = "earned"
    REDEEMED = "redeemed"
    ADJUSTED = "adjusted"


class AdjustmentAction(str, Enum):
    ADD = "add"
    DEDUCT = "deduct"

    @property
    def default_reason(self) -> str:
        if self is AdjustmentAction.ADD:
            return "Manual points addition"
        return "Manual points deduction"


@dataclass(frozen=True)
class PointsMovement:
    """One signed change to a loyalty account."""

    customer_id: str
    merchant_id: str
    points_change: int
    movement_type: MovementType
    balance_after: int
    created_at: datetime
    description: str = ""
    transaction_id: str | None = None


def adjustment_delta(action: AdjustmentAction | str, magnitude: object) -> int:
    """Signed delta for a staff adjustment.

    ``magnitude`` must be a positive integer (or a string holding one);
    the sign comes from ``action``.
    """

    action = AdjustmentAction(action)
    if isinstance(magnitude, bool):
        raise ValidationError(
            "Points adjustment must be a positive integer", {"points": magnitude}
        )
    if isinstance(magnitude, str):
        text = magnitude.strip()
        if not (text.isascii() and text.isdecimal()):
            raise ValidationError(
                "Points adjustment must be a positive integer", {"points": magnitude}
            )
        magnitude = int(text)
    if not isinstance(magnitude, int) or magnitude <= 0:
        raise ValidationError(
            "Points adjustment must be a positive integer", {"points": magnitude}
        )
    return magnitude if action is AdjustmentAction.ADD else -magnitude


class LoyaltyLedger:
    """In-memory loyalty accounts, movements and credited transactions."""

    def __init__(self, config: InsightConfig | None = None) -> None:
        self.config = config or InsightConfig()
        self._accounts: dict[tuple[str, str], LoyaltyAccount] = {}
        self._credited: set[str] = set()
        self._movements: list[PointsMovement] = []

    def account(self, customer_id: str, merchant_id: str) -> LoyaltyAccount:
        """Return the account for the pair, opening an empty one if needed."""

        key = (customer_id, merchant_id)
        existing = self._accounts.get(key)
        if existing is None:
            existing = LoyaltyAccount(customer_id=customer_id, merchant_id=merchant_id)
            self._accounts[key] = existing
        return existing

    def accounts_for_merchant(self, merchant_id: str) -> dict[str, LoyaltyAccount]:
        return {
            customer_id: account
            for (customer_id, owner), account in self._accounts.items()
            if owner == merchant_id
        }

    def movements(
        self, customer_id: str | None = None, merchant_id: str | None = None
    ) -> list[PointsMovement]:
        return [
            movement
            for movement in self._movements
            if (customer_id is None or movement.customer_id == customer_id)
            and (merchant_id is None or movement.merchant_id == merchant_id)
        ]

    def is_credited(self, transaction_id: str) -> bool:
        return transaction_id in self._credited

    def _record(
        self,
        account: LoyaltyAccount,
        change: int,
        movement_type: MovementType,
        now: datetime,
        description: str,
        transaction_id: str | None = None,
    ) -> PointsMovement:
        movement = PointsMovement(
            customer_id=account.customer_id,
            merchant_id=account.merchant_id,
            points_change=change,
            movement_type=movement_type,
            balance_after=account.current_points,
            created_at=now,
            description=description,
            transaction_id=transaction_id,
        )
        self._movements.append(movement)
        return movement

    def accrue(
        self, transaction: Transaction, program: LoyaltyProgram, now: datetime
    ) -> PointsMovement:
        """Credit the reward for a completed transaction exactly once.

        Raises
        ------
        ValidationError
            If the transaction is not completed or belongs to another merchant.
        DuplicateAccrualError
            If the transaction id has already been credited.
        """

        if not transaction.is_completed:
            raise ValidationError(
                "Only completed transactions earn loyalty credit",
                {
                    "transaction_id": transaction.transaction_id,
                    "status": transaction.status.value,
                },
            )
        if transaction.merchant_id != program.merchant_id:
            raise ValidationError(
                "Transaction and program belong to different merchants",
                {
                    "transaction_id": transaction.transaction_id,
                    "transaction_merchant": transaction.merchant_id,
                    "program_merchant": program.merchant_id,
                },
            )
        if transaction.transaction_id in self._credited:
            raise DuplicateAccrualError(transaction.transaction_id)

        earned = points_earned(transaction.amount, program.program_type)
        account = self.account(transaction.customer_id, transaction.merchant_id)
        account.current_points += earned
        account.total_earned += earned
        self._credited.add(transaction.transaction_id)
        logger.debug(
            "Credited %d to %s for transaction %s",
            earned,
            account.customer_id,
            transaction.transaction_id,
        )
        return self._record(
            account,
            earned,
            MovementType.EARNED,
            now,
            reward_description(program.program_type),
            transaction.transaction_id,
        )

    def adjust(
        self,
        customer_id: str,
        merchant_id: str,
        delta: int,
        reason: str,
        now: datetime,
        policy: BalancePolicy | None = None,
    ) -> PointsMovement:
        """Apply a staff adjustment; the new balance is ``current + delta``.

        The balance is never clamped. Under
        :attr:`BalancePolicy.REJECT_NEGATIVE` a debit that would leave the
        balance below zero raises :class:`ValidationError` and leaves the
        account untouched. ``policy`` overrides the ledger config's policy.
        """

        policy = BalancePolicy(policy or self.config.balance_policy)

        if delta == 0:
            raise ValidationError("Points adjustment cannot be zero", {"delta": delta})
        account = self.account(customer_id, merchant_id)
        new_balance = account.current_points + delta
        if new_balance < 0 and policy is BalancePolicy.REJECT_NEGATIVE:
            raise ValidationError(
                f"Adjustment of {delta} would leave a negative balance",
                {
                    "customer_id": customer_id,
                    "current_points": account.current_points,
                    "delta": delta,
                },
            )
        account.current_points = new_balance
        return self._record(account, delta, MovementType.ADJUSTED, now, reason)

    def redeem(
        self,
        customer_id: str,
        merchant_id: str,
        points: int,
        now: datetime,
        description: str = "Points redemption",
    ) -> PointsMovement:
        """Spend points; redemption can never exceed the current balance."""

        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise ValidationError(
                "Redeemed points must be a positive integer", {"points": points}
            )
        account = self.account(customer_id, merchant_id)
        if points > account.current_points:
            raise ValidationError(
                f"Cannot redeem {points} points from a balance of {account.current_points}",
                {
                    "customer_id": customer_id,
                    "current_points": account.current_points,
                    "points": points,
                },
            )
        account.current_points -= points
        account.total_redeemed += points
        return self._record(account, -points, MovementType.REDEEMED, now, description)
