"""Tests for the loyalty points ledger."""

from datetime import datetime
from decimal import Decimal

import pytest

from loyalty_insights.config import BalancePolicy, InsightConfig
from loyalty_insights.errors import (
    DataAccessErrorKind,
    DuplicateAccrualError,
    ValidationError,
)
from loyalty_insights.foundation import (
    LoyaltyProgram,
    ProgramType,
    Transaction,
    TransactionStatus,
)
from loyalty_insights.loyalty.ledger import (
    AdjustmentAction,
    LoyaltyLedger,
    MovementType,
    adjustment_delta,
)

NOW = datetime(2024, 6, 30, 12, 0)
POINTS = LoyaltyProgram("M1", ProgramType.POINTS)
STAMPS = LoyaltyProgram("M1", ProgramType.STAMPS)


def sale(tid="T1", amount="42.99", status=TransactionStatus.COMPLETED, merchant="M1"):
    return Transaction(tid, "C1", merchant, Decimal(amount), NOW, status=status)


@pytest.fixture
def ledger():
    return LoyaltyLedger()


class TestAccrue:
    def test_points_credit(self, ledger):
        movement = ledger.accrue(sale(), POINTS, NOW)

        account = ledger.account("C1", "M1")
        assert movement.points_change == 42
        assert movement.movement_type is MovementType.EARNED
        assert movement.balance_after == 42
        assert movement.description == "Transaction reward: purchase"
        assert movement.transaction_id == "T1"
        assert account.current_points == 42
        assert account.total_earned == 42
        assert ledger.is_credited("T1")

    def test_stamps_credit_one_per_visit(self, ledger):
        movement = ledger.accrue(sale(amount="500"), STAMPS, NOW)
        assert movement.points_change == 1
        assert movement.description == "Transaction reward: visit"

    def test_second_credit_rejected(self, ledger):
        ledger.accrue(sale(), POINTS, NOW)
        with pytest.raises(DuplicateAccrualError) as excinfo:
            ledger.accrue(sale(), POINTS, NOW)

        assert excinfo.value.kind is DataAccessErrorKind.CONFLICT
        assert excinfo.value.transaction_id == "T1"
        assert ledger.account("C1", "M1").current_points == 42
        assert len(ledger.movements()) == 1

    def test_pending_transaction_earns_nothing(self, ledger):
        with pytest.raises(ValidationError, match="Only completed transactions"):
            ledger.accrue(sale(status=TransactionStatus.PENDING), POINTS, NOW)
        assert not ledger.is_credited("T1")

    def test_other_merchant_rejected(self, ledger):
        with pytest.raises(ValidationError, match="different merchants"):
            ledger.accrue(sale(merchant="M2"), POINTS, NOW)


class TestAdjustmentDelta:
    @pytest.mark.parametrize(
        "action,magnitude,expected",
        [
            (AdjustmentAction.ADD, 10, 10),
            (AdjustmentAction.DEDUCT, 10, -10),
            ("add", "25", 25),
            ("deduct", " 3 ", -3),
        ],
    )
    def test_signed_delta(self, action, magnitude, expected):
        assert adjustment_delta(action, magnitude) == expected

    @pytest.mark.parametrize(
        "magnitude", [0, -5, "0", "-5", "abc", "1.5", "²", "\u0663", 2.0, True, None]
    )
    def test_rejects_non_positive_integers(self, magnitude):
        with pytest.raises(ValidationError, match="positive integer"):
            adjustment_delta(AdjustmentAction.ADD, magnitude)

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            adjustment_delta("double", 5)

    def test_default_reasons(self):
        assert AdjustmentAction.ADD.default_reason == "Manual points addition"
        assert AdjustmentAction.DEDUCT.default_reason == "Manual points deduction"


class TestAdjust:
    def test_add_then_deduct(self, ledger):
        ledger.adjust("C1", "M1", 100, "Welcome bonus", NOW)
        movement = ledger.adjust("C1", "M1", -30, "Correction", NOW)

        account = ledger.account("C1", "M1")
        assert account.current_points == 70
        assert movement.balance_after == 70
        assert movement.movement_type is MovementType.ADJUSTED
        assert movement.description == "Correction"
        # adjustments do not touch the earned/redeemed totals
        assert account.total_earned == 0
        assert account.total_redeemed == 0

    def test_negative_balance_rejected_by_default(self, ledger):
        ledger.adjust("C1", "M1", 50, "Bonus", NOW)
        with pytest.raises(ValidationError, match="negative balance"):
            ledger.adjust("C1", "M1", -100, "Too much", NOW)

        assert ledger.account("C1", "M1").current_points == 50
        assert len(ledger.movements("C1", "M1")) == 1

    def test_deduct_to_exactly_zero_allowed(self, ledger):
        ledger.adjust("C1", "M1", 50, "Bonus", NOW)
        assert ledger.adjust("C1", "M1", -50, "Reset", NOW).balance_after == 0

    def test_negative_balance_allowed_by_policy(self):
        ledger = LoyaltyLedger(InsightConfig(balance_policy=BalancePolicy.ALLOW_NEGATIVE))
        ledger.adjust("C1", "M1", 50, "Bonus", NOW)
        movement = ledger.adjust("C1", "M1", -100, "Chargeback", NOW)
        assert movement.balance_after == -50

    def test_zero_delta_rejected(self, ledger):
        with pytest.raises(ValidationError, match="cannot be zero"):
            ledger.adjust("C1", "M1", 0, "Nothing", NOW)


class TestRedeem:
    def test_redeem_within_balance(self, ledger):
        ledger.accrue(sale(amount="100"), POINTS, NOW)
        movement = ledger.redeem("C1", "M1", 40, NOW)

        account = ledger.account("C1", "M1")
        assert movement.points_change == -40
        assert movement.movement_type is MovementType.REDEEMED
        assert account.current_points == 60
        assert account.total_redeemed == 40
        assert account.current_points == account.total_earned - account.total_redeemed

    def test_cannot_exceed_balance(self, ledger):
        ledger.accrue(sale(amount="10"), POINTS, NOW)
        with pytest.raises(ValidationError, match="Cannot redeem 11"):
            ledger.redeem("C1", "M1", 11, NOW)

    @pytest.mark.parametrize("points", [0, -1, "5", True])
    def test_rejects_invalid_points(self, ledger, points):
        with pytest.raises(ValidationError):
            ledger.redeem("C1", "M1", points, NOW)


class TestAccounts:
    def test_accounts_scoped_by_merchant(self, ledger):
        ledger.account("C1", "M1")
        ledger.account("C2", "M2")
        assert list(ledger.accounts_for_merchant("M1")) == ["C1"]

    def test_movements_filtered(self, ledger):
        ledger.adjust("C1", "M1", 5, "a", NOW)
        ledger.adjust("C2", "M1", 5, "b", NOW)
        assert [m.customer_id for m in ledger.movements(customer_id="C2")] == ["C2"]
        assert len(ledger.movements(merchant_id="M1")) == 2
