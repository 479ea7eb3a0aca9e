"""Tests for the session-scoped loyalty service."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from loyalty_insights.analyses.merchant_summary import DashboardRange
from loyalty_insights.analyses.segmentation import CustomerSegment
from loyalty_insights.config import BalancePolicy, InsightConfig
from loyalty_insights.errors import (
    DataAccessError,
    DataAccessErrorKind,
    DuplicateAccrualError,
    ValidationError,
)
from loyalty_insights.foundation import (
    Customer,
    CustomerStatus,
    LoyaltyProgram,
    ProgramType,
    Transaction,
    TransactionStatus,
)
from loyalty_insights.loyalty.ledger import AdjustmentAction
from loyalty_insights.services import (
    InMemoryLoyaltyStore,
    LoyaltyService,
    MerchantSession,
    PointsAdjustmentRequest,
    RecordTransactionRequest,
)

NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)
SESSION = MerchantSession(merchant_id="M1", staff_user_id="staff-1")


def make_service(program_type=ProgramType.POINTS, config=None):
    store = InMemoryLoyaltyStore(config)
    store.set_program(LoyaltyProgram("M1", program_type))
    store.add_customers(
        "M1",
        [
            Customer("C1", "QR-0001", "Ada", "Lovelace", NOW - timedelta(days=200)),
            Customer("C2", "QR-0002", "Alan", "Turing", NOW - timedelta(days=10)),
            Customer(
                "C3",
                "QR-0003",
                "Blocked",
                "Person",
                NOW - timedelta(days=10),
                status=CustomerStatus.BLOCKED,
            ),
        ],
    )
    return LoyaltyService(store, config=config, clock=lambda: NOW), store


@pytest.fixture
def service():
    return make_service()[0]


class TestScanCustomer:
    def test_resolves_code(self, service):
        assert service.scan_customer(SESSION, "QR-0001").customer_id == "C1"

    def test_short_code_rejected(self, service):
        with pytest.raises(ValidationError, match="3 to 50 characters"):
            service.scan_customer(SESSION, "QR")

    def test_unknown_code_not_found(self, service):
        with pytest.raises(DataAccessError) as excinfo:
            service.scan_customer(SESSION, "QR-9999")
        assert excinfo.value.kind is DataAccessErrorKind.NOT_FOUND

    def test_blocked_customer_rejected(self, service):
        with pytest.raises(ValidationError, match="blocked"):
            service.scan_customer(SESSION, "QR-0003")

    def test_other_merchant_cannot_see_customer(self, service):
        with pytest.raises(DataAccessError):
            service.scan_customer(MerchantSession("M2"), "QR-0001")


class TestRecordTransaction:
    def test_points_program_credits_whole_units(self):
        service, store = make_service()
        with capture_logs() as logs:
            response = service.record_transaction(
                SESSION, RecordTransactionRequest(customer_id="C1", amount=Decimal("42.99"))
            )

        assert response.points_earned == 42
        assert response.balance == 42
        assert response.status is TransactionStatus.COMPLETED
        assert response.transaction_id.startswith("TXN-")
        assert store.get_transaction("M1", response.transaction_id).created_at == NOW
        assert store.ledger.is_credited(response.transaction_id)
        event = next(log for log in logs if log["event"] == "transaction_recorded")
        assert event["merchant_id"] == "M1"
        assert event["points_earned"] == 42

    def test_stamps_program_credits_one_visit(self):
        service, _ = make_service(ProgramType.STAMPS)
        response = service.record_transaction(
            SESSION, RecordTransactionRequest(customer_id="C1", amount=Decimal("500"))
        )
        assert response.points_earned == 1

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_invalid_amount_writes_nothing(self, amount):
        service, store = make_service()
        with pytest.raises(ValidationError, match="must be positive"):
            service.record_transaction(
                SESSION, RecordTransactionRequest(customer_id="C1", amount=Decimal(amount))
            )
        assert store.transactions_for_merchant("M1") == []
        assert store.ledger.account("C1", "M1").current_points == 0

    def test_missing_program(self):
        store = InMemoryLoyaltyStore()
        service = LoyaltyService(store, clock=lambda: NOW)
        with pytest.raises(DataAccessError) as excinfo:
            service.record_transaction(
                SESSION, RecordTransactionRequest(customer_id="C1", amount=Decimal("5"))
            )
        assert excinfo.value.kind is DataAccessErrorKind.NOT_FOUND

    def test_duplicate_transaction_id_conflicts(self):
        service, store = make_service()
        request = RecordTransactionRequest(
            customer_id="C1", amount=Decimal("10"), transaction_id="T-1"
        )
        service.record_transaction(SESSION, request)
        with pytest.raises(DataAccessError) as excinfo:
            service.record_transaction(SESSION, request)
        assert excinfo.value.kind is DataAccessErrorKind.CONFLICT
        assert store.ledger.account("C1", "M1").current_points == 10

    def test_pending_sale_credited_on_completion(self):
        service, store = make_service()
        response = service.record_transaction(
            SESSION,
            RecordTransactionRequest(
                customer_id="C1",
                amount=Decimal("25.50"),
                status=TransactionStatus.PENDING,
                transaction_id="T-P",
            ),
        )
        assert response.points_earned == 0
        assert response.balance == 0

        updated = service.update_transaction_status(SESSION, "T-P", TransactionStatus.COMPLETED)
        assert updated.status is TransactionStatus.COMPLETED
        assert store.ledger.account("C1", "M1").current_points == 25

    def test_failed_credit_leaves_transaction_pending(self):
        """Completion without an active program stores nothing."""
        store = InMemoryLoyaltyStore()
        store.add_customer(
            "M1", Customer("C1", "QR-0001", "Ada", "Lovelace", NOW - timedelta(days=200))
        )
        store.add_transaction(
            Transaction(
                "T-P", "C1", "M1", Decimal("25.50"), NOW, status=TransactionStatus.PENDING
            )
        )
        service = LoyaltyService(store, clock=lambda: NOW)

        with pytest.raises(DataAccessError) as excinfo:
            service.update_transaction_status(SESSION, "T-P", TransactionStatus.COMPLETED)
        assert excinfo.value.kind is DataAccessErrorKind.NOT_FOUND
        assert store.get_transaction("M1", "T-P").status is TransactionStatus.PENDING
        assert store.ledger.account("C1", "M1").current_points == 0

        store.set_program(LoyaltyProgram("M1", ProgramType.POINTS))
        service.update_transaction_status(SESSION, "T-P", TransactionStatus.COMPLETED)
        assert store.get_transaction("M1", "T-P").status is TransactionStatus.COMPLETED
        assert store.ledger.account("C1", "M1").current_points == 25

    def test_rejected_credit_leaves_transaction_pending(self):
        service, store = make_service()
        pending = Transaction(
            "T-P", "C1", "M1", Decimal("10"), NOW, status=TransactionStatus.PENDING
        )
        store.add_transaction(pending)
        store.ledger.accrue(
            pending.with_status(TransactionStatus.COMPLETED), store.get_program("M1"), NOW
        )

        with pytest.raises(DuplicateAccrualError):
            service.update_transaction_status(SESSION, "T-P", TransactionStatus.COMPLETED)
        assert store.get_transaction("M1", "T-P").status is TransactionStatus.PENDING
        assert store.ledger.account("C1", "M1").current_points == 10

    def test_completed_transaction_cannot_change_again(self):
        service, store = make_service()
        service.record_transaction(
            SESSION,
            RecordTransactionRequest(customer_id="C1", amount=Decimal("5"), transaction_id="T-1"),
        )
        with pytest.raises(ValidationError, match="Illegal status transition"):
            service.update_transaction_status(SESSION, "T-1", TransactionStatus.COMPLETED)
        assert store.ledger.account("C1", "M1").current_points == 5

    def test_accrual_is_exactly_once_per_transaction(self):
        service, store = make_service()
        response = service.record_transaction(
            SESSION, RecordTransactionRequest(customer_id="C1", amount=Decimal("5"))
        )
        transaction = store.get_transaction("M1", response.transaction_id)
        with pytest.raises(DuplicateAccrualError):
            store.ledger.accrue(transaction, store.get_program("M1"), NOW)


class TestAdjustPoints:
    def test_add_with_default_reason(self):
        service, store = make_service()
        response = service.adjust_points(
            SESSION,
            PointsAdjustmentRequest(customer_id="C1", action=AdjustmentAction.ADD, points="50"),
        )
        assert response.points_change == 50
        assert response.balance == 50
        assert response.reason == "Manual points addition"
        assert store.ledger.movements("C1", "M1")[-1].description == "Manual points addition"

    def test_deduct_with_reason(self):
        service, _ = make_service()
        service.adjust_points(
            SESSION, PointsAdjustmentRequest(customer_id="C1", action="add", points=100)
        )
        response = service.adjust_points(
            SESSION,
            PointsAdjustmentRequest(
                customer_id="C1", action="deduct", points=30, reason="Returned item"
            ),
        )
        assert response.points_change == -30
        assert response.balance == 70
        assert response.reason == "Returned item"

    def test_overdraft_rejected_and_logged(self):
        service, store = make_service()
        with capture_logs() as logs:
            with pytest.raises(ValidationError, match="negative balance"):
                service.adjust_points(
                    SESSION,
                    PointsAdjustmentRequest(customer_id="C1", action="deduct", points=10),
                )
        assert store.ledger.account("C1", "M1").current_points == 0
        assert any(log["event"] == "points_adjustment_rejected" for log in logs)

    def test_overdraft_allowed_by_policy(self):
        config = InsightConfig(balance_policy=BalancePolicy.ALLOW_NEGATIVE)
        service, _ = make_service(config=config)
        response = service.adjust_points(
            SESSION, PointsAdjustmentRequest(customer_id="C1", action="deduct", points=10)
        )
        assert response.balance == -10

    def test_service_policy_applies_over_default_store(self):
        store = InMemoryLoyaltyStore()
        store.set_program(LoyaltyProgram("M1", ProgramType.POINTS))
        store.add_customer(
            "M1", Customer("C1", "QR-0001", "Ada", "Lovelace", NOW - timedelta(days=200))
        )
        service = LoyaltyService(
            store,
            config=InsightConfig(balance_policy=BalancePolicy.ALLOW_NEGATIVE),
            clock=lambda: NOW,
        )
        response = service.adjust_points(
            SESSION, PointsAdjustmentRequest(customer_id="C1", action="deduct", points=5)
        )
        assert response.balance == -5

    def test_service_inherits_store_policy(self):
        store = InMemoryLoyaltyStore(InsightConfig(balance_policy=BalancePolicy.ALLOW_NEGATIVE))
        service = LoyaltyService(store, clock=lambda: NOW)
        assert service.config.balance_policy is BalancePolicy.ALLOW_NEGATIVE

    def test_reject_policy_logged_consistently(self):
        store = InMemoryLoyaltyStore(InsightConfig(balance_policy=BalancePolicy.ALLOW_NEGATIVE))
        store.set_program(LoyaltyProgram("M1", ProgramType.POINTS))
        store.add_customer(
            "M1", Customer("C1", "QR-0001", "Ada", "Lovelace", NOW - timedelta(days=200))
        )
        service = LoyaltyService(store, config=InsightConfig(), clock=lambda: NOW)
        with capture_logs() as logs:
            with pytest.raises(ValidationError, match="negative balance"):
                service.adjust_points(
                    SESSION,
                    PointsAdjustmentRequest(customer_id="C1", action="deduct", points=5),
                )
        rejected = next(log for log in logs if log["event"] == "points_adjustment_rejected")
        assert rejected["balance_policy"] == "reject_negative"

    @pytest.mark.parametrize("points", [0, "0", "-3", "abc"])
    def test_invalid_points(self, points):
        service, _ = make_service()
        with pytest.raises(ValidationError, match="positive integer"):
            service.adjust_points(
                SESSION, PointsAdjustmentRequest(customer_id="C1", action="add", points=points)
            )


class TestInsightsAndSummary:
    @pytest.fixture
    def populated(self):
        service, store = make_service()
        store.add_transactions(
            [
                Transaction("T1", "C1", "M1", Decimal("100"), NOW - timedelta(days=10)),
                Transaction("T2", "C1", "M1", Decimal("50"), NOW - timedelta(days=40)),
                Transaction("T3", "C2", "M1", Decimal("5"), NOW - timedelta(days=2)),
                Transaction("T4", "C9", "M2", Decimal("999"), NOW - timedelta(days=2)),
            ]
        )
        return service

    def test_customer_insights_for_session_merchant(self, populated):
        insights = populated.customer_insights(SESSION)
        by_id = {insight.customer_id: insight for insight in insights}

        assert [insight.customer_id for insight in insights] == ["C1", "C2", "C3"]
        assert by_id["C1"].total_spent == Decimal("150")
        assert by_id["C2"].segment is CustomerSegment.NEW
        assert by_id["C3"].segment is CustomerSegment.INACTIVE

    def test_single_customer_insight_matches_listing(self, populated):
        listing = {i.customer_id: i for i in populated.customer_insights(SESSION)}
        assert populated.customer_insight(SESSION, "C1") == listing["C1"]

    def test_unknown_customer_insight(self, populated):
        with pytest.raises(DataAccessError):
            populated.customer_insight(SESSION, "C9")

    def test_merchant_summary_scoped_to_session(self, populated):
        with capture_logs() as logs:
            summary = populated.merchant_summary(SESSION, DashboardRange.LAST_7_DAYS)

        assert summary.total_sales == Decimal("5")
        assert summary.top_customers[0].name == "Alan Turing"
        assert any(log["event"] == "merchant_summary_built" for log in logs)
