"""Loyalty service: the operations a merchant dashboard calls.

Each method takes an explicit :class:`MerchantSession`; tenant identity is
never read from ambient state. Pure derivations live in
:mod:`loyalty_insights.analyses`; this layer fetches data, applies ledger
side effects once, and logs what happened.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import structlog

from loyalty_insights.analyses.customer_insight import (
    CustomerInsight,
    build_customer_insight,
    build_customer_insights,
)
from loyalty_insights.analyses.merchant_summary import (
    DashboardRange,
    MerchantSummary,
    summarize_merchant,
)
from loyalty_insights.analyses.segmentation import merchant_average_spend
from loyalty_insights.config import InsightConfig
from loyalty_insights.errors import ValidationError
from loyalty_insights.foundation.aggregation import aggregate_customer
from loyalty_insights.foundation.records import (
    Customer,
    CustomerStatus,
    Transaction,
    TransactionStatus,
)
from loyalty_insights.loyalty.accrual import points_earned
from loyalty_insights.loyalty.codes import generate_transaction_code, is_valid_customer_code
from loyalty_insights.loyalty.ledger import adjustment_delta
from loyalty_insights.services.schemas import (
    PointsAdjustmentRequest,
    PointsAdjustmentResponse,
    RecordTransactionRequest,
    RecordTransactionResponse,
)
from loyalty_insights.services.store import LoyaltyStore, MerchantSession

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LoyaltyService:
    """Record sales, adjust balances and derive insights for one store."""

    def __init__(
        self,
        store: LoyaltyStore,
        config: InsightConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        # Defaults to the store's ledger config.
        self.config = config or store.ledger.config
        self.clock = clock

    def scan_customer(self, session: MerchantSession, customer_code: str) -> Customer:
        """Resolve a scanned QR code to an enrolled, non-blocked customer."""

        if not is_valid_customer_code(customer_code):
            logger.warning(
                "customer_code_invalid",
                merchant_id=session.merchant_id,
                code_length=len(customer_code or ""),
            )
            raise ValidationError(
                "Customer code must be 3 to 50 characters",
                {"customer_code": customer_code},
            )
        customer = self.store.find_customer_by_code(session.merchant_id, customer_code)
        if customer.status is CustomerStatus.BLOCKED:
            logger.warning(
                "customer_blocked",
                merchant_id=session.merchant_id,
                customer_id=customer.customer_id,
            )
            raise ValidationError(
                "Customer is blocked", {"customer_id": customer.customer_id}
            )
        logger.info(
            "customer_scanned",
            merchant_id=session.merchant_id,
            customer_id=customer.customer_id,
        )
        return customer

    def record_transaction(
        self, session: MerchantSession, request: RecordTransactionRequest
    ) -> RecordTransactionResponse:
        """Create a transaction and credit its reward exactly once.

        The amount is validated before anything is written, so an invalid
        sale creates no transaction and awards nothing. Pending sales are
        stored without credit; they earn it in
        :meth:`update_transaction_status` when they complete.
        """

        program = self.store.get_program(session.merchant_id)
        customer = self.store.get_customer(session.merchant_id, request.customer_id)
        earned = points_earned(request.amount, program.program_type)

        now = self.clock()
        transaction = Transaction(
            transaction_id=request.transaction_id or generate_transaction_code(),
            customer_id=customer.customer_id,
            merchant_id=session.merchant_id,
            amount=request.amount,
            created_at=now,
            payment_method=request.payment_method,
            status=request.status,
            notes=request.notes,
        )
        self.store.add_transaction(transaction)

        if transaction.is_completed:
            movement = self.store.ledger.accrue(transaction, program, now)
            earned = movement.points_change
        else:
            earned = 0

        balance = self.store.ledger.account(
            customer.customer_id, session.merchant_id
        ).current_points
        logger.info(
            "transaction_recorded",
            merchant_id=session.merchant_id,
            staff_user_id=session.staff_user_id,
            transaction_id=transaction.transaction_id,
            customer_id=customer.customer_id,
            amount=str(transaction.amount),
            status=transaction.status.value,
            program_type=program.program_type.value,
            points_earned=earned,
        )
        return RecordTransactionResponse(
            transaction_id=transaction.transaction_id,
            customer_id=customer.customer_id,
            amount=transaction.amount,
            status=transaction.status,
            points_earned=earned,
            balance=balance,
        )

    def update_transaction_status(
        self,
        session: MerchantSession,
        transaction_id: str,
        status: TransactionStatus,
    ) -> Transaction:
        """Move a pending transaction to a terminal state.

        Completing a transaction credits its reward through the ledger,
        which refuses a second credit for the same id. The credit happens
        before the new status is stored; if it fails the transaction stays
        pending and can be completed again later.
        """

        current = self.store.get_transaction(session.merchant_id, transaction_id)
        updated = current.with_status(status)
        if updated.is_completed:
            program = self.store.get_program(session.merchant_id)
            self.store.ledger.accrue(updated, program, self.clock())
        self.store.replace_transaction(updated)
        logger.info(
            "transaction_status_changed",
            merchant_id=session.merchant_id,
            transaction_id=transaction_id,
            from_status=current.status.value,
            to_status=updated.status.value,
        )
        return updated

    def adjust_points(
        self, session: MerchantSession, request: PointsAdjustmentRequest
    ) -> PointsAdjustmentResponse:
        """Apply a staff "add" or "deduct" with a reason."""

        customer = self.store.get_customer(session.merchant_id, request.customer_id)
        delta = adjustment_delta(request.action, request.points)
        reason = request.reason.strip() or request.action.default_reason
        try:
            movement = self.store.ledger.adjust(
                customer.customer_id,
                session.merchant_id,
                delta,
                reason,
                self.clock(),
                policy=self.config.balance_policy,
            )
        except ValidationError:
            logger.warning(
                "points_adjustment_rejected",
                merchant_id=session.merchant_id,
                customer_id=customer.customer_id,
                delta=delta,
                balance_policy=self.config.balance_policy.value,
            )
            raise
        logger.info(
            "points_adjusted",
            merchant_id=session.merchant_id,
            staff_user_id=session.staff_user_id,
            customer_id=customer.customer_id,
            delta=delta,
            balance=movement.balance_after,
            reason=reason,
        )
        return PointsAdjustmentResponse(
            customer_id=customer.customer_id,
            points_change=delta,
            balance=movement.balance_after,
            reason=reason,
        )

    def customer_insights(
        self, session: MerchantSession, now: datetime | None = None
    ) -> list[CustomerInsight]:
        """Insights for every enrolled customer, sorted by customer_id."""

        now = now or self.clock()
        customers = self.store.customers_for_merchant(session.merchant_id)
        transactions = self.store.transactions_for_merchant(session.merchant_id)
        insights = build_customer_insights(
            customers,
            transactions,
            now,
            accounts=self.store.ledger.accounts_for_merchant(session.merchant_id),
            config=self.config,
        )
        logger.info(
            "customer_insights_built",
            merchant_id=session.merchant_id,
            customers=len(insights),
            transactions=len(transactions),
        )
        return insights

    def customer_insight(
        self,
        session: MerchantSession,
        customer_id: str,
        now: datetime | None = None,
    ) -> CustomerInsight:
        """Insight for one customer, segmented against the whole merchant."""

        now = now or self.clock()
        customer = self.store.get_customer(session.merchant_id, customer_id)
        totals = [
            aggregate_customer(
                self.store.transactions_for_customer(other.customer_id, session.merchant_id),
                now,
            ).total_spent
            for other in self.store.customers_for_merchant(session.merchant_id)
        ]
        return build_customer_insight(
            customer,
            self.store.transactions_for_customer(customer_id, session.merchant_id),
            now,
            merchant_average_spend(totals),
            account=self.store.ledger.account(customer_id, session.merchant_id),
            config=self.config,
        )

    def merchant_summary(
        self,
        session: MerchantSession,
        range_: DashboardRange = DashboardRange.LAST_30_DAYS,
        now: datetime | None = None,
    ) -> MerchantSummary:
        now = now or self.clock()
        customers = {
            customer.customer_id: customer
            for customer in self.store.customers_for_merchant(session.merchant_id)
        }
        summary = summarize_merchant(
            self.store.transactions_for_merchant(session.merchant_id),
            now,
            range_,
            customers=customers,
            config=self.config,
        )
        logger.info(
            "merchant_summary_built",
            merchant_id=session.merchant_id,
            range=summary.range.value,
            total_transactions=summary.total_transactions,
        )
        return summary
