"""Request and response payloads for the loyalty service."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from loyalty_insights.analyses.customer_insight import CustomerInsight
from loyalty_insights.analyses.merchant_summary import MerchantSummary
from loyalty_insights.foundation.records import PaymentMethod, TransactionStatus
from loyalty_insights.loyalty.ledger import AdjustmentAction


class RecordTransactionRequest(BaseModel):
    """Sale captured at the till after scanning a customer's code."""

    customer_id: str
    amount: Decimal = Field(description="Sale amount; must be positive")
    payment_method: PaymentMethod = PaymentMethod.CASH
    status: TransactionStatus = Field(
        default=TransactionStatus.COMPLETED,
        description="Pending sales earn credit when they complete",
    )
    notes: str | None = None
    transaction_id: str | None = Field(
        default=None, description="Caller supplied id; generated when omitted"
    )


class RecordTransactionResponse(BaseModel):
    transaction_id: str
    customer_id: str
    amount: Decimal
    status: TransactionStatus
    points_earned: int
    balance: int


class PointsAdjustmentRequest(BaseModel):
    """Staff-initiated credit or debit with a free-text reason."""

    customer_id: str
    action: AdjustmentAction
    points: int | str = Field(description="Positive whole number of points")
    reason: str = ""


class PointsAdjustmentResponse(BaseModel):
    customer_id: str
    points_change: int
    balance: int
    reason: str


class LastTransactionPayload(BaseModel):
    amount: Decimal
    payment_method: PaymentMethod
    created_at: datetime
    notes: str | None = None


class CustomerInsightPayload(BaseModel):
    """Serialisable view of a :class:`CustomerInsight`."""

    customer_id: str
    customer_code: str
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    status: str
    created_at: datetime
    total_spent: Decimal
    total_transactions: int
    loyalty_points: int
    last_visit_at: datetime | None = None
    visit_frequency: Decimal
    spending_trend: str
    average_order_value: Decimal
    recent_spending: Decimal
    customer_lifetime_value: Decimal
    days_since_last_visit: int | None = None
    segment: str
    last_transaction: LastTransactionPayload | None = None

    @classmethod
    def from_insight(cls, insight: CustomerInsight) -> "CustomerInsightPayload":
        customer = insight.customer
        last = insight.last_transaction
        return cls(
            customer_id=customer.customer_id,
            customer_code=customer.customer_code,
            first_name=customer.first_name,
            last_name=customer.last_name,
            email=customer.email,
            phone=customer.phone,
            status=customer.status.value,
            created_at=customer.created_at,
            total_spent=insight.total_spent,
            total_transactions=insight.total_transactions,
            loyalty_points=insight.loyalty_points,
            last_visit_at=insight.last_visit_at,
            visit_frequency=insight.visit_frequency,
            spending_trend=insight.spending_trend.value,
            average_order_value=insight.average_order_value,
            recent_spending=insight.recent_spending,
            customer_lifetime_value=insight.customer_lifetime_value,
            days_since_last_visit=insight.days_since_last_visit,
            segment=insight.segment.value,
            last_transaction=(
                LastTransactionPayload(
                    amount=last.amount,
                    payment_method=last.payment_method,
                    created_at=last.created_at,
                    notes=last.notes,
                )
                if last is not None
                else None
            ),
        )


class TopCustomerPayload(BaseModel):
    customer_id: str
    name: str
    total_spent: Decimal
    visits: int


class DailyActivityPayload(BaseModel):
    day: date
    transactions: int
    sales: Decimal
    customers: int


class MerchantSummaryPayload(BaseModel):
    range: str
    as_of: datetime
    total_sales: Decimal
    total_transactions: int
    unique_customers: int
    avg_daily_transactions: Decimal
    avg_daily_sales: Decimal
    avg_transaction_value: Decimal
    top_customers: list[TopCustomerPayload]
    daily: list[DailyActivityPayload]

    @classmethod
    def from_summary(cls, summary: MerchantSummary) -> "MerchantSummaryPayload":
        return cls(
            range=summary.range.value,
            as_of=summary.as_of,
            total_sales=summary.total_sales,
            total_transactions=summary.total_transactions,
            unique_customers=summary.unique_customers,
            avg_daily_transactions=summary.avg_daily_transactions,
            avg_daily_sales=summary.avg_daily_sales,
            avg_transaction_value=summary.avg_transaction_value,
            top_customers=[
                TopCustomerPayload(
                    customer_id=top.customer_id,
                    name=top.name,
                    total_spent=top.total_spent,
                    visits=top.visits,
                )
                for top in summary.top_customers
            ],
            daily=[
                DailyActivityPayload(
                    day=day.day,
                    transactions=day.transactions,
                    sales=day.sales,
                    customers=day.customers,
                )
                for day in summary.daily
            ],
        )
