"""Pandas DataFrame adapters for transactions and customer insights."""

from datetime import datetime
from typing import Iterable, List, Mapping, Optional, Sequence

import pandas as pd  # type: ignore

from loyalty_insights.analyses.customer_insight import (
    CustomerInsight,
    build_customer_insights,
)
from loyalty_insights.analyses.merchant_summary import DailyActivity
from loyalty_insights.config import InsightConfig
from loyalty_insights.errors import ValidationError
from loyalty_insights.foundation.records import (
    Customer,
    LoyaltyAccount,
    Transaction,
    TransactionContract,
    to_naive_utc,
)
from ._utils import decimal_to_float, to_decimal

INSIGHT_COLUMNS = [
    "customer_id",
    "customer_code",
    "name",
    "status",
    "total_spent",
    "total_transactions",
    "average_order_value",
    "customer_lifetime_value",
    "recent_spending",
    "visit_frequency",
    "last_visit_at",
    "days_since_last_visit",
    "spending_trend",
    "segment",
    "loyalty_points",
]

TRANSACTION_COLUMNS = ["id", "customer_id", "merchant_id", "amount", "created_at"]


def insights_to_dataframe(insights: Sequence[CustomerInsight]) -> pd.DataFrame:
    """Convert customer insights to a pandas DataFrame.

    Args:
        insights: Sequence of CustomerInsight objects

    Returns:
        DataFrame with :data:`INSIGHT_COLUMNS`, sorted by customer_id.
        Decimal values become floats; ``days_since_last_visit`` is a
        nullable integer column so "never visited" stays distinct from 0.

    Example:
        >>> insights = build_customer_insights(customers, transactions, now)
        >>> df = insights_to_dataframe(insights)
        >>> df[df["segment"] == "VIP"]
    """
    if not insights:
        return pd.DataFrame(columns=INSIGHT_COLUMNS)

    rows = [
        {
            "customer_id": insight.customer_id,
            "customer_code": insight.customer.customer_code,
            "name": insight.customer.full_name,
            "status": insight.customer.status.value,
            "total_spent": decimal_to_float(insight.total_spent),
            "total_transactions": insight.total_transactions,
            "average_order_value": decimal_to_float(insight.average_order_value),
            "customer_lifetime_value": decimal_to_float(insight.customer_lifetime_value),
            "recent_spending": decimal_to_float(insight.recent_spending),
            "visit_frequency": decimal_to_float(insight.visit_frequency),
            "last_visit_at": insight.last_visit_at,
            "days_since_last_visit": insight.days_since_last_visit,
            "spending_trend": insight.spending_trend.value,
            "segment": insight.segment.value,
            "loyalty_points": insight.loyalty_points,
        }
        for insight in insights
    ]

    df = pd.DataFrame(rows, columns=INSIGHT_COLUMNS)
    df["days_since_last_visit"] = df["days_since_last_visit"].astype("Int64")
    df = df.sort_values("customer_id").reset_index(drop=True)
    return df


def dataframe_to_transactions(
    transactions_df: pd.DataFrame,
    id_col: str = "id",
    customer_id_col: str = "customer_id",
    merchant_id_col: str = "merchant_id",
    amount_col: str = "amount",
    created_at_col: str = "created_at",
    status_col: Optional[str] = "status",
    payment_method_col: Optional[str] = "payment_method",
) -> List[Transaction]:
    """Convert a pandas DataFrame to validated transactions.

    Args:
        transactions_df: DataFrame with one row per transaction
        *_col: Column name mappings for flexibility. Optional columns
            (status, payment_method) default to completed / cash when the
            column is absent or the cell is null.

    Returns:
        List of Transaction objects; duplicate ids are collapsed.

    Raises:
        ValidationError: If required columns are missing, required cells
            are null, or a row fails validation (e.g. non-positive amount)
    """
    required_mapping = {
        "id": id_col,
        "customer_id": customer_id_col,
        "merchant_id": merchant_id_col,
        "amount": amount_col,
        "created_at": created_at_col,
    }

    missing_cols = set(required_mapping.values()) - set(transactions_df.columns)
    if missing_cols:
        raise ValidationError(
            f"DataFrame missing required columns: {missing_cols}",
            {"missing_columns": sorted(missing_cols)},
        )

    if transactions_df.empty:
        return []

    required_cols = list(required_mapping.values())
    null_cols = transactions_df[required_cols].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValidationError(
            f"Null/NaN values found in columns: {null_col_names}. "
            "Transactions require complete data.",
            {"null_columns": null_col_names},
        )

    records = []
    for record in transactions_df.to_dict("records"):
        row = {
            "id": record[id_col],
            "customer_id": record[customer_id_col],
            "merchant_id": record[merchant_id_col],
            "amount": to_decimal(record[amount_col]),
            "created_at": pd.to_datetime(record[created_at_col]).to_pydatetime(),
        }
        for key, col in (("status", status_col), ("payment_method", payment_method_col)):
            if col and col in record and not pd.isna(record[col]):
                row[key] = record[col]
        records.append(row)

    return TransactionContract().validate_records(records)


def customer_insights_df(
    transactions_df: pd.DataFrame,
    customers: Iterable[Customer],
    now: datetime,
    accounts: Optional[Mapping[str, LoyaltyAccount]] = None,
    config: Optional[InsightConfig] = None,
) -> pd.DataFrame:
    """Derive customer insights straight from a transactions DataFrame.

    Convenience function that combines conversion and derivation. Row
    timestamps and ``now`` are compared as naive UTC.

    Example:
        >>> txns = pd.read_csv("transactions.csv")
        >>> df = customer_insights_df(txns, customers, datetime.now(timezone.utc))
        >>> df.groupby("segment").size()
    """
    transactions = dataframe_to_transactions(transactions_df)
    insights = build_customer_insights(
        customers,
        transactions,
        to_naive_utc(now),
        accounts=accounts,
        config=config,
    )
    return insights_to_dataframe(insights)


def daily_series_to_dataframe(daily: Sequence[DailyActivity]) -> pd.DataFrame:
    """Convert the dashboard's daily activity series to a DataFrame."""
    columns = ["day", "transactions", "sales", "customers"]
    if not daily:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(
        [
            {
                "day": item.day,
                "transactions": item.transactions,
                "sales": decimal_to_float(item.sales),
                "customers": item.customers,
            }
            for item in daily
        ],
        columns=columns,
    )
