"""Pandas DataFrame adapters for loyalty insight components."""

from .insights import (
    INSIGHT_COLUMNS,
    TRANSACTION_COLUMNS,
    customer_insights_df,
    daily_series_to_dataframe,
    dataframe_to_transactions,
    insights_to_dataframe,
)

__all__ = [
    "INSIGHT_COLUMNS",
    "TRANSACTION_COLUMNS",
    "customer_insights_df",
    "daily_series_to_dataframe",
    "dataframe_to_transactions",
    "insights_to_dataframe",
]
