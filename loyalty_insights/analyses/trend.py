"""Spending trend classification.

Compares spend in the trailing window ``(now - 30d, now]`` against the
window before it, ``(now - 60d, now - 30d]``. This is a deliberately simple
heuristic, not a statistical test: there is no smoothing and a single large
purchase can flip the label.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Sequence

from loyalty_insights.config import InsightConfig
from loyalty_insights.foundation.aggregation import completed_transactions, spend_in_window
from loyalty_insights.foundation.records import Transaction


class SpendingTrend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass(frozen=True)
class TrendWindows:
    """Spend in the two windows the trend compares."""

    recent_spend: Decimal
    previous_spend: Decimal


def spend_windows(
    transactions: Sequence[Transaction],
    now: datetime,
    config: InsightConfig | None = None,
) -> TrendWindows:
    """Sum completed spend in the recent and previous windows."""

    config = config or InsightConfig()
    window = timedelta(days=config.trend_window_days)
    completed = completed_transactions(transactions)
    return TrendWindows(
        recent_spend=spend_in_window(completed, now - window, now),
        previous_spend=spend_in_window(completed, now - 2 * window, now - window),
    )


def classify_trend(
    recent_spend: Decimal,
    previous_spend: Decimal,
    config: InsightConfig | None = None,
) -> SpendingTrend:
    """Label two window totals as up, down or stable.

    When ``previous_spend`` is zero any positive recent spend is "up" and
    two empty windows are "stable".

    >>> classify_trend(Decimal("100"), Decimal("50"))
    <SpendingTrend.UP: 'up'>
    """

    config = config or InsightConfig()
    if recent_spend > previous_spend * config.trend_up_factor:
        return SpendingTrend.UP
    if recent_spend < previous_spend * config.trend_down_factor:
        return SpendingTrend.DOWN
    return SpendingTrend.STABLE


def spending_trend(
    transactions: Sequence[Transaction],
    now: datetime,
    config: InsightConfig | None = None,
) -> tuple[SpendingTrend, TrendWindows]:
    """Partition ``transactions`` into windows and classify the trend."""

    windows = spend_windows(transactions, now, config)
    return classify_trend(windows.recent_spend, windows.previous_spend, config), windows
