"""Thresholds and policies for insight derivation and point adjustments.

Defaults mirror the merchant dashboard's observed behaviour. Deployments
can override any value through ``LOYALTY_*`` environment variables via
:meth:`InsightConfig.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping

from loyalty_insights.errors import ConfigurationError


class BalancePolicy(str, Enum):
    """What a manual debit may do to a loyalty balance."""

    #: Reject debits that would drive the balance below zero.
    REJECT_NEGATIVE = "reject_negative"
    #: Apply debits as-is, even if the balance goes negative.
    ALLOW_NEGATIVE = "allow_negative"


@dataclass(frozen=True)
class InsightConfig:
    """Tunable parameters for the derivation pipeline.

    Attributes
    ----------
    trend_window_days:
        Length of each of the two trailing spend windows compared by the
        trend classifier.
    trend_up_factor / trend_down_factor:
        Recent spend must exceed ``previous * up`` to trend up, or fall
        below ``previous * down`` to trend down.
    vip_factor / regular_factor:
        Multiples of the merchant-wide average spend for the VIP and
        Regular segments.
    inactive_after_days:
        Customers whose last visit is older than this are Inactive.
    new_customer_days:
        Customers created within this many days are New.
    high_tier_factor / low_tier_factor:
        Spending tier boundaries relative to the average spend.
    visit_month_days:
        Days per "month" when computing visits per month.
    top_customer_count / daily_series_days / page_size:
        Dashboard and listing sizes.
    balance_policy:
        Whether manual debits may produce a negative balance.
    """

    trend_window_days: int = 30
    trend_up_factor: Decimal = Decimal("1.1")
    trend_down_factor: Decimal = Decimal("0.9")
    vip_factor: Decimal = Decimal("2.5")
    regular_factor: Decimal = Decimal("1.2")
    inactive_after_days: int = 90
    new_customer_days: int = 30
    high_tier_factor: Decimal = Decimal("1.5")
    low_tier_factor: Decimal = Decimal("0.5")
    visit_month_days: int = 30
    top_customer_count: int = 5
    daily_series_days: int = 7
    page_size: int = 10
    balance_policy: BalancePolicy = BalancePolicy.REJECT_NEGATIVE

    def __post_init__(self) -> None:
        for name in (
            "trend_window_days",
            "inactive_after_days",
            "new_customer_days",
            "visit_month_days",
            "top_customer_count",
            "daily_series_days",
            "page_size",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(
                    f"{name} must be positive: {getattr(self, name)}",
                    {"field": name, "value": getattr(self, name)},
                )
        if self.trend_down_factor > self.trend_up_factor:
            raise ConfigurationError(
                "trend_down_factor cannot exceed trend_up_factor",
                {
                    "trend_down_factor": self.trend_down_factor,
                    "trend_up_factor": self.trend_up_factor,
                },
            )
        if self.regular_factor > self.vip_factor:
            raise ConfigurationError(
                "regular_factor cannot exceed vip_factor",
                {"regular_factor": self.regular_factor, "vip_factor": self.vip_factor},
            )
        if self.low_tier_factor > self.high_tier_factor:
            raise ConfigurationError(
                "low_tier_factor cannot exceed high_tier_factor",
                {
                    "low_tier_factor": self.low_tier_factor,
                    "high_tier_factor": self.high_tier_factor,
                },
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "InsightConfig":
        """Build a config from ``LOYALTY_<FIELD>`` environment variables.

        Unset variables keep their defaults, e.g. ``LOYALTY_VIP_FACTOR=3``
        or ``LOYALTY_BALANCE_POLICY=allow_negative``.
        """

        environ = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for item in fields(cls):
            raw = environ.get(f"LOYALTY_{item.name.upper()}")
            if raw is None or raw == "":
                continue
            overrides[item.name] = _parse_value(item.name, item.type, raw)
        return cls(**overrides)


def _parse_value(name: str, type_name: object, raw: str) -> object:
    # Annotations are strings under ``from __future__ import annotations``.
    type_name = str(type_name)
    try:
        if type_name == "int":
            return int(raw)
        if type_name == "Decimal":
            return Decimal(raw)
        if type_name == "BalancePolicy":
            return BalancePolicy(raw.strip().lower())
    except (ValueError, InvalidOperation) as exc:
        raise ConfigurationError(
            f"Invalid value for {name}: {raw!r}", {"field": name, "value": raw}
        ) from exc
    raise ConfigurationError(  # pragma: no cover - every field type is handled
        f"Unsupported config field type for {name}", {"field": name}
    )
