"""Foundational building blocks for loyalty insights.

This package exposes the record definitions of the loyalty data model and
the per-customer aggregation that every insight is derived from.
"""

from .aggregation import (
    EMPTY_AGGREGATE,
    CustomerAggregate,
    aggregate_customer,
    completed_transactions,
    group_by_customer,
    spend_in_window,
    whole_days_between,
)
from .records import (
    Customer,
    CustomerContract,
    CustomerStatus,
    LoyaltyAccount,
    LoyaltyProgram,
    PaymentMethod,
    ProgramType,
    Transaction,
    TransactionContract,
    TransactionStatus,
)

__all__ = [
    "EMPTY_AGGREGATE",
    "Customer",
    "CustomerAggregate",
    "CustomerContract",
    "CustomerStatus",
    "LoyaltyAccount",
    "LoyaltyProgram",
    "PaymentMethod",
    "ProgramType",
    "Transaction",
    "TransactionContract",
    "TransactionStatus",
    "aggregate_customer",
    "completed_transactions",
    "group_by_customer",
    "spend_in_window",
    "whole_days_between",
]
