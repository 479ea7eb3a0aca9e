"""Customer insights and loyalty accrual for merchant loyalty programs.

The package is organised bottom-up:

- :mod:`loyalty_insights.foundation` - records and per-customer aggregation
- :mod:`loyalty_insights.analyses` - trend, segment, insight and dashboard derivations
- :mod:`loyalty_insights.loyalty` - accrual rule and the points ledger
- :mod:`loyalty_insights.services` - session-scoped operations over a store
- :mod:`loyalty_insights.pandas` - DataFrame adapters
"""

from loyalty_insights.config import BalancePolicy, InsightConfig
from loyalty_insights.errors import (
    ConfigurationError,
    DataAccessError,
    DataAccessErrorKind,
    DuplicateAccrualError,
    LoyaltyError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "BalancePolicy",
    "ConfigurationError",
    "DataAccessError",
    "DataAccessErrorKind",
    "DuplicateAccrualError",
    "InsightConfig",
    "LoyaltyError",
    "ValidationError",
    "__version__",
]
