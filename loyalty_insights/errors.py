"""Typed error taxonomy for loyalty derivations and data access.

Every error carries a human readable message plus a ``details`` mapping
with the offending values. Callers branch on the exception type, and for
data-access failures on :class:`DataAccessErrorKind`, never on message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class LoyaltyError(Exception):
    """Base class for all errors raised by this package."""

    def __init__(self, message: str, details: Mapping[str, Any] | None = None) -> None:
        self.message = message
        self.details = dict(details or {})
        super().__init__(message, self.details)

    def __str__(self) -> str:
        return self.message


class ValidationError(LoyaltyError, ValueError):
    """Input data violates a business rule (e.g. non-positive amount)."""


class ConfigurationError(LoyaltyError, ValueError):
    """A program or configuration value is unknown or malformed."""


class DataAccessErrorKind(str, Enum):
    """Failure categories surfaced by the data-access layer."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    SCHEMA_MISSING = "schema_missing"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"


class DataAccessError(LoyaltyError):
    """A store operation failed; ``kind`` says how."""

    def __init__(
        self,
        kind: DataAccessErrorKind,
        message: str,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        self.kind = kind
        super().__init__(message, details)


class DuplicateAccrualError(DataAccessError):
    """The transaction has already been credited to the loyalty account."""

    def __init__(self, transaction_id: str, details: Mapping[str, Any] | None = None) -> None:
        payload = {"transaction_id": transaction_id, **dict(details or {})}
        super().__init__(
            DataAccessErrorKind.CONFLICT,
            f"Transaction {transaction_id} has already been credited",
            payload,
        )
        self.transaction_id = transaction_id
