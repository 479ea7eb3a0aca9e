"""Record definitions and validation for the loyalty data model.

The records here capture the minimum information that every insight and
accrual workflow relies on: who bought, from which merchant, how much,
when, and whether the sale actually completed. Raw rows coming back from
the hosted store are validated into these canonical types by
:class:`TransactionContract` and :class:`CustomerContract`, which also
normalise timestamps to naive UTC.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Mapping

from loyalty_insights.errors import ValidationError


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    MOBILE = "mobile"
    OTHER = "other"


class CustomerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLOCKED = "blocked"


class ProgramType(str, Enum):
    """Whether a merchant rewards currency spent or visits."""

    POINTS = "points"
    STAMPS = "stamps"


#: Allowed status transitions. Terminal states have no outgoing edges.
STATUS_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset(
        {
            TransactionStatus.COMPLETED,
            TransactionStatus.FAILED,
            TransactionStatus.CANCELLED,
        }
    ),
    TransactionStatus.COMPLETED: frozenset(),
    TransactionStatus.FAILED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class Transaction:
    """A single sale recorded by a merchant for a customer.

    Attributes
    ----------
    transaction_id:
        Unique identifier; accrual is keyed on it.
    customer_id / merchant_id:
        Owning customer and merchant.
    amount:
        Sale amount in the merchant's currency. Must be positive.
    payment_method:
        How the customer paid.
    created_at:
        When the sale happened. All timestamps handed to one derivation
        call must share a timezone convention (all aware or all naive).
    status:
        Lifecycle state; only completed transactions feed derived metrics.
    notes:
        Optional free text captured at the till.
    """

    transaction_id: str
    customer_id: str
    merchant_id: str
    amount: Decimal
    created_at: datetime
    payment_method: PaymentMethod = PaymentMethod.CASH
    status: TransactionStatus = TransactionStatus.COMPLETED
    notes: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise ValidationError(
                "Transaction amount must be a Decimal",
                {"transaction_id": self.transaction_id, "amount": self.amount},
            )
        if not self.amount.is_finite() or self.amount <= 0:
            raise ValidationError(
                f"Transaction amount must be positive: {self.amount}",
                {"transaction_id": self.transaction_id, "amount": self.amount},
            )

    @property
    def is_completed(self) -> bool:
        return self.status is TransactionStatus.COMPLETED

    def with_status(self, status: TransactionStatus) -> "Transaction":
        """Return a copy in ``status``; only moves out of pending are legal."""

        status = TransactionStatus(status)
        if status not in STATUS_TRANSITIONS[self.status]:
            raise ValidationError(
                f"Illegal status transition {self.status.value} -> {status.value}",
                {
                    "transaction_id": self.transaction_id,
                    "from": self.status.value,
                    "to": status.value,
                },
            )
        return dataclasses.replace(self, status=status)


@dataclass(frozen=True)
class Customer:
    """A merchant's customer, identified at the till by ``customer_code``."""

    customer_id: str
    customer_code: str
    first_name: str
    last_name: str
    created_at: datetime
    status: CustomerStatus = CustomerStatus.ACTIVE
    email: str | None = None
    phone: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class LoyaltyProgram:
    """The active program of a merchant.

    ``rate_per_currency_unit`` is kept for display; accrual for points
    programs is one point per whole currency unit regardless of currency.
    """

    merchant_id: str
    program_type: ProgramType
    rate_per_currency_unit: Decimal = Decimal("1")
    program_name: str = "Loyalty Program"


@dataclass(slots=True)
class LoyaltyAccount:
    """Running point balance for one (customer, merchant) pair.

    Mutated only through :mod:`loyalty_insights.loyalty.ledger`.
    """

    customer_id: str
    merchant_id: str
    current_points: int = 0
    total_earned: int = 0
    total_redeemed: int = 0


def to_naive_utc(value: datetime) -> datetime:
    """Express an aware timestamp as naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _parse_timestamp(value: object, *, field_name: str, idx: int) -> datetime:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(
                f"{field_name} is not an ISO timestamp",
                {"record_index": idx, "value": value},
            ) from exc
        return to_naive_utc(parsed)
    raise ValidationError(
        f"{field_name} must be a datetime or ISO string",
        {"record_index": idx, "value": value},
    )


def _parse_enum(enum_cls: type[Enum], value: object, *, field_name: str, idx: int):
    try:
        return enum_cls(str(value).lower())
    except ValueError as exc:
        raise ValidationError(
            f"Unknown {field_name}: {value!r}",
            {"record_index": idx, "value": value},
        ) from exc


class TransactionContract:
    """Validate raw transaction rows into canonical :class:`Transaction` records."""

    #: Fields that must be populated for a row to be accepted.
    REQUIRED_FIELDS = ("id", "customer_id", "merchant_id", "amount", "created_at")

    def validate_records(
        self, records: Iterable[Mapping[str, Any]]
    ) -> list[Transaction]:
        """Validate raw rows and return canonical transactions.

        Rows with a duplicate ``id`` are collapsed; the first occurrence
        wins so each transaction counts at most once downstream.
        """

        canonical: list[Transaction] = []
        seen: set[str] = set()
        for idx, record in enumerate(records):
            data = dict(record)
            missing = [
                name
                for name in self.REQUIRED_FIELDS
                if data.get(name) is None or data.get(name) == ""
            ]
            if missing:
                raise ValidationError(
                    "Record missing required transaction fields",
                    {"missing_fields": missing, "record_index": idx},
                )

            transaction_id = str(data["id"])
            if transaction_id in seen:
                continue
            seen.add(transaction_id)

            try:
                amount = Decimal(str(data["amount"]))
            except InvalidOperation as exc:
                raise ValidationError(
                    "amount is not a number",
                    {"record_index": idx, "value": data["amount"]},
                ) from exc

            canonical.append(
                Transaction(
                    transaction_id=transaction_id,
                    customer_id=str(data["customer_id"]),
                    merchant_id=str(data["merchant_id"]),
                    amount=amount,
                    created_at=_parse_timestamp(
                        data["created_at"], field_name="created_at", idx=idx
                    ),
                    payment_method=_parse_enum(
                        PaymentMethod,
                        data.get("payment_method") or PaymentMethod.CASH.value,
                        field_name="payment_method",
                        idx=idx,
                    ),
                    status=_parse_enum(
                        TransactionStatus,
                        data.get("status") or TransactionStatus.COMPLETED.value,
                        field_name="status",
                        idx=idx,
                    ),
                    notes=data.get("notes"),
                )
            )
        return canonical

    def to_serialisable(self, transactions: Iterable[Transaction]) -> list[dict[str, Any]]:
        """Convert transactions into JSON-serialisable dictionaries."""

        return [
            {
                "id": txn.transaction_id,
                "customer_id": txn.customer_id,
                "merchant_id": txn.merchant_id,
                "amount": str(txn.amount),
                "payment_method": txn.payment_method.value,
                "created_at": txn.created_at.isoformat(),
                "status": txn.status.value,
                "notes": txn.notes,
            }
            for txn in transactions
        ]


class CustomerContract:
    """Validate raw customer rows and enforce per-merchant code uniqueness."""

    REQUIRED_FIELDS = ("id", "customer_code", "created_at")

    def validate_records(self, records: Iterable[Mapping[str, Any]]) -> list[Customer]:
        customers: list[Customer] = []
        codes: dict[str, str] = {}
        for idx, record in enumerate(records):
            data = dict(record)
            missing = [name for name in self.REQUIRED_FIELDS if not data.get(name)]
            if missing:
                raise ValidationError(
                    "Record missing required customer fields",
                    {"missing_fields": missing, "record_index": idx},
                )

            customer_id = str(data["id"])
            code = str(data["customer_code"])
            owner = codes.get(code)
            if owner is not None and owner != customer_id:
                raise ValidationError(
                    f"Customer code {code} is not unique",
                    {"record_index": idx, "customer_code": code},
                )
            if owner is not None:
                continue
            codes[code] = customer_id

            customers.append(
                Customer(
                    customer_id=customer_id,
                    customer_code=code,
                    first_name=str(data.get("first_name") or ""),
                    last_name=str(data.get("last_name") or ""),
                    created_at=_parse_timestamp(
                        data["created_at"], field_name="created_at", idx=idx
                    ),
                    status=_parse_enum(
                        CustomerStatus,
                        data.get("status") or CustomerStatus.ACTIVE.value,
                        field_name="status",
                        idx=idx,
                    ),
                    email=data.get("email"),
                    phone=data.get("phone"),
                )
            )
        return customers
