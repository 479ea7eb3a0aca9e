"""Data access for the service layer.

:class:`LoyaltyStore` describes what the service needs from the hosted
database. :class:`InMemoryLoyaltyStore` implements it for tests, the CLI
and local tooling. Failures are raised as :class:`DataAccessError` with a
:class:`DataAccessErrorKind`, so callers never inspect message text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from loyalty_insights.config import InsightConfig
from loyalty_insights.errors import DataAccessError, DataAccessErrorKind
from loyalty_insights.foundation.records import Customer, LoyaltyProgram, Transaction
from loyalty_insights.loyalty.ledger import LoyaltyLedger


@dataclass(frozen=True)
class MerchantSession:
    """Identity of the merchant (and staff member) a request acts for.

    Passed explicitly to every service call; nothing in this package keeps
    a "current merchant" in module state.
    """

    merchant_id: str
    staff_user_id: str | None = None


class TransactionSource(Protocol):
    def transactions_for_customer(
        self, customer_id: str, merchant_id: str
    ) -> list[Transaction]:
        """Transactions of one customer at one merchant, newest first."""

    def transactions_for_merchant(self, merchant_id: str) -> list[Transaction]:
        """All transactions of a merchant, newest first."""


class LoyaltyStore(TransactionSource, Protocol):
    ledger: LoyaltyLedger

    def get_program(self, merchant_id: str) -> LoyaltyProgram: ...

    def customers_for_merchant(self, merchant_id: str) -> list[Customer]: ...

    def get_customer(self, merchant_id: str, customer_id: str) -> Customer: ...

    def find_customer_by_code(self, merchant_id: str, customer_code: str) -> Customer: ...

    def get_transaction(self, merchant_id: str, transaction_id: str) -> Transaction: ...

    def add_transaction(self, transaction: Transaction) -> None: ...

    def replace_transaction(self, transaction: Transaction) -> None: ...


class InMemoryLoyaltyStore:
    """Dictionary-backed :class:`LoyaltyStore`."""

    def __init__(self, config: InsightConfig | None = None) -> None:
        self.ledger = LoyaltyLedger(config)
        self._programs: dict[str, LoyaltyProgram] = {}
        self._customers: dict[str, dict[str, Customer]] = {}
        self._transactions: dict[str, Transaction] = {}

    # Programs -----------------------------------------------------------
    def set_program(self, program: LoyaltyProgram) -> None:
        """Install ``program`` as the merchant's single active program."""

        self._programs[program.merchant_id] = program

    def get_program(self, merchant_id: str) -> LoyaltyProgram:
        program = self._programs.get(merchant_id)
        if program is None:
            raise DataAccessError(
                DataAccessErrorKind.NOT_FOUND,
                f"No active loyalty program for merchant {merchant_id}",
                {"merchant_id": merchant_id},
            )
        return program

    # Customers ----------------------------------------------------------
    def add_customer(self, merchant_id: str, customer: Customer) -> None:
        """Enrol ``customer`` with ``merchant_id`` and open their account."""

        customers = self._customers.setdefault(merchant_id, {})
        for existing in customers.values():
            if (
                existing.customer_code == customer.customer_code
                and existing.customer_id != customer.customer_id
            ):
                raise DataAccessError(
                    DataAccessErrorKind.CONFLICT,
                    f"Customer code {customer.customer_code} already in use",
                    {"merchant_id": merchant_id, "customer_code": customer.customer_code},
                )
        customers[customer.customer_id] = customer
        self.ledger.account(customer.customer_id, merchant_id)

    def add_customers(self, merchant_id: str, customers: Iterable[Customer]) -> None:
        for customer in customers:
            self.add_customer(merchant_id, customer)

    def customers_for_merchant(self, merchant_id: str) -> list[Customer]:
        return list(self._customers.get(merchant_id, {}).values())

    def get_customer(self, merchant_id: str, customer_id: str) -> Customer:
        customer = self._customers.get(merchant_id, {}).get(customer_id)
        if customer is None:
            raise DataAccessError(
                DataAccessErrorKind.NOT_FOUND,
                f"Customer {customer_id} is not enrolled with merchant {merchant_id}",
                {"merchant_id": merchant_id, "customer_id": customer_id},
            )
        return customer

    def find_customer_by_code(self, merchant_id: str, customer_code: str) -> Customer:
        for customer in self._customers.get(merchant_id, {}).values():
            if customer.customer_code == customer_code:
                return customer
        raise DataAccessError(
            DataAccessErrorKind.NOT_FOUND,
            f"No customer with code {customer_code}",
            {"merchant_id": merchant_id, "customer_code": customer_code},
        )

    # Transactions -------------------------------------------------------
    def add_transaction(self, transaction: Transaction) -> None:
        if transaction.transaction_id in self._transactions:
            raise DataAccessError(
                DataAccessErrorKind.CONFLICT,
                f"Transaction {transaction.transaction_id} already exists",
                {"transaction_id": transaction.transaction_id},
            )
        self._transactions[transaction.transaction_id] = transaction

    def add_transactions(self, transactions: Iterable[Transaction]) -> None:
        for transaction in transactions:
            self.add_transaction(transaction)

    def get_transaction(self, merchant_id: str, transaction_id: str) -> Transaction:
        transaction = self._transactions.get(transaction_id)
        if transaction is None or transaction.merchant_id != merchant_id:
            raise DataAccessError(
                DataAccessErrorKind.NOT_FOUND,
                f"Transaction {transaction_id} not found",
                {"merchant_id": merchant_id, "transaction_id": transaction_id},
            )
        return transaction

    def replace_transaction(self, transaction: Transaction) -> None:
        if transaction.transaction_id not in self._transactions:
            raise DataAccessError(
                DataAccessErrorKind.NOT_FOUND,
                f"Transaction {transaction.transaction_id} not found",
                {"transaction_id": transaction.transaction_id},
            )
        self._transactions[transaction.transaction_id] = transaction

    def transactions_for_customer(
        self, customer_id: str, merchant_id: str
    ) -> list[Transaction]:
        rows = [
            txn
            for txn in self._transactions.values()
            if txn.customer_id == customer_id and txn.merchant_id == merchant_id
        ]
        rows.sort(key=lambda txn: txn.created_at, reverse=True)
        return rows

    def transactions_for_merchant(self, merchant_id: str) -> list[Transaction]:
        rows = [txn for txn in self._transactions.values() if txn.merchant_id == merchant_id]
        rows.sort(key=lambda txn: txn.created_at, reverse=True)
        return rows
