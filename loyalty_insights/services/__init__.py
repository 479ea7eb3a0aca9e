"""Service layer: explicit merchant sessions over a loyalty store."""

from .schemas import (
    CustomerInsightPayload,
    MerchantSummaryPayload,
    PointsAdjustmentRequest,
    PointsAdjustmentResponse,
    RecordTransactionRequest,
    RecordTransactionResponse,
)
from .service import LoyaltyService
from .store import InMemoryLoyaltyStore, LoyaltyStore, MerchantSession, TransactionSource

__all__ = [
    "CustomerInsightPayload",
    "InMemoryLoyaltyStore",
    "LoyaltyService",
    "LoyaltyStore",
    "MerchantSession",
    "MerchantSummaryPayload",
    "PointsAdjustmentRequest",
    "PointsAdjustmentResponse",
    "RecordTransactionRequest",
    "RecordTransactionResponse",
    "TransactionSource",
]
