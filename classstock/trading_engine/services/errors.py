from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureReason(str, Enum):
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_HOLDINGS = "insufficient_holdings"
    UNKNOWN_STOCK = "unknown_stock"
    OUTSIDE_ACTIVITY_WINDOW = "outside_activity_window"
    INVALID_QUANTITY = "invalid_quantity"
    ACCOUNT_NOT_FOUND = "account_not_found"
    STOCK_NOT_ALLOWED = "stock_not_allowed"


@dataclass(frozen=True)
class TradeFailure:
    """Expected, user-facing rejection of a trade. Returned, never raised."""
    reason: FailureReason
    message: str

    def to_dict(self) -> dict:
        return {"reason": self.reason.value, "message": self.message}


class PersistenceError(RuntimeError):
    """The record store failed; business rules already passed and the write may be retried."""


class SeedMoneyLockedError(ValueError):
    """Seed money cannot change once a class has enrolled students."""
