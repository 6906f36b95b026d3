from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from .errors import FailureReason, TradeFailure


@dataclass(frozen=True)
class Holding:
    """Shares of one stock held by a student."""
    stock_code: str
    quantity: int
    average_cost: Decimal


@dataclass(frozen=True)
class CommissionTerms:
    enabled: bool = False
    rate_percent: Decimal = Decimal("0")


@dataclass(frozen=True)
class ClassConfig:
    """Teacher-defined settings for one class."""
    class_id: str
    name: str
    activity_start: date
    activity_end: date
    seed_money: Decimal
    allowed_stock_codes: frozenset[str] = frozenset()
    commission: CommissionTerms = CommissionTerms()


@dataclass
class StudentAccount:
    """Persisted cash and holdings of one student.

    Only the ledger functions below and bonus grants mutate an account.
    """
    student_id: str
    class_id: str
    nickname: str
    cash: Decimal
    holdings: dict[str, Holding] = field(default_factory=dict)

    def holding(self, stock_code: str) -> Holding | None:
        return self.holdings.get(stock_code)


class PortfolioLedger:
    """Applies buy/sell mutations to an account under the ledger invariants.

    Each call either applies its full effect or leaves the account untouched
    and returns a TradeFailure.
    """

    def apply_buy(
        self,
        account: StudentAccount,
        stock_code: str,
        quantity: int,
        unit_price: Decimal,
        commission: Decimal,
    ) -> TradeFailure | None:
        if quantity <= 0:
            return TradeFailure(FailureReason.INVALID_QUANTITY, "quantity must be positive")

        total_cost = unit_price * quantity + commission
        if account.cash < total_cost:
            return TradeFailure(
                FailureReason.INSUFFICIENT_FUNDS,
                f"buying {quantity} {stock_code} costs {total_cost} but cash is {account.cash}",
            )

        existing = account.holdings.get(stock_code)
        if existing is None:
            next_holding = Holding(
                stock_code=stock_code,
                quantity=quantity,
                average_cost=unit_price,
            )
        else:
            next_quantity = existing.quantity + quantity
            next_holding = Holding(
                stock_code=stock_code,
                quantity=next_quantity,
                average_cost=(
                    existing.average_cost * existing.quantity + unit_price * quantity
                ) / next_quantity,
            )

        account.cash -= total_cost
        account.holdings[stock_code] = next_holding
        return None

    def apply_sell(
        self,
        account: StudentAccount,
        stock_code: str,
        quantity: int,
        unit_price: Decimal,
        commission: Decimal,
    ) -> TradeFailure | None:
        if quantity <= 0:
            return TradeFailure(FailureReason.INVALID_QUANTITY, "quantity must be positive")

        existing = account.holdings.get(stock_code)
        held = existing.quantity if existing is not None else 0
        if existing is None or held < quantity:
            return TradeFailure(
                FailureReason.INSUFFICIENT_HOLDINGS,
                f"selling {quantity} {stock_code} but holds only {held}",
            )

        next_cash = account.cash + unit_price * quantity - commission
        if next_cash < 0:
            return TradeFailure(
                FailureReason.INSUFFICIENT_FUNDS,
                f"commission {commission} exceeds available cash after proceeds",
            )

        account.cash = next_cash
        remaining = existing.quantity - quantity
        if remaining == 0:
            account.holdings.pop(stock_code, None)
            return None

        account.holdings[stock_code] = Holding(
            stock_code=stock_code,
            quantity=remaining,
            average_cost=existing.average_cost,
        )
        return None
