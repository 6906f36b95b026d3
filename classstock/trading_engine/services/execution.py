from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable
from uuid import uuid4
import logging

from classstock.utils.helper import to_kst, truncate_money, utc_now

from .actions import BONUS_STOCK_CODE, BONUS_STOCK_NAME, TradeKind
from .catalog import PriceCatalog
from .errors import FailureReason, TradeFailure
from .ledger import ClassConfig, PortfolioLedger, StudentAccount

logger = logging.getLogger("classstock.trading_engine.execution")


@dataclass(frozen=True)
class Transaction:
    """Immutable audit record of one buy, sell or bonus grant."""
    transaction_id: str
    student_id: str
    kind: TradeKind
    stock_code: str
    stock_name: str
    quantity: int
    unit_price: Decimal
    commission: Decimal
    executed_at: datetime
    reason: str | None = None

    @property
    def gross_amount(self) -> Decimal:
        return self.unit_price * self.quantity


TradeResult = Transaction | TradeFailure


def is_within_activity_window(class_config: ClassConfig, now: datetime) -> bool:
    # Bounds are calendar dates in KST; the end day counts through 23:59:59.
    today = to_kst(now).date()
    return class_config.activity_start <= today <= class_config.activity_end


def compute_commission(
    class_config: ClassConfig,
    price: Decimal,
    quantity: int,
) -> Decimal:
    terms = class_config.commission
    if not terms.enabled:
        return Decimal("0")
    return truncate_money(price * quantity * terms.rate_percent / Decimal("100"))


def new_transaction_id() -> str:
    return f"T{uuid4().hex}"


class TradeExecutor:
    """Validates orders, applies them through the ledger and emits transactions."""

    def __init__(
        self,
        catalog: PriceCatalog,
        ledger: PortfolioLedger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._catalog = catalog
        self._ledger = ledger or PortfolioLedger()
        self._clock = clock

    def execute(
        self,
        account: StudentAccount,
        class_config: ClassConfig,
        stock_code: str,
        quantity: int,
        kind: TradeKind,
        now: datetime | None = None,
    ) -> TradeResult:
        now = now or self._clock()

        if not is_within_activity_window(class_config, now):
            return TradeFailure(
                FailureReason.OUTSIDE_ACTIVITY_WINDOW,
                f"class {class_config.class_id} trades from "
                f"{class_config.activity_start.isoformat()} to "
                f"{class_config.activity_end.isoformat()}",
            )

        stock = self._catalog.get(stock_code)
        if stock is None:
            return TradeFailure(FailureReason.UNKNOWN_STOCK, f"no price for code={stock_code}")

        # Shares already held stay sellable after a code leaves the universe.
        held = kind is TradeKind.SELL and account.holding(stock_code) is not None
        if stock_code not in class_config.allowed_stock_codes and not held:
            return TradeFailure(
                FailureReason.STOCK_NOT_ALLOWED,
                f"{stock_code} is not tradable in class {class_config.class_id}",
            )

        price = stock.price
        commission = compute_commission(class_config, price, quantity)

        if kind is TradeKind.BUY:
            failure = self._ledger.apply_buy(account, stock_code, quantity, price, commission)
        elif kind is TradeKind.SELL:
            failure = self._ledger.apply_sell(account, stock_code, quantity, price, commission)
        else:
            raise ValueError(f"execute() does not handle kind={kind.value}")

        if failure is not None:
            logger.info(
                "Rejected %s of %s x%s for student=%s: %s",
                kind.value,
                stock_code,
                quantity,
                account.student_id,
                failure.reason.value,
            )
            return failure

        return Transaction(
            transaction_id=new_transaction_id(),
            student_id=account.student_id,
            kind=kind,
            stock_code=stock_code,
            stock_name=stock.name,
            quantity=quantity,
            unit_price=price,
            commission=commission,
            executed_at=now,
        )

    def grant_bonus(
        self,
        accounts: list[StudentAccount],
        amount: Decimal,
        reason: str,
        now: datetime | None = None,
    ) -> list[Transaction]:
        # No dedup: calling twice grants twice.
        now = now or self._clock()
        transactions: list[Transaction] = []
        for account in accounts:
            account.cash += amount
            transactions.append(
                Transaction(
                    transaction_id=new_transaction_id(),
                    student_id=account.student_id,
                    kind=TradeKind.BONUS,
                    stock_code=BONUS_STOCK_CODE,
                    stock_name=BONUS_STOCK_NAME,
                    quantity=1,
                    unit_price=amount,
                    commission=Decimal("0"),
                    executed_at=now,
                    reason=reason,
                )
            )
        return transactions
