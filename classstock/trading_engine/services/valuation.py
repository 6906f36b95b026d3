from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable

from classstock.utils.helper import truncate_money

from .actions import TradeKind
from .catalog import PriceCatalog
from .execution import Transaction
from .ledger import ClassConfig, StudentAccount

HUNDRED = Decimal("100")
ZERO = Decimal("0")


class SortKey(str, Enum):
    TOTAL_ASSETS = "total_assets"
    INVESTMENT_PROFIT_RATE = "investment_profit_rate"


@dataclass(frozen=True)
class HoldingView:
    """Current market view of one holding."""
    stock_code: str
    stock_name: str
    quantity: int
    average_cost: Decimal
    current_price: Decimal
    current_value: Decimal
    profit: Decimal
    profit_rate: Decimal


@dataclass(frozen=True)
class ValuationView:
    """Computed, never-persisted metrics for one account."""
    account: StudentAccount
    total_assets: Decimal
    total_profit: Decimal
    total_profit_rate: Decimal
    bonus_total: Decimal
    investment_profit: Decimal
    investment_profit_rate: Decimal
    holdings: tuple[HoldingView, ...] = ()

    @property
    def stock_assets(self) -> Decimal:
        return self.total_assets - self.account.cash


def total_assets(account: StudentAccount, catalog: PriceCatalog) -> Decimal:
    # Holdings of codes missing from the catalog are valued at zero.
    stock_value = sum(
        (
            (catalog.get_price(code) or ZERO) * holding.quantity
            for code, holding in account.holdings.items()
        ),
        ZERO,
    )
    return account.cash + stock_value


def total_profit(
    account: StudentAccount,
    class_config: ClassConfig,
    catalog: PriceCatalog,
) -> Decimal:
    return truncate_money(total_assets(account, catalog) - class_config.seed_money)


def rate_of(amount: Decimal, base: Decimal) -> Decimal:
    if base == 0:
        return ZERO
    return amount / base * HUNDRED


def bonus_total(transactions: Iterable[Transaction]) -> Decimal:
    return sum(
        (t.unit_price for t in transactions if t.kind is TradeKind.BONUS),
        ZERO,
    )


def holding_views(account: StudentAccount, catalog: PriceCatalog) -> tuple[HoldingView, ...]:
    views: list[HoldingView] = []
    for code, holding in account.holdings.items():
        stock = catalog.get(code)
        price = stock.price if stock is not None else ZERO
        cost_basis = holding.average_cost * holding.quantity
        profit = (price - holding.average_cost) * holding.quantity
        views.append(
            HoldingView(
                stock_code=code,
                stock_name=stock.name if stock is not None else code,
                quantity=holding.quantity,
                average_cost=holding.average_cost,
                current_price=price,
                current_value=price * holding.quantity,
                profit=profit,
                profit_rate=rate_of(profit, cost_basis),
            )
        )
    return tuple(views)


def valuate(
    account: StudentAccount,
    class_config: ClassConfig,
    catalog: PriceCatalog,
    transactions: Iterable[Transaction] = (),
) -> ValuationView:
    assets = total_assets(account, catalog)
    profit = truncate_money(assets - class_config.seed_money)
    bonuses = bonus_total(transactions)
    investment_profit = profit - bonuses
    return ValuationView(
        account=account,
        total_assets=assets,
        total_profit=profit,
        total_profit_rate=rate_of(profit, class_config.seed_money),
        bonus_total=bonuses,
        investment_profit=investment_profit,
        investment_profit_rate=rate_of(investment_profit, class_config.seed_money),
        holdings=holding_views(account, catalog),
    )


def valuate_class(
    accounts: list[StudentAccount],
    class_config: ClassConfig,
    catalog: PriceCatalog,
    transactions_by_student: dict[str, list[Transaction]] | None = None,
) -> list[ValuationView]:
    transactions_by_student = transactions_by_student or {}
    return [
        valuate(
            account,
            class_config,
            catalog,
            transactions_by_student.get(account.student_id, []),
        )
        for account in accounts
    ]


def rank(
    views: list[ValuationView],
    sort_key: SortKey = SortKey.TOTAL_ASSETS,
) -> list[ValuationView]:
    """Descending by sort_key. Ties keep their input order (sorted() is stable)."""
    if sort_key is SortKey.INVESTMENT_PROFIT_RATE:
        return sorted(views, key=lambda view: view.investment_profit_rate, reverse=True)
    return sorted(views, key=lambda view: view.total_assets, reverse=True)
