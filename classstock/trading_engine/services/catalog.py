from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal


@dataclass(frozen=True)
class Stock:
    """A tradable stock and its current price."""
    code: str
    name: str
    price: Decimal


class PriceCatalog:
    """In-memory price table shared by every class in the process.

    Constructed once and passed explicitly to the executor, clock and
    valuation functions. Callers persist changes themselves.
    """

    def __init__(self, stocks: list[Stock] | None = None) -> None:
        self._stocks: dict[str, Stock] = {}
        for stock in stocks or []:
            self.register(stock)

    def register(self, stock: Stock) -> None:
        self._stocks[stock.code] = stock

    def get(self, code: str) -> Stock | None:
        return self._stocks.get(code)

    def get_price(self, code: str) -> Decimal | None:
        stock = self._stocks.get(code)
        if stock is None:
            return None
        return stock.price

    def set_price(self, code: str, price: Decimal) -> None:
        stock = self._stocks.get(code)
        if stock is None:
            raise KeyError(f"Unknown stock code={code}")
        self._stocks[code] = replace(stock, price=Decimal(price))

    def snapshot(self) -> list[Stock]:
        return list(self._stocks.values())

    def codes(self) -> list[str]:
        return list(self._stocks.keys())

    def __contains__(self, code: object) -> bool:
        return code in self._stocks

    def __len__(self) -> int:
        return len(self._stocks)
