from __future__ import annotations

from enum import Enum


class TradeKind(str, Enum):
    BUY = "buy"
    SELL = "sell"
    BONUS = "bonus"


BONUS_STOCK_CODE = "BONUS"
BONUS_STOCK_NAME = "학급 보너스"
