from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from classstock.trading_engine.services.actions import TradeKind
from classstock.trading_engine.services.ledger import ClassConfig
from classstock.trading_engine.services.valuation import SortKey, ValuationView

MAX_BONUS_AMOUNT = Decimal("10000000")

OrderKind = Literal["buy", "sell"]


class StockResponse(BaseModel):
    code: str
    name: str
    price: Decimal

    class Config:
        from_attributes = True


class ClassCreate(BaseModel):
    name: str
    activity_start: date
    activity_end: date
    seed_money: Decimal = Field(ge=0)
    allowed_stock_codes: List[str] = []
    commission_enabled: bool = False
    commission_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class ClassResponse(BaseModel):
    class_id: str
    name: str
    activity_start: date
    activity_end: date
    seed_money: Decimal
    allowed_stock_codes: List[str]
    commission_enabled: bool
    commission_rate: Decimal
    student_count: Optional[int] = None

    @classmethod
    def from_config(cls, config: ClassConfig, student_count: Optional[int] = None) -> "ClassResponse":
        return cls(
            class_id=config.class_id,
            name=config.name,
            activity_start=config.activity_start,
            activity_end=config.activity_end,
            seed_money=config.seed_money,
            allowed_stock_codes=sorted(config.allowed_stock_codes),
            commission_enabled=config.commission.enabled,
            commission_rate=config.commission.rate_percent,
            student_count=student_count,
        )


class AllowedStocksUpdateRequest(BaseModel):
    stock_codes: List[str]


class CommissionUpdateRequest(BaseModel):
    enabled: bool
    rate_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class SeedMoneyUpdateRequest(BaseModel):
    seed_money: Decimal = Field(ge=0)


class EnrollStudentsRequest(BaseModel):
    nicknames: List[str]


class StudentResponse(BaseModel):
    student_id: str
    class_id: str
    nickname: str
    cash: Decimal

    class Config:
        from_attributes = True


class EnrollStudentsResponse(BaseModel):
    created: List[StudentResponse]
    duplicate_count: int


class BonusRequest(BaseModel):
    amount: Decimal = Field(ge=1, le=MAX_BONUS_AMOUNT)
    reason: str
    # None grants the bonus to every student in the class.
    student_ids: Optional[List[str]] = None


class OrderRequest(BaseModel):
    stock_code: str
    quantity: int
    kind: OrderKind


class TransactionResponse(BaseModel):
    transaction_id: str
    student_id: str
    kind: TradeKind
    stock_code: str
    stock_name: str
    quantity: int
    unit_price: Decimal
    commission: Decimal
    executed_at: datetime
    reason: Optional[str] = None

    class Config:
        from_attributes = True


class HoldingResponse(BaseModel):
    stock_code: str
    stock_name: str
    quantity: int
    average_cost: Decimal
    current_price: Decimal
    current_value: Decimal
    profit: Decimal
    profit_rate: Decimal

    class Config:
        from_attributes = True


class PortfolioResponse(BaseModel):
    student_id: str
    class_id: str
    nickname: str
    cash: Decimal
    stock_assets: Decimal
    total_assets: Decimal
    total_profit: Decimal
    total_profit_rate: Decimal
    bonus_total: Decimal
    investment_profit: Decimal
    investment_profit_rate: Decimal
    holdings: List[HoldingResponse] = []

    @classmethod
    def from_view(cls, view: ValuationView) -> "PortfolioResponse":
        account = view.account
        return cls(
            student_id=account.student_id,
            class_id=account.class_id,
            nickname=account.nickname,
            cash=account.cash,
            stock_assets=view.stock_assets,
            total_assets=view.total_assets,
            total_profit=view.total_profit,
            total_profit_rate=view.total_profit_rate,
            bonus_total=view.bonus_total,
            investment_profit=view.investment_profit,
            investment_profit_rate=view.investment_profit_rate,
            holdings=[HoldingResponse.model_validate(holding) for holding in view.holdings],
        )


class RankingEntry(BaseModel):
    rank: int
    student_id: str
    nickname: str
    total_assets: Decimal
    total_profit: Decimal
    total_profit_rate: Decimal
    investment_profit: Decimal
    investment_profit_rate: Decimal


class RankingResponse(BaseModel):
    class_id: str
    sort_by: SortKey
    entries: List[RankingEntry]


class TradeFailureResponse(BaseModel):
    reason: str
    message: str


class MessageResponse(BaseModel):
    message: str
