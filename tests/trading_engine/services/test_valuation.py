from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from classstock.trading_engine.services.actions import BONUS_STOCK_CODE, BONUS_STOCK_NAME, TradeKind
from classstock.trading_engine.services.catalog import PriceCatalog, Stock
from classstock.trading_engine.services.execution import Transaction
from classstock.trading_engine.services.ledger import ClassConfig, Holding, StudentAccount
from classstock.trading_engine.services.valuation import (
    SortKey,
    rank,
    total_assets,
    total_profit,
    valuate,
    valuate_class,
)


def _class(seed: str = "1000000") -> ClassConfig:
    return ClassConfig(
        class_id="C1",
        name="6학년 1반",
        activity_start=date(2026, 3, 1),
        activity_end=date(2026, 3, 31),
        seed_money=Decimal(seed),
    )


def _catalog() -> PriceCatalog:
    return PriceCatalog(
        [
            Stock("005930", "삼성전자", Decimal("80000")),
            Stock("035720", "카카오", Decimal("40000")),
        ]
    )


def _account(student_id: str, cash: str, holdings: dict[str, Holding] | None = None) -> StudentAccount:
    return StudentAccount(
        student_id=student_id,
        class_id="C1",
        nickname=student_id,
        cash=Decimal(cash),
        holdings=holdings or {},
    )


def _bonus(student_id: str, amount: str) -> Transaction:
    return Transaction(
        transaction_id=f"T-{student_id}-{amount}",
        student_id=student_id,
        kind=TradeKind.BONUS,
        stock_code=BONUS_STOCK_CODE,
        stock_name=BONUS_STOCK_NAME,
        quantity=1,
        unit_price=Decimal(amount),
        commission=Decimal("0"),
        executed_at=datetime(2026, 3, 5, tzinfo=timezone.utc),
        reason="퀴즈",
    )


def test_total_assets_values_holdings_at_catalog_price() -> None:
    account = _account("S1", "299300", {"005930": Holding("005930", 10, Decimal("70000"))})

    assert total_assets(account, _catalog()) == Decimal("1099300")
    assert total_profit(account, _class(), _catalog()) == Decimal("99300")


def test_holdings_missing_from_catalog_count_as_zero() -> None:
    account = _account("S1", "500", {"000000": Holding("000000", 3, Decimal("1000"))})

    assert total_assets(account, _catalog()) == Decimal("500")


def test_profit_is_truncated_toward_zero() -> None:
    account = _account("S1", "999999.7")

    view = valuate(account, _class(), _catalog())

    assert view.total_profit == Decimal("-0")
    assert view.total_assets == Decimal("999999.7")


def test_rates_are_zero_when_seed_money_is_zero() -> None:
    view = valuate(_account("S1", "5000"), _class("0"), _catalog())

    assert view.total_profit == Decimal("5000")
    assert view.total_profit_rate == Decimal("0")
    assert view.investment_profit_rate == Decimal("0")


def test_investment_profit_excludes_bonuses() -> None:
    account = _account("S1", "1100000")

    view = valuate(account, _class(), _catalog(), [_bonus("S1", "50000"), _bonus("S1", "30000")])

    assert view.total_profit == Decimal("100000")
    assert view.total_profit_rate == Decimal("10")
    assert view.bonus_total == Decimal("80000")
    assert view.investment_profit == Decimal("20000")
    assert view.investment_profit_rate == Decimal("2")


def test_holding_views_report_profit_per_position() -> None:
    account = _account("S1", "0", {"005930": Holding("005930", 10, Decimal("70000"))})

    view = valuate(account, _class(), _catalog())

    [holding] = view.holdings
    assert holding.stock_name == "삼성전자"
    assert holding.current_value == Decimal("800000")
    assert holding.profit == Decimal("100000")
    assert view.stock_assets == Decimal("800000")
    assert holding.profit_rate.quantize(Decimal("0.01")) == Decimal("14.29")


def test_rank_by_total_assets_keeps_ties_in_input_order() -> None:
    accounts = [
        _account("S1", "1000000"),
        _account("S2", "1200000"),
        _account("S3", "1000000"),
    ]
    views = valuate_class(accounts, _class(), _catalog())

    ranked = rank(views, SortKey.TOTAL_ASSETS)

    assert [view.account.student_id for view in ranked] == ["S2", "S1", "S3"]


def test_rank_by_investment_profit_rate_ignores_bonus_cash() -> None:
    accounts = [
        _account("S1", "1200000"),
        _account("S2", "1100000"),
    ]
    views = valuate_class(
        accounts,
        _class(),
        _catalog(),
        {"S1": [_bonus("S1", "200000")]},
    )

    by_assets = rank(views, SortKey.TOTAL_ASSETS)
    by_rate = rank(views, SortKey.INVESTMENT_PROFIT_RATE)

    assert [view.account.student_id for view in by_assets] == ["S1", "S2"]
    assert [view.account.student_id for view in by_rate] == ["S2", "S1"]
