from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from classstock.trading_engine.services.actions import BONUS_STOCK_CODE, TradeKind
from classstock.trading_engine.services.catalog import PriceCatalog, Stock
from classstock.trading_engine.services.errors import FailureReason, TradeFailure
from classstock.trading_engine.services.execution import (
    TradeExecutor,
    Transaction,
    compute_commission,
    is_within_activity_window,
)
from classstock.trading_engine.services.ledger import ClassConfig, CommissionTerms, StudentAccount

# 2026-03-10 12:00 KST
NOON_KST = datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)


def _class(
    commission: CommissionTerms | None = None,
    start: date = date(2026, 3, 1),
    end: date = date(2026, 3, 31),
) -> ClassConfig:
    return ClassConfig(
        class_id="C1",
        name="6학년 1반",
        activity_start=start,
        activity_end=end,
        seed_money=Decimal("1000000"),
        allowed_stock_codes=frozenset({"005930"}),
        commission=commission or CommissionTerms(),
    )


def _account(cash: str = "1000000") -> StudentAccount:
    return StudentAccount(student_id="S1", class_id="C1", nickname="민지", cash=Decimal(cash))


def _executor() -> TradeExecutor:
    catalog = PriceCatalog([Stock("005930", "삼성전자", Decimal("70000"))])
    return TradeExecutor(catalog, clock=lambda: NOON_KST)


def test_buy_with_commission_records_transaction() -> None:
    account = _account()
    terms = CommissionTerms(enabled=True, rate_percent=Decimal("0.1"))

    result = _executor().execute(account, _class(terms), "005930", 10, TradeKind.BUY)

    assert isinstance(result, Transaction)
    assert result.commission == Decimal("700")
    assert result.unit_price == Decimal("70000")
    assert result.stock_name == "삼성전자"
    assert result.executed_at == NOON_KST
    assert result.transaction_id.startswith("T")
    assert account.cash == Decimal("299300")


def test_failed_buy_returns_failure_and_keeps_account() -> None:
    account = _account()
    terms = CommissionTerms(enabled=True, rate_percent=Decimal("0.1"))

    result = _executor().execute(account, _class(terms), "005930", 20, TradeKind.BUY)

    assert isinstance(result, TradeFailure)
    assert result.reason is FailureReason.INSUFFICIENT_FUNDS
    assert account.cash == Decimal("1000000")
    assert account.holdings == {}


def test_unknown_stock_is_rejected() -> None:
    result = _executor().execute(_account(), _class(), "999999", 1, TradeKind.BUY)

    assert isinstance(result, TradeFailure)
    assert result.reason is FailureReason.UNKNOWN_STOCK


def test_activity_window_is_checked_before_anything_else() -> None:
    closed = _class(start=date(2026, 4, 1), end=date(2026, 4, 30))

    result = _executor().execute(_account(), closed, "999999", 0, TradeKind.BUY)

    assert isinstance(result, TradeFailure)
    assert result.reason is FailureReason.OUTSIDE_ACTIVITY_WINDOW


def test_code_outside_class_universe_is_rejected_after_price_lookup() -> None:
    catalog = PriceCatalog(
        [Stock("005930", "삼성전자", Decimal("70000")), Stock("035720", "카카오", Decimal("42000"))]
    )
    executor = TradeExecutor(catalog, clock=lambda: NOON_KST)

    not_allowed = executor.execute(_account(), _class(), "035720", 1, TradeKind.BUY)
    unknown = executor.execute(_account(), _class(), "999999", 1, TradeKind.BUY)

    assert isinstance(not_allowed, TradeFailure)
    assert not_allowed.reason is FailureReason.STOCK_NOT_ALLOWED
    assert isinstance(unknown, TradeFailure)
    assert unknown.reason is FailureReason.UNKNOWN_STOCK


def test_activity_window_uses_kst_calendar_dates() -> None:
    config = _class(start=date(2026, 3, 1), end=date(2026, 3, 10))

    # 2026-03-10 23:59 KST is still inside; 2026-03-11 00:00 KST is outside.
    assert is_within_activity_window(config, datetime(2026, 3, 10, 14, 59, tzinfo=timezone.utc))
    assert not is_within_activity_window(config, datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc))
    # 2026-02-28 15:00 UTC is already 2026-03-01 in KST.
    assert is_within_activity_window(config, datetime(2026, 2, 28, 15, 0, tzinfo=timezone.utc))


def test_commission_is_truncated_and_zero_when_disabled() -> None:
    enabled = _class(CommissionTerms(enabled=True, rate_percent=Decimal("0.015")))
    disabled = _class(CommissionTerms(enabled=False, rate_percent=Decimal("5")))

    # 42000 * 3 * 0.015% = 18.9
    assert compute_commission(enabled, Decimal("42000"), 3) == Decimal("18")
    assert compute_commission(disabled, Decimal("42000"), 3) == Decimal("0")


def test_sell_records_commission_and_removes_sold_out_holding() -> None:
    executor = _executor()
    account = _account()
    terms = _class(CommissionTerms(enabled=True, rate_percent=Decimal("0.1")))
    executor.execute(account, terms, "005930", 2, TradeKind.BUY)

    result = executor.execute(account, terms, "005930", 2, TradeKind.SELL)

    assert isinstance(result, Transaction)
    assert result.kind is TradeKind.SELL
    assert result.commission == Decimal("140")
    assert account.holdings == {}
    assert account.cash == Decimal("1000000") - Decimal("140") - Decimal("140")


def test_execute_refuses_bonus_kind() -> None:
    with pytest.raises(ValueError):
        _executor().execute(_account(), _class(), "005930", 1, TradeKind.BONUS)


def test_grant_bonus_adds_cash_and_records_each_grant() -> None:
    first = _account("100")
    second = StudentAccount(student_id="S2", class_id="C1", nickname="준호", cash=Decimal("0"))

    transactions = _executor().grant_bonus([first, second], Decimal("50000"), "발표 우수")

    assert first.cash == Decimal("50100")
    assert second.cash == Decimal("50000")
    assert [t.student_id for t in transactions] == ["S1", "S2"]
    assert all(t.kind is TradeKind.BONUS for t in transactions)
    assert all(t.stock_code == BONUS_STOCK_CODE for t in transactions)
    assert all(t.quantity == 1 and t.unit_price == Decimal("50000") for t in transactions)
    assert transactions[0].reason == "발표 우수"
