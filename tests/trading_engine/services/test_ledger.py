from __future__ import annotations

from decimal import Decimal

from classstock.trading_engine.services.errors import FailureReason
from classstock.trading_engine.services.ledger import Holding, PortfolioLedger, StudentAccount


def _account(cash: str = "1000000", holdings: dict[str, Holding] | None = None) -> StudentAccount:
    return StudentAccount(
        student_id="S1",
        class_id="C1",
        nickname="민지",
        cash=Decimal(cash),
        holdings=holdings or {},
    )


def test_buy_deducts_price_and_commission() -> None:
    account = _account()

    failure = PortfolioLedger().apply_buy(account, "005930", 10, Decimal("70000"), Decimal("700"))

    assert failure is None
    assert account.cash == Decimal("299300")
    assert account.holdings["005930"] == Holding("005930", 10, Decimal("70000"))


def test_buy_with_insufficient_cash_leaves_account_untouched() -> None:
    account = _account()

    failure = PortfolioLedger().apply_buy(account, "005930", 20, Decimal("70000"), Decimal("1400"))

    assert failure is not None
    assert failure.reason is FailureReason.INSUFFICIENT_FUNDS
    assert account.cash == Decimal("1000000")
    assert account.holdings == {}


def test_buy_exactly_all_cash_is_allowed() -> None:
    account = _account("70000")

    failure = PortfolioLedger().apply_buy(account, "005930", 1, Decimal("70000"), Decimal("0"))

    assert failure is None
    assert account.cash == Decimal("0")


def test_buy_averages_cost_without_commission() -> None:
    account = _account(holdings={"005930": Holding("005930", 10, Decimal("70000"))})

    failure = PortfolioLedger().apply_buy(account, "005930", 10, Decimal("80000"), Decimal("800"))

    assert failure is None
    assert account.holdings["005930"].quantity == 20
    assert account.holdings["005930"].average_cost == Decimal("75000")
    assert account.cash == Decimal("1000000") - Decimal("800000") - Decimal("800")


def test_partial_sell_keeps_average_cost() -> None:
    account = _account("299300", {"005930": Holding("005930", 10, Decimal("70000"))})

    failure = PortfolioLedger().apply_sell(account, "005930", 4, Decimal("80000"), Decimal("0"))

    assert failure is None
    assert account.cash == Decimal("619300")
    assert account.holdings["005930"] == Holding("005930", 6, Decimal("70000"))


def test_selling_everything_removes_the_holding() -> None:
    account = _account("0", {"005930": Holding("005930", 3, Decimal("70000"))})

    failure = PortfolioLedger().apply_sell(account, "005930", 3, Decimal("71000"), Decimal("213"))

    assert failure is None
    assert account.holdings == {}
    assert account.cash == Decimal("212787")


def test_sell_more_than_held_fails() -> None:
    account = _account(holdings={"005930": Holding("005930", 2, Decimal("70000"))})

    failure = PortfolioLedger().apply_sell(account, "005930", 3, Decimal("70000"), Decimal("0"))

    assert failure is not None
    assert failure.reason is FailureReason.INSUFFICIENT_HOLDINGS
    assert account.holdings["005930"].quantity == 2


def test_sell_of_unheld_stock_fails() -> None:
    failure = PortfolioLedger().apply_sell(_account(), "005930", 1, Decimal("70000"), Decimal("0"))

    assert failure is not None
    assert failure.reason is FailureReason.INSUFFICIENT_HOLDINGS


def test_sell_whose_commission_exceeds_cash_fails() -> None:
    account = _account("0", {"225570": Holding("225570", 1, Decimal("100"))})

    failure = PortfolioLedger().apply_sell(account, "225570", 1, Decimal("100"), Decimal("150"))

    assert failure is not None
    assert failure.reason is FailureReason.INSUFFICIENT_FUNDS
    assert account.cash == Decimal("0")
    assert account.holdings["225570"].quantity == 1


def test_non_positive_quantity_is_rejected_first() -> None:
    ledger = PortfolioLedger()
    account = _account("0")

    buy = ledger.apply_buy(account, "005930", 0, Decimal("70000"), Decimal("0"))
    sell = ledger.apply_sell(account, "005930", -1, Decimal("70000"), Decimal("0"))

    assert buy is not None and buy.reason is FailureReason.INVALID_QUANTITY
    assert sell is not None and sell.reason is FailureReason.INVALID_QUANTITY


def test_trade_failure_serializes_reason_value() -> None:
    failure = PortfolioLedger().apply_buy(_account("0"), "005930", 1, Decimal("70000"), Decimal("0"))

    assert failure is not None
    assert failure.to_dict()["reason"] == "insufficient_funds"


def _market_value(account: StudentAccount, prices: dict[str, Decimal]) -> Decimal:
    return account.cash + sum(
        (holding.quantity * prices[code] for code, holding in account.holdings.items()),
        Decimal("0"),
    )


def test_trade_sequence_conserves_value_less_commission() -> None:
    account = _account()
    ledger = PortfolioLedger()
    prices = {"005930": Decimal("70000"), "035720": Decimal("40000")}
    start = _market_value(account, prices)
    commissions = Decimal("0")
    price_movement = Decimal("0")

    steps = [
        ("buy", "005930", 5, Decimal("350")),
        ("buy", "035720", 3, Decimal("120")),
        ("move", "005930", Decimal("80000"), None),
        ("buy", "005930", 5, Decimal("400")),
        ("sell", "035720", 3, Decimal("120")),
        ("sell", "005930", 4, Decimal("320")),
    ]
    for kind, code, amount, commission in steps:
        if kind == "move":
            held = account.holding(code)
            price_movement += (held.quantity if held else 0) * (amount - prices[code])
            prices[code] = amount
            continue
        apply = ledger.apply_buy if kind == "buy" else ledger.apply_sell
        assert apply(account, code, amount, prices[code], commission) is None
        commissions += commission
        if kind == "buy" and code == "005930" and account.holdings[code].quantity == 10:
            # The 035720 buy in between does not disturb the running average.
            assert account.holdings[code].average_cost == Decimal("75000")

    assert commissions == Decimal("1310")
    assert price_movement == Decimal("50000")
    assert _market_value(account, prices) == start + price_movement - commissions
    assert account.cash == Decimal("568690")
    assert account.holdings == {"005930": Holding("005930", 6, Decimal("75000"))}
