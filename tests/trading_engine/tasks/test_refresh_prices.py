from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import httpx
import pytest

import classstock.trading_engine.tasks.refresh_prices as refresh_module
from classstock.trading_engine.services.catalog import Stock
from classstock.trading_engine.services.pricing import KisPriceFeed
from classstock.utils.rate_limiter import RateLimiter


class _FakeSession:
    def __init__(self) -> None:
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        self.rolled_back = True

    def close(self) -> None:
        self.closed = True


class _FakeRepo:
    def __init__(self, last_advance_date: date | None = None) -> None:
        self.stocks = [Stock("005930", "삼성전자", Decimal("71000"))]
        self.last_advance_date = last_advance_date
        self.saved_stocks: list[Stock] | None = None
        self.saved_date: date | None = None

    def load_stocks(self, session) -> list[Stock]:
        return list(self.stocks)

    def save_stocks(self, session, stocks: list[Stock]) -> None:
        self.saved_stocks = list(stocks)
        self.stocks = list(stocks)

    def get_last_advance_date(self, session) -> date | None:
        return self.last_advance_date

    def set_last_advance_date(self, session, day: date | None) -> None:
        self.saved_date = day


def _patch(monkeypatch: pytest.MonkeyPatch, session: _FakeSession, repo: _FakeRepo) -> None:
    monkeypatch.setattr(refresh_module, "_pricing", None)
    monkeypatch.setattr(refresh_module, "SessionLocal", lambda: session)
    monkeypatch.setattr(refresh_module, "SqlLedgerRepository", lambda: repo)
    monkeypatch.setattr(refresh_module, "kis_feed_from_env", lambda: None)


def test_refresh_after_cutoff_advances_and_persists(monkeypatch: pytest.MonkeyPatch) -> None:
    session = _FakeSession()
    repo = _FakeRepo(last_advance_date=date(2026, 3, 9))
    _patch(monkeypatch, session, repo)

    # 16:30 KST
    result = refresh_module.refresh_prices(now=datetime(2026, 3, 10, 7, 30, tzinfo=timezone.utc))

    assert result["source"] == "simulated"
    assert result["prices_changed"] == 1
    assert result["last_advance_date"] == "2026-03-10"
    assert repo.saved_date == date(2026, 3, 10)
    assert repo.saved_stocks is not None
    assert repo.saved_stocks[0].price % 100 == 0
    assert session.committed is True
    assert session.closed is True


def test_first_refresh_before_cutoff_stores_yesterday(monkeypatch: pytest.MonkeyPatch) -> None:
    session = _FakeSession()
    repo = _FakeRepo()
    _patch(monkeypatch, session, repo)

    # 10:00 KST
    result = refresh_module.refresh_prices(now=datetime(2026, 3, 10, 1, 0, tzinfo=timezone.utc))

    assert result["prices_changed"] == 0
    assert repo.saved_date == date(2026, 3, 9)
    assert repo.saved_stocks == repo.stocks


def test_refresh_rolls_back_on_error(monkeypatch: pytest.MonkeyPatch) -> None:
    session = _FakeSession()
    repo = _FakeRepo()

    def _boom(session) -> None:
        raise RuntimeError("boom")

    repo.get_last_advance_date = _boom
    _patch(monkeypatch, session, repo)

    with pytest.raises(RuntimeError, match="boom"):
        refresh_module.refresh_prices()

    assert session.committed is False
    assert session.rolled_back is True
    assert session.closed is True


def test_celery_task_parses_iso_timestamp(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict = {}

    def _fake(now=None) -> dict:
        captured["now"] = now
        return {"source": "simulated"}

    monkeypatch.setattr(refresh_module, "refresh_prices", _fake)

    refresh_module.run_refresh_prices(now="2026-03-10T16:30:00+09:00")

    assert captured["now"] == datetime(2026, 3, 10, 7, 30, tzinfo=timezone.utc)


def _kis_feed(calls: dict[str, int]) -> KisPriceFeed:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/tokenP":
            calls["token"] = calls.get("token", 0) + 1
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 86400})
        calls["quote"] = calls.get("quote", 0) + 1
        return httpx.Response(200, json={"rt_cd": "0", "output": {"stck_prpr": "71500"}})

    return KisPriceFeed(
        app_key="key",
        app_secret="secret",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        limiter=RateLimiter(max_calls=100, period_sec=1.0),
    )


def test_live_refresh_reuses_feed_between_runs(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: dict[str, int] = {}
    feeds: list[KisPriceFeed] = []

    def _feed_from_env() -> KisPriceFeed:
        feeds.append(_kis_feed(calls))
        return feeds[-1]

    repo = _FakeRepo(last_advance_date=date(2026, 3, 9))
    _patch(monkeypatch, _FakeSession(), repo)
    monkeypatch.setattr(refresh_module, "kis_feed_from_env", _feed_from_env)

    # 10:00:00 and 10:00:20 KST on a Tuesday
    first = refresh_module.refresh_prices(now=datetime(2026, 3, 10, 1, 0, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(refresh_module, "SessionLocal", lambda: _FakeSession())
    second = refresh_module.refresh_prices(now=datetime(2026, 3, 10, 1, 0, 20, tzinfo=timezone.utc))

    assert first["source"] == "kis"
    assert first["prices_changed"] == 1
    assert second["prices_changed"] == 0
    assert len(feeds) == 1
    assert calls == {"token": 1, "quote": 1}
    assert repo.saved_stocks is not None
    assert repo.saved_stocks[0].price == Decimal("71500")


def test_worker_shutdown_closes_feed(monkeypatch: pytest.MonkeyPatch) -> None:
    closed: list[bool] = []

    class _Feed:
        def fetch_prices(self, codes: list[str]) -> dict[str, Decimal]:
            return {}

        def close(self) -> None:
            closed.append(True)

    monkeypatch.setattr(refresh_module, "_pricing", None)
    monkeypatch.setattr(refresh_module, "kis_feed_from_env", lambda: _Feed())
    service = refresh_module.get_pricing_service()

    assert refresh_module.get_pricing_service() is service

    refresh_module.close_pricing_service()

    assert closed == [True]
    assert refresh_module._pricing is None
