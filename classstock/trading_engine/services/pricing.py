from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Protocol
import logging
import os
import random

import httpx
from dotenv import load_dotenv

from classstock.utils.helper import round_to_hundred, to_kst, utc_now
from classstock.utils.rate_limiter import RateLimiter
from classstock.utils.retry import with_backoff

from .catalog import PriceCatalog

logger = logging.getLogger("classstock.trading_engine.pricing")

load_dotenv()

# Simulated end-of-day settlement runs once the KST clock passes 16:10.
SETTLEMENT_CUTOFF = time(16, 10)
# Uniform drift in [-4.5%, +5.5%): deliberately biased upward.
DRIFT_CENTER = 0.45
DRIFT_SPAN = 0.1
PRICE_FLOOR = Decimal("100")

MARKET_OPEN = time(9, 0)
MARKET_CLOSE = time(15, 30)

KIS_REAL_BASE_URL = "https://openapi.koreainvestment.com:9443"
KIS_VIRTUAL_BASE_URL = "https://openapivts.koreainvestment.com:29443"
KIS_PRICE_TR_ID = "FHKST01010100"


def is_market_open(now: datetime) -> bool:
    """KRX regular session: weekdays 09:00-15:30 KST."""
    local = to_kst(now)
    if local.weekday() >= 5:
        return False
    return MARKET_OPEN <= local.time().replace(second=0, microsecond=0) <= MARKET_CLOSE


class PriceSimulationClock:
    """Moves every catalog price once per elapsed trading day.

    The only state is the date of the last advance. It is read from the
    store when the process starts and written back by the caller.
    """

    def __init__(
        self,
        catalog: PriceCatalog,
        last_advance_date: date | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._catalog = catalog
        self._last_advance_date = last_advance_date
        self._rng = rng or random.Random()

    @property
    def last_advance_date(self) -> date | None:
        return self._last_advance_date

    def restore(self, last_advance_date: date | None) -> None:
        """Reset the clock state to the date loaded from the store."""
        self._last_advance_date = last_advance_date

    def needs_advance(self, now: datetime) -> bool:
        local = to_kst(now)
        today = local.date()
        cutoff_passed = local.time() >= SETTLEMENT_CUTOFF
        if not cutoff_passed:
            return False
        return self._last_advance_date is None or self._last_advance_date < today

    def advance_if_due(self, now: datetime | None = None) -> bool:
        """Advance prices when due. Safe to call any number of times."""
        now = now or utc_now()
        today = to_kst(now).date()

        if not self.needs_advance(now):
            if self._last_advance_date is None:
                # First run before the cutoff: a later run today may still advance once.
                self._last_advance_date = today - timedelta(days=1)
            return False

        for stock in self._catalog.snapshot():
            self._catalog.set_price(stock.code, self._drift(stock.price))
        self._last_advance_date = today
        logger.info(
            "Advanced %s simulated prices for %s",
            len(self._catalog),
            today.isoformat(),
        )
        return True

    def _drift(self, price: Decimal) -> Decimal:
        change = Decimal(str((self._rng.random() - DRIFT_CENTER) * DRIFT_SPAN))
        return max(PRICE_FLOOR, round_to_hundred(price * (Decimal("1") + change)))


class PriceFeed(Protocol):
    """Source of live prices (brokerage API, CSV, etc.)."""

    def fetch_prices(self, codes: list[str]) -> dict[str, Decimal]:
        raise NotImplementedError


class KisApiError(RuntimeError):
    """The KIS Open API answered with a non-success result code."""


class KisPriceFeed(PriceFeed):
    """Korea Investment & Securities Open API quote feed."""

    def __init__(
        self,
        app_key: str,
        app_secret: str,
        environment: str = "virtual",
        client: httpx.Client | None = None,
        limiter: RateLimiter | None = None,
        attempts: int = 3,
    ) -> None:
        self._app_key = app_key
        self._app_secret = app_secret
        self._environment = environment
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=10.0)
        # KIS has no batch quote endpoint; requests go out one code at a time.
        self._limiter = limiter or RateLimiter(max_calls=10, period_sec=1.0)
        self._attempts = attempts
        self._access_token: str | None = None
        self._token_expiry: datetime | None = None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    @property
    def base_url(self) -> str:
        if self._environment == "real":
            return KIS_REAL_BASE_URL
        return KIS_VIRTUAL_BASE_URL

    def fetch_prices(self, codes: list[str]) -> dict[str, Decimal]:
        prices: dict[str, Decimal] = {}
        for code in codes:
            try:
                price = with_backoff(
                    lambda: self._fetch_price(code),
                    attempts=self._attempts,
                    base_delay=0.5,
                    retry_on=(httpx.TransportError, httpx.HTTPStatusError),
                    should_retry=_is_retryable,
                    on_retry=lambda attempt, exc, delay: logger.warning(
                        "KIS quote retry %s for %s in %.2fs: %s", attempt, code, delay, exc
                    ),
                )
            except (httpx.HTTPError, KisApiError, KeyError, ValueError) as exc:
                logger.exception("KIS quote failed for %s: %s", code, exc)
                continue
            prices[code] = price
        return prices

    def _fetch_price(self, code: str) -> Decimal:
        self._limiter.wait()
        response = self._client.get(
            f"{self.base_url}/uapi/domestic-stock/v1/quotations/inquire-price",
            params={"FID_COND_MRKT_DIV_CODE": "J", "FID_INPUT_ISCD": code},
            headers=self._headers(KIS_PRICE_TR_ID),
        )
        response.raise_for_status()
        payload = response.json()
        if payload.get("rt_cd") != "0":
            raise KisApiError(f"KIS error for {code}: {payload.get('msg1')}")
        return Decimal(str(int(payload["output"]["stck_prpr"])))

    def _headers(self, tr_id: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json; charset=utf-8",
            "authorization": f"Bearer {self._token()}",
            "appkey": self._app_key,
            "appsecret": self._app_secret,
            "tr_id": tr_id,
        }

    def _token(self) -> str:
        now = utc_now()
        if self._access_token and self._token_expiry and now < self._token_expiry:
            return self._access_token

        response = self._client.post(
            f"{self.base_url}/oauth2/tokenP",
            json={
                "grant_type": "client_credentials",
                "appkey": self._app_key,
                "appsecret": self._app_secret,
            },
        )
        response.raise_for_status()
        data = response.json()
        self._access_token = data["access_token"]
        # Renew an hour before the advertised expiry.
        expires_in = int(data.get("expires_in", 0)) - 3600
        self._token_expiry = now + timedelta(seconds=max(expires_in, 0))
        return self._access_token


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return True


def kis_feed_from_env() -> KisPriceFeed | None:
    app_key = os.getenv("KIS_APP_KEY", "")
    app_secret = os.getenv("KIS_APP_SECRET", "")
    if not app_key or not app_secret or "your_" in app_key:
        return None
    return KisPriceFeed(
        app_key=app_key,
        app_secret=app_secret,
        environment=os.getenv("KIS_ENVIRONMENT", "virtual"),
    )


@dataclass(frozen=True)
class PriceRefreshResult:
    source: str
    is_live: bool
    prices_changed: int
    last_advance_date: date | None

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "is_live": self.is_live,
            "prices_changed": self.prices_changed,
            "last_advance_date": (
                self.last_advance_date.isoformat() if self.last_advance_date else None
            ),
        }


class PricingService:
    """Keeps the catalog current from the live feed, or from the clock when no feed exists."""

    def __init__(
        self,
        catalog: PriceCatalog,
        clock: PriceSimulationClock,
        feed: PriceFeed | None = None,
        min_refresh_interval: timedelta = timedelta(seconds=60),
    ) -> None:
        self._catalog = catalog
        self._clock = clock
        self._feed = feed
        self._min_refresh_interval = min_refresh_interval
        self._last_fetch_at: datetime | None = None

    @property
    def catalog(self) -> PriceCatalog:
        return self._catalog

    @property
    def clock(self) -> PriceSimulationClock:
        return self._clock

    def close(self) -> None:
        close = getattr(self._feed, "close", None)
        if close is not None:
            close()

    def refresh(self, now: datetime | None = None) -> PriceRefreshResult:
        now = now or utc_now()

        if self._feed is None:
            advanced = self._clock.advance_if_due(now)
            return PriceRefreshResult(
                source="simulated",
                is_live=False,
                prices_changed=len(self._catalog) if advanced else 0,
                last_advance_date=self._clock.last_advance_date,
            )

        if not is_market_open(now):
            return self._feed_result(live=False, changed=0)
        if self._last_fetch_at and now - self._last_fetch_at < self._min_refresh_interval:
            return self._feed_result(live=True, changed=0)

        try:
            quotes = self._feed.fetch_prices(self._catalog.codes())
        except (httpx.HTTPError, KisApiError, KeyError) as exc:
            # Keep serving cached prices.
            logger.exception("Price feed refresh failed: %s", exc)
            return self._feed_result(live=True, changed=0)

        changed = 0
        for code, price in quotes.items():
            if code not in self._catalog:
                continue
            if self._catalog.get_price(code) != price:
                changed += 1
            self._catalog.set_price(code, price)
        self._last_fetch_at = now
        logger.info("Refreshed %s/%s prices from feed", len(quotes), len(self._catalog))
        return self._feed_result(live=True, changed=changed)

    def _feed_result(self, live: bool, changed: int) -> PriceRefreshResult:
        return PriceRefreshResult(
            source="kis",
            is_live=live,
            prices_changed=changed,
            last_advance_date=self._clock.last_advance_date,
        )
