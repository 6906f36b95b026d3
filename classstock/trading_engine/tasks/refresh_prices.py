from __future__ import annotations

from datetime import datetime
import logging

from celery import shared_task
from celery.signals import worker_process_shutdown

from classstock.api.database.database import SessionLocal
from classstock.trading_engine.services.catalog import PriceCatalog
from classstock.trading_engine.services.pricing import (
    PriceSimulationClock,
    PricingService,
    kis_feed_from_env,
)
from classstock.trading_engine.services.repository import (
    SqlLedgerRepository,
    seed_default_stocks,
)

logger = logging.getLogger("classstock.trading_engine.tasks.refresh_prices")

# One pricing service per worker process, so the feed's token, HTTP client
# and once-a-minute fetch window survive between beats.
_pricing: PricingService | None = None


def get_pricing_service() -> PricingService:
    global _pricing
    if _pricing is None:
        catalog = PriceCatalog()
        _pricing = PricingService(
            catalog=catalog,
            clock=PriceSimulationClock(catalog=catalog),
            feed=kis_feed_from_env(),
        )
    return _pricing


@worker_process_shutdown.connect
def close_pricing_service(**kwargs) -> None:
    global _pricing
    if _pricing is not None:
        _pricing.close()
        _pricing = None


@shared_task(name="trading_engine.refresh_prices")
def run_refresh_prices(now: str | None = None) -> dict:
    """
    Refresh stored prices from the live feed, or advance the simulation clock.
    now is an optional ISO datetime used to replay a missed run.
    """
    return refresh_prices(now=datetime.fromisoformat(now) if now else None)


def refresh_prices(now: datetime | None = None) -> dict:
    repo = SqlLedgerRepository()
    service = get_pricing_service()
    session = SessionLocal()
    try:
        seed_default_stocks(session=session, repo=repo)
        # The store is the source of truth; the API process may have added stocks.
        for stock in repo.load_stocks(session=session):
            service.catalog.register(stock)
        service.clock.restore(repo.get_last_advance_date(session=session))

        result = service.refresh(now=now)

        repo.save_stocks(session=session, stocks=service.catalog.snapshot())
        repo.set_last_advance_date(session=session, day=service.clock.last_advance_date)
        session.commit()
        logger.info(
            "Price refresh source=%s changed=%s last_advance_date=%s",
            result.source,
            result.prices_changed,
            result.last_advance_date,
        )
        return result.to_dict()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
