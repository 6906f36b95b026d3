from fastapi import Depends
from sqlalchemy.orm import Session

from classstock.api.database.database import get_db
from classstock.trading_engine.services.catalog import PriceCatalog
from classstock.trading_engine.services.classroom import ClassroomService
from classstock.trading_engine.services.repository import SqlLedgerRepository
from classstock.utils.locks import AccountLockRegistry

# One catalog and one lock registry per API process.
catalog = PriceCatalog()
account_locks = AccountLockRegistry()
ledger_repo = SqlLedgerRepository()


def get_catalog(db: Session = Depends(get_db)) -> PriceCatalog:
    """Return the process catalog with prices the worker last stored."""
    for stock in ledger_repo.load_stocks(session=db):
        catalog.register(stock)
    return catalog


def get_classroom_service(
    price_catalog: PriceCatalog = Depends(get_catalog),
) -> ClassroomService:
    return ClassroomService(
        catalog=price_catalog,
        repo=ledger_repo,
        locks=account_locks,
    )
