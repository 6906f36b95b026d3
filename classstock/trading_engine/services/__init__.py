from .actions import BONUS_STOCK_CODE, BONUS_STOCK_NAME, TradeKind
from .catalog import PriceCatalog, Stock
from .classroom import ClassroomService, MAX_ALLOWED_STOCKS
from .errors import FailureReason, PersistenceError, SeedMoneyLockedError, TradeFailure
from .execution import (
    TradeExecutor,
    TradeResult,
    Transaction,
    compute_commission,
    is_within_activity_window,
)
from .ledger import ClassConfig, CommissionTerms, Holding, PortfolioLedger, StudentAccount
from .portfolio import AccountReconciliationResult, PortfolioService
from .pricing import (
    KisApiError,
    KisPriceFeed,
    PriceFeed,
    PriceRefreshResult,
    PriceSimulationClock,
    PricingService,
    is_market_open,
    kis_feed_from_env,
)
from .repository import (
    LedgerRepository,
    SqlLedgerRepository,
    load_default_stocks,
    seed_default_stocks,
)
from .valuation import HoldingView, SortKey, ValuationView, rank, valuate, valuate_class

__all__ = [
    "BONUS_STOCK_CODE",
    "BONUS_STOCK_NAME",
    "TradeKind",
    "PriceCatalog",
    "Stock",
    "ClassroomService",
    "MAX_ALLOWED_STOCKS",
    "FailureReason",
    "PersistenceError",
    "SeedMoneyLockedError",
    "TradeFailure",
    "TradeExecutor",
    "TradeResult",
    "Transaction",
    "compute_commission",
    "is_within_activity_window",
    "ClassConfig",
    "CommissionTerms",
    "Holding",
    "PortfolioLedger",
    "StudentAccount",
    "AccountReconciliationResult",
    "PortfolioService",
    "KisApiError",
    "KisPriceFeed",
    "PriceFeed",
    "PriceRefreshResult",
    "PriceSimulationClock",
    "PricingService",
    "is_market_open",
    "kis_feed_from_env",
    "LedgerRepository",
    "SqlLedgerRepository",
    "load_default_stocks",
    "seed_default_stocks",
    "HoldingView",
    "SortKey",
    "ValuationView",
    "rank",
    "valuate",
    "valuate_class",
]
