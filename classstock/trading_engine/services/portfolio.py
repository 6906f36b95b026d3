from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from .actions import TradeKind
from .execution import Transaction
from .ledger import Holding, StudentAccount
from .repository import LedgerRepository, SqlLedgerRepository

logger = logging.getLogger("classstock.trading_engine.portfolio")


@dataclass(frozen=True)
class AccountReconciliationResult:
    student_id: str
    transactions_processed: int
    seed_money: Decimal
    stored_cash: Decimal
    reconciled_cash: Decimal
    cash_drift: Decimal
    holding_drift_count: int
    repaired: bool

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "transactions_processed": self.transactions_processed,
            "seed_money": str(self.seed_money),
            "stored_cash": str(self.stored_cash),
            "reconciled_cash": str(self.reconciled_cash),
            "cash_drift": str(self.cash_drift),
            "holding_drift_count": self.holding_drift_count,
            "repaired": self.repaired,
        }


class PortfolioService:
    """Rebuilds account state from the transaction trail and reports drift."""

    def __init__(self, repo: LedgerRepository | None = None) -> None:
        self._repo = repo or SqlLedgerRepository()

    def reconcile_account(
        self,
        session: Session,
        student_id: str,
        repair: bool = False,
    ) -> AccountReconciliationResult:
        account = self._repo.get_account(session=session, student_id=student_id, for_update=repair)
        if account is None:
            raise LookupError(f"Student account not found for student_id={student_id}")
        class_config = self._repo.get_class(session=session, class_id=account.class_id)
        if class_config is None:
            raise LookupError(f"Class not found for class_id={account.class_id}")

        transactions = self._repo.list_transactions(session=session, student_id=student_id)
        cash, holdings = self.replay(class_config.seed_money, transactions)
        drift_count = self._count_holding_drift(stored=account.holdings, reconciled=holdings)
        cash_drift = account.cash - cash

        repaired = False
        if repair and (cash_drift != 0 or drift_count):
            logger.warning(
                "Repairing student=%s cash_drift=%s holding_drift=%s",
                student_id,
                cash_drift,
                drift_count,
            )
            self._repo.save_account(
                session=session,
                account=StudentAccount(
                    student_id=account.student_id,
                    class_id=account.class_id,
                    nickname=account.nickname,
                    cash=cash,
                    holdings=holdings,
                ),
            )
            repaired = True

        return AccountReconciliationResult(
            student_id=student_id,
            transactions_processed=len(transactions),
            seed_money=class_config.seed_money,
            stored_cash=account.cash,
            reconciled_cash=cash,
            cash_drift=cash_drift,
            holding_drift_count=drift_count,
            repaired=repaired,
        )

    def reconcile_all(
        self,
        session: Session,
        student_ids: list[str] | None = None,
        limit: int | None = None,
        repair: bool = False,
    ) -> list[AccountReconciliationResult]:
        if student_ids is None:
            student_ids = self._repo.list_student_ids(session=session, limit=limit)
        return [
            self.reconcile_account(session=session, student_id=student_id, repair=repair)
            for student_id in student_ids
        ]

    def replay(
        self,
        seed_money: Decimal,
        transactions: list[Transaction],
    ) -> tuple[Decimal, dict[str, Holding]]:
        cash = seed_money
        holdings: dict[str, Holding] = {}

        for transaction in transactions:
            self._validate_transaction(transaction)

            if transaction.kind is TradeKind.BONUS:
                cash += transaction.unit_price
                continue

            current = holdings.get(transaction.stock_code)
            held = current.quantity if current is not None else 0

            if transaction.kind is TradeKind.BUY:
                cash -= transaction.gross_amount + transaction.commission
                next_quantity = held + transaction.quantity
                gross_cost = transaction.gross_amount
                if current is not None:
                    gross_cost += current.average_cost * current.quantity
                holdings[transaction.stock_code] = Holding(
                    stock_code=transaction.stock_code,
                    quantity=next_quantity,
                    average_cost=gross_cost / next_quantity,
                )
                continue

            if current is None or transaction.quantity > held:
                raise ValueError(
                    f"transaction_id={transaction.transaction_id} sells {transaction.quantity} "
                    f"but holds only {held} of {transaction.stock_code}"
                )

            cash += transaction.gross_amount - transaction.commission
            remaining = held - transaction.quantity
            if remaining == 0:
                holdings.pop(transaction.stock_code, None)
                continue

            holdings[transaction.stock_code] = Holding(
                stock_code=transaction.stock_code,
                quantity=remaining,
                average_cost=current.average_cost,
            )

        return cash, holdings

    def _validate_transaction(self, transaction: Transaction) -> None:
        if transaction.quantity <= 0:
            raise ValueError(
                f"transaction_id={transaction.transaction_id} has non-positive quantity"
            )
        if transaction.unit_price <= 0:
            raise ValueError(
                f"transaction_id={transaction.transaction_id} has non-positive price"
            )
        if transaction.commission < 0:
            raise ValueError(
                f"transaction_id={transaction.transaction_id} has negative commission"
            )

    def _count_holding_drift(
        self,
        stored: dict[str, Holding],
        reconciled: dict[str, Holding],
    ) -> int:
        drift = 0
        for code in set(stored) | set(reconciled):
            stored_holding = stored.get(code)
            reconciled_holding = reconciled.get(code)
            if stored_holding is None or reconciled_holding is None:
                drift += 1
                continue
            if stored_holding.quantity != reconciled_holding.quantity:
                drift += 1
                continue
            # Stored costs are rounded by the column scale.
            if abs(stored_holding.average_cost - reconciled_holding.average_cost) > Decimal("0.0001"):
                drift += 1
        return drift
