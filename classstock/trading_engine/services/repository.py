from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Protocol
import json

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from classstock.models.app_setting import AppSetting
from classstock.models.classroom import Classroom
from classstock.models.ledger_transaction import LedgerTransaction
from classstock.models.stock import Stock as StockModel
from classstock.models.student_account import StudentAccount as StudentAccountModel
from classstock.models.student_holding import StudentHolding
from classstock.utils.helper import utc_now

from .actions import TradeKind
from .catalog import Stock
from .execution import Transaction
from .ledger import ClassConfig, CommissionTerms, Holding, StudentAccount

DEFAULT_STOCKS_PATH = Path(__file__).resolve().parents[2] / "stocklist" / "default_stocks.json"
LAST_ADVANCE_DATE_KEY = "price_clock.last_advance_date"


class LedgerRepository(Protocol):
    """Record store boundary. Callers own commit/rollback on the session."""

    def get_class(self, session: Session, class_id: str) -> ClassConfig | None:
        raise NotImplementedError

    def save_class(self, session: Session, class_config: ClassConfig) -> None:
        raise NotImplementedError

    def delete_class(self, session: Session, class_id: str) -> None:
        raise NotImplementedError

    def get_account(
        self,
        session: Session,
        student_id: str,
        for_update: bool = False,
    ) -> StudentAccount | None:
        raise NotImplementedError

    def list_accounts(self, session: Session, class_id: str) -> list[StudentAccount]:
        raise NotImplementedError

    def count_accounts(self, session: Session, class_id: str) -> int:
        raise NotImplementedError

    def list_student_ids(self, session: Session, limit: int | None = None) -> list[str]:
        raise NotImplementedError

    def save_account(self, session: Session, account: StudentAccount) -> None:
        raise NotImplementedError

    def delete_account(self, session: Session, student_id: str) -> None:
        raise NotImplementedError

    def append_transactions(self, session: Session, transactions: list[Transaction]) -> None:
        raise NotImplementedError

    def list_transactions(self, session: Session, student_id: str) -> list[Transaction]:
        raise NotImplementedError

    def delete_transactions(self, session: Session, student_id: str) -> int:
        raise NotImplementedError

    def load_stocks(self, session: Session) -> list[Stock]:
        raise NotImplementedError

    def save_stocks(self, session: Session, stocks: list[Stock]) -> None:
        raise NotImplementedError

    def get_last_advance_date(self, session: Session) -> date | None:
        raise NotImplementedError

    def set_last_advance_date(self, session: Session, day: date | None) -> None:
        raise NotImplementedError


class SqlLedgerRepository:
    """SQLAlchemy repository for classes, accounts, the transaction trail and prices."""

    def get_class(self, session: Session, class_id: str) -> ClassConfig | None:
        row = session.get(Classroom, class_id)
        if row is None:
            return None
        return _to_class_config(row)

    def save_class(self, session: Session, class_config: ClassConfig) -> None:
        row = session.get(Classroom, class_config.class_id)
        if row is None:
            row = Classroom(class_id=class_config.class_id)
            session.add(row)
        row.name = class_config.name
        row.activity_start = class_config.activity_start
        row.activity_end = class_config.activity_end
        row.seed_money = class_config.seed_money
        row.allowed_stock_codes = sorted(class_config.allowed_stock_codes)
        row.commission_enabled = class_config.commission.enabled
        row.commission_rate = class_config.commission.rate_percent

    def delete_class(self, session: Session, class_id: str) -> None:
        session.execute(delete(Classroom).where(Classroom.class_id == class_id))

    def get_account(
        self,
        session: Session,
        student_id: str,
        for_update: bool = False,
    ) -> StudentAccount | None:
        stmt = (
            select(StudentAccountModel)
            .options(selectinload(StudentAccountModel.holdings))
            .where(StudentAccountModel.student_id == student_id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = session.execute(stmt).scalars().first()
        if row is None:
            return None
        return _to_account(row)

    def list_accounts(self, session: Session, class_id: str) -> list[StudentAccount]:
        stmt = (
            select(StudentAccountModel)
            .options(selectinload(StudentAccountModel.holdings))
            .where(StudentAccountModel.class_id == class_id)
            .order_by(StudentAccountModel.enroll_seq, StudentAccountModel.student_id)
        )
        return [_to_account(row) for row in session.execute(stmt).scalars().all()]

    def count_accounts(self, session: Session, class_id: str) -> int:
        stmt = select(func.count()).select_from(StudentAccountModel).where(
            StudentAccountModel.class_id == class_id
        )
        return int(session.execute(stmt).scalar_one())

    def list_student_ids(self, session: Session, limit: int | None = None) -> list[str]:
        stmt = select(StudentAccountModel.student_id).order_by(StudentAccountModel.student_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [str(student_id) for student_id in session.execute(stmt).scalars().all()]

    def save_account(self, session: Session, account: StudentAccount) -> None:
        row = session.get(StudentAccountModel, account.student_id)
        if row is None:
            last_seq = session.execute(
                select(func.coalesce(func.max(StudentAccountModel.enroll_seq), 0))
            ).scalar_one()
            row = StudentAccountModel(
                student_id=account.student_id,
                class_id=account.class_id,
                nickname=account.nickname,
                cash=account.cash,
                enroll_seq=int(last_seq) + 1,
                created_at=utc_now(),
            )
            session.add(row)
            # Sessions run without autoflush; the next enrollment must see this seq.
            session.flush()
        row.nickname = account.nickname
        row.cash = account.cash

        existing_by_code = {holding.stock_code: holding for holding in row.holdings}
        for code, holding in account.holdings.items():
            holding_row = existing_by_code.pop(code, None)
            if holding_row is None:
                row.holdings.append(
                    StudentHolding(
                        stock_code=code,
                        quantity=holding.quantity,
                        average_cost=holding.average_cost,
                    )
                )
                continue
            holding_row.quantity = holding.quantity
            holding_row.average_cost = holding.average_cost

        # Sold-out positions are removed, never stored at zero.
        for holding_row in existing_by_code.values():
            row.holdings.remove(holding_row)

    def delete_account(self, session: Session, student_id: str) -> None:
        session.execute(delete(StudentHolding).where(StudentHolding.student_id == student_id))
        session.execute(
            delete(StudentAccountModel).where(StudentAccountModel.student_id == student_id)
        )

    def append_transactions(self, session: Session, transactions: list[Transaction]) -> None:
        for transaction in transactions:
            session.add(
                LedgerTransaction(
                    transaction_id=transaction.transaction_id,
                    student_id=transaction.student_id,
                    kind=transaction.kind.value,
                    stock_code=transaction.stock_code,
                    stock_name=transaction.stock_name,
                    quantity=transaction.quantity,
                    unit_price=transaction.unit_price,
                    commission=transaction.commission,
                    reason=transaction.reason,
                    executed_at=transaction.executed_at,
                )
            )

    def list_transactions(self, session: Session, student_id: str) -> list[Transaction]:
        stmt = (
            select(LedgerTransaction)
            .where(LedgerTransaction.student_id == student_id)
            .order_by(LedgerTransaction.seq)
        )
        return [_to_transaction(row) for row in session.execute(stmt).scalars().all()]

    def delete_transactions(self, session: Session, student_id: str) -> int:
        result = session.execute(
            delete(LedgerTransaction).where(LedgerTransaction.student_id == student_id)
        )
        return result.rowcount or 0

    def load_stocks(self, session: Session) -> list[Stock]:
        rows = session.execute(select(StockModel).order_by(StockModel.code)).scalars().all()
        return [
            Stock(code=row.code, name=row.name, price=Decimal(str(row.price)))
            for row in rows
        ]

    def save_stocks(self, session: Session, stocks: list[Stock]) -> None:
        for stock in stocks:
            row = session.get(StockModel, stock.code)
            if row is None:
                session.add(StockModel(code=stock.code, name=stock.name, price=stock.price))
                continue
            row.name = stock.name
            row.price = stock.price

    def get_last_advance_date(self, session: Session) -> date | None:
        row = session.get(AppSetting, LAST_ADVANCE_DATE_KEY)
        if row is None or not row.value:
            return None
        return date.fromisoformat(row.value)

    def set_last_advance_date(self, session: Session, day: date | None) -> None:
        value = day.isoformat() if day is not None else None
        row = session.get(AppSetting, LAST_ADVANCE_DATE_KEY)
        if row is None:
            session.add(AppSetting(key=LAST_ADVANCE_DATE_KEY, value=value))
            return
        row.value = value


def load_default_stocks(path: Path = DEFAULT_STOCKS_PATH) -> list[Stock]:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    return [
        Stock(code=str(item["code"]), name=item["name"], price=Decimal(str(item["price"])))
        for item in raw
    ]


def _to_class_config(row: Classroom) -> ClassConfig:
    return ClassConfig(
        class_id=row.class_id,
        name=row.name,
        activity_start=row.activity_start,
        activity_end=row.activity_end,
        seed_money=Decimal(str(row.seed_money)),
        allowed_stock_codes=frozenset(row.allowed_stock_codes or []),
        commission=CommissionTerms(
            enabled=bool(row.commission_enabled),
            rate_percent=Decimal(str(row.commission_rate or 0)),
        ),
    )


def _to_account(row: StudentAccountModel) -> StudentAccount:
    holdings: dict[str, Holding] = {}
    for holding_row in row.holdings:
        if holding_row.quantity <= 0:
            continue
        holdings[holding_row.stock_code] = Holding(
            stock_code=holding_row.stock_code,
            quantity=int(holding_row.quantity),
            average_cost=Decimal(str(holding_row.average_cost)),
        )
    return StudentAccount(
        student_id=row.student_id,
        class_id=row.class_id,
        nickname=row.nickname,
        cash=Decimal(str(row.cash)),
        holdings=holdings,
    )


def _to_transaction(row: LedgerTransaction) -> Transaction:
    return Transaction(
        transaction_id=row.transaction_id,
        student_id=row.student_id,
        kind=TradeKind(str(row.kind).strip().lower()),
        stock_code=row.stock_code,
        stock_name=row.stock_name,
        quantity=int(row.quantity),
        unit_price=Decimal(str(row.unit_price)),
        commission=Decimal(str(row.commission or 0)),
        executed_at=row.executed_at,
        reason=row.reason,
    )


def seed_default_stocks(
    session: Session,
    repo: LedgerRepository | None = None,
    path: Path = DEFAULT_STOCKS_PATH,
) -> int:
    """Populate an empty stock table from the bundled list. Caller commits."""
    repo = repo or SqlLedgerRepository()
    if repo.load_stocks(session=session):
        return 0
    stocks = load_default_stocks(path)
    repo.save_stocks(session=session, stocks=stocks)
    return len(stocks)
