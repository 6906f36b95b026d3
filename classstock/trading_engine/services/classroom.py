from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, TypeVar
from uuid import uuid4
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from classstock.utils.locks import AccountLockRegistry

from .actions import TradeKind
from .catalog import PriceCatalog
from .errors import FailureReason, PersistenceError, SeedMoneyLockedError, TradeFailure
from .execution import TradeExecutor, TradeResult, Transaction
from .ledger import ClassConfig, CommissionTerms, StudentAccount
from .repository import LedgerRepository, SqlLedgerRepository
from .valuation import SortKey, ValuationView, rank, valuate, valuate_class

logger = logging.getLogger("classstock.trading_engine.classroom")

MAX_ALLOWED_STOCKS = 10

T = TypeVar("T")


class ClassroomService:
    """Teacher and student operations over one record store.

    Every mutating method commits the session it is given. Store failures are
    rolled back and surfaced as PersistenceError.
    """

    def __init__(
        self,
        catalog: PriceCatalog,
        repo: LedgerRepository | None = None,
        executor: TradeExecutor | None = None,
        locks: AccountLockRegistry | None = None,
    ) -> None:
        self._catalog = catalog
        self._repo = repo or SqlLedgerRepository()
        self._executor = executor or TradeExecutor(catalog)
        self._locks = locks or AccountLockRegistry()

    # Classes ---------------------------------------------------------------

    def create_class(
        self,
        session: Session,
        name: str,
        activity_start: date,
        activity_end: date,
        seed_money: Decimal,
        allowed_stock_codes: Iterable[str] = (),
        commission: CommissionTerms | None = None,
    ) -> ClassConfig:
        name = name.strip()
        if not name:
            raise ValueError("class name must not be blank")
        if activity_end < activity_start:
            raise ValueError("activity_end must not be before activity_start")
        if seed_money < 0:
            raise ValueError("seed_money must not be negative")

        class_config = ClassConfig(
            class_id=f"C{uuid4().hex[:12]}",
            name=name,
            activity_start=activity_start,
            activity_end=activity_end,
            seed_money=Decimal(seed_money),
            allowed_stock_codes=self._validate_codes(allowed_stock_codes),
            commission=self._validate_commission(commission or CommissionTerms()),
        )

        def write() -> ClassConfig:
            self._repo.save_class(session=session, class_config=class_config)
            return class_config

        created = self._in_transaction(session, write)
        logger.info("Created class=%s name=%s", created.class_id, created.name)
        return created

    def get_class(self, session: Session, class_id: str) -> ClassConfig:
        class_config = self._read(session, lambda: self._repo.get_class(session=session, class_id=class_id))
        if class_config is None:
            raise LookupError(f"Class not found for class_id={class_id}")
        return class_config

    def update_allowed_stocks(
        self,
        session: Session,
        class_id: str,
        stock_codes: Iterable[str],
    ) -> ClassConfig:
        class_config = self.get_class(session, class_id)
        updated = ClassConfig(
            class_id=class_config.class_id,
            name=class_config.name,
            activity_start=class_config.activity_start,
            activity_end=class_config.activity_end,
            seed_money=class_config.seed_money,
            allowed_stock_codes=self._validate_codes(stock_codes),
            commission=class_config.commission,
        )
        return self._save_class(session, updated)

    def update_commission(
        self,
        session: Session,
        class_id: str,
        enabled: bool,
        rate_percent: Decimal,
    ) -> ClassConfig:
        class_config = self.get_class(session, class_id)
        terms = self._validate_commission(
            CommissionTerms(enabled=enabled, rate_percent=Decimal(rate_percent))
        )
        updated = ClassConfig(
            class_id=class_config.class_id,
            name=class_config.name,
            activity_start=class_config.activity_start,
            activity_end=class_config.activity_end,
            seed_money=class_config.seed_money,
            allowed_stock_codes=class_config.allowed_stock_codes,
            commission=terms,
        )
        return self._save_class(session, updated)

    def update_seed_money(
        self,
        session: Session,
        class_id: str,
        seed_money: Decimal,
    ) -> ClassConfig:
        class_config = self.get_class(session, class_id)
        if seed_money < 0:
            raise ValueError("seed_money must not be negative")
        enrolled = self._read(session, lambda: self._repo.count_accounts(session=session, class_id=class_id))
        if enrolled:
            # Profit baselines of enrolled students depend on the current value.
            raise SeedMoneyLockedError(
                f"seed_money of class {class_id} is fixed once students are enrolled"
            )
        updated = ClassConfig(
            class_id=class_config.class_id,
            name=class_config.name,
            activity_start=class_config.activity_start,
            activity_end=class_config.activity_end,
            seed_money=Decimal(seed_money),
            allowed_stock_codes=class_config.allowed_stock_codes,
            commission=class_config.commission,
        )
        return self._save_class(session, updated)

    def delete_class(self, session: Session, class_id: str) -> int:
        """Delete a class with its students and their history. Returns students removed."""
        self.get_class(session, class_id)
        accounts = self._read(session, lambda: self._repo.list_accounts(session=session, class_id=class_id))
        student_ids = [account.student_id for account in accounts]

        def write() -> int:
            for student_id in student_ids:
                self._repo.delete_transactions(session=session, student_id=student_id)
                self._repo.delete_account(session=session, student_id=student_id)
            self._repo.delete_class(session=session, class_id=class_id)
            return len(student_ids)

        with self._locks.hold(*student_ids):
            removed = self._in_transaction(session, write)
        logger.info("Deleted class=%s with %s students", class_id, removed)
        return removed

    # Students --------------------------------------------------------------

    def enroll_students(
        self,
        session: Session,
        class_id: str,
        nicknames: Iterable[str],
    ) -> tuple[list[StudentAccount], int]:
        """Create accounts funded with the class seed money.

        Blank names are ignored. Names already in the class, or repeated in
        the batch, are skipped case-insensitively and counted as duplicates.
        """
        class_config = self.get_class(session, class_id)
        existing = self._read(session, lambda: self._repo.list_accounts(session=session, class_id=class_id))
        taken = {account.nickname.casefold() for account in existing}

        created: list[StudentAccount] = []
        duplicates = 0
        for raw in nicknames:
            nickname = raw.strip()
            if not nickname:
                continue
            key = nickname.casefold()
            if key in taken:
                duplicates += 1
                continue
            taken.add(key)
            created.append(
                StudentAccount(
                    student_id=f"S{uuid4().hex[:12]}",
                    class_id=class_id,
                    nickname=nickname,
                    cash=class_config.seed_money,
                )
            )

        def write() -> list[StudentAccount]:
            for account in created:
                self._repo.save_account(session=session, account=account)
            return created

        if created:
            self._in_transaction(session, write)
        logger.info(
            "Enrolled %s students in class=%s (%s duplicates skipped)",
            len(created),
            class_id,
            duplicates,
        )
        return created, duplicates

    def remove_student(self, session: Session, student_id: str) -> None:
        with self._locks.hold(student_id):
            account = self._read(session, lambda: self._repo.get_account(session=session, student_id=student_id))
            if account is None:
                raise LookupError(f"Student account not found for student_id={student_id}")

            def write() -> None:
                self._repo.delete_transactions(session=session, student_id=student_id)
                self._repo.delete_account(session=session, student_id=student_id)

            self._in_transaction(session, write)
        logger.info("Removed student=%s from class=%s", student_id, account.class_id)

    def list_students(self, session: Session, class_id: str) -> list[StudentAccount]:
        self.get_class(session, class_id)
        return self._read(session, lambda: self._repo.list_accounts(session=session, class_id=class_id))

    def student_count(self, session: Session, class_id: str) -> int:
        return self._read(session, lambda: self._repo.count_accounts(session=session, class_id=class_id))

    def get_account(self, session: Session, student_id: str) -> StudentAccount:
        account = self._read(session, lambda: self._repo.get_account(session=session, student_id=student_id))
        if account is None:
            raise LookupError(f"Student account not found for student_id={student_id}")
        return account

    # Trading ---------------------------------------------------------------

    def place_order(
        self,
        session: Session,
        student_id: str,
        stock_code: str,
        quantity: int,
        kind: TradeKind,
    ) -> TradeResult:
        if kind is TradeKind.BONUS:
            raise ValueError("bonus grants go through award_bonus()")

        with self._locks.hold(student_id):
            account = self._read(
                session,
                lambda: self._repo.get_account(session=session, student_id=student_id, for_update=True),
            )
            if account is None:
                return TradeFailure(
                    FailureReason.ACCOUNT_NOT_FOUND,
                    f"no account for student_id={student_id}",
                )
            class_config = self._read(
                session,
                lambda: self._repo.get_class(session=session, class_id=account.class_id),
            )
            if class_config is None:
                return TradeFailure(
                    FailureReason.ACCOUNT_NOT_FOUND,
                    f"class {account.class_id} of student_id={student_id} no longer exists",
                )

            result = self._executor.execute(
                account=account,
                class_config=class_config,
                stock_code=stock_code,
                quantity=quantity,
                kind=kind,
            )
            if isinstance(result, TradeFailure):
                return result

            def write() -> Transaction:
                self._repo.save_account(session=session, account=account)
                self._repo.append_transactions(session=session, transactions=[result])
                return result

            return self._in_transaction(session, write)

    def award_bonus(
        self,
        session: Session,
        student_ids: Iterable[str],
        amount: Decimal,
        reason: str,
        class_id: str | None = None,
    ) -> list[Transaction]:
        """Grant cash to each listed student. Unknown ids are skipped."""
        if amount <= 0:
            raise ValueError("bonus amount must be positive")
        reason = reason.strip()
        if not reason:
            raise ValueError("bonus reason must not be blank")

        requested = list(dict.fromkeys(student_ids))
        with self._locks.hold(*requested):
            accounts: list[StudentAccount] = []
            for student_id in requested:
                account = self._read(
                    session,
                    lambda: self._repo.get_account(session=session, student_id=student_id, for_update=True),
                )
                if account is None or (class_id is not None and account.class_id != class_id):
                    logger.info("Skipping bonus for unknown student=%s", student_id)
                    continue
                accounts.append(account)

            transactions = self._executor.grant_bonus(
                accounts=accounts,
                amount=Decimal(amount),
                reason=reason,
            )

            def write() -> list[Transaction]:
                for account in accounts:
                    self._repo.save_account(session=session, account=account)
                self._repo.append_transactions(session=session, transactions=transactions)
                return transactions

            if transactions:
                self._in_transaction(session, write)
        logger.info("Granted bonus %s to %s students: %s", amount, len(transactions), reason)
        return transactions

    # Reporting -------------------------------------------------------------

    def student_snapshot(self, session: Session, student_id: str) -> ValuationView:
        account = self.get_account(session, student_id)
        class_config = self.get_class(session, account.class_id)
        transactions = self.transaction_history(session, student_id)
        return valuate(account, class_config, self._catalog, transactions)

    def class_snapshot(self, session: Session, class_id: str) -> list[ValuationView]:
        class_config = self.get_class(session, class_id)
        accounts = self._read(session, lambda: self._repo.list_accounts(session=session, class_id=class_id))
        transactions_by_student = {
            account.student_id: self._read(
                session,
                lambda student_id=account.student_id: self._repo.list_transactions(
                    session=session, student_id=student_id
                ),
            )
            for account in accounts
        }
        return valuate_class(accounts, class_config, self._catalog, transactions_by_student)

    def class_ranking(
        self,
        session: Session,
        class_id: str,
        sort_key: SortKey = SortKey.TOTAL_ASSETS,
    ) -> list[ValuationView]:
        return rank(self.class_snapshot(session, class_id), sort_key)

    def transaction_history(self, session: Session, student_id: str) -> list[Transaction]:
        return self._read(
            session,
            lambda: self._repo.list_transactions(session=session, student_id=student_id),
        )

    # Internals -------------------------------------------------------------

    def _validate_codes(self, codes: Iterable[str]) -> frozenset[str]:
        selected = frozenset(code.strip() for code in codes if code.strip())
        if len(selected) > MAX_ALLOWED_STOCKS:
            raise ValueError(f"a class may allow at most {MAX_ALLOWED_STOCKS} stocks")
        unknown = sorted(code for code in selected if code not in self._catalog)
        if unknown:
            raise ValueError(f"unknown stock codes: {', '.join(unknown)}")
        return selected

    def _validate_commission(self, terms: CommissionTerms) -> CommissionTerms:
        if terms.rate_percent < 0 or terms.rate_percent > 100:
            raise ValueError("commission rate must be between 0 and 100 percent")
        return terms

    def _save_class(self, session: Session, class_config: ClassConfig) -> ClassConfig:
        def write() -> ClassConfig:
            self._repo.save_class(session=session, class_config=class_config)
            return class_config

        return self._in_transaction(session, write)

    def _read(self, session: Session, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Ledger read failed")
            raise PersistenceError(str(exc)) from exc

    def _in_transaction(self, session: Session, fn: Callable[[], T]) -> T:
        try:
            result = fn()
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Ledger write failed, rolled back")
            raise PersistenceError(str(exc)) from exc
        return result
