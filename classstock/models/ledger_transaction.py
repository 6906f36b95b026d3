from classstock.api.database.database import Base
from sqlalchemy import Column, Index, Integer, Numeric, String, TIMESTAMP


class LedgerTransaction(Base):
    # LedgerTransaction is the append-only audit trail of buys, sells and bonus grants.
    # seq preserves insertion order; rows are never updated.
    __tablename__ = "ledger_transactions"
    __table_args__ = (Index("ix_ledger_transaction_student_id", "student_id"),)

    seq = Column(Integer, primary_key=True, autoincrement=True, nullable=False)
    transaction_id = Column(String, nullable=False, unique=True)
    student_id = Column(String, nullable=False)
    kind = Column(String, nullable=False)  # "buy", "sell" or "bonus"
    stock_code = Column(String, nullable=False)
    stock_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    commission = Column(Numeric(14, 2), nullable=False, server_default="0")
    reason = Column(String, nullable=True)
    executed_at = Column(TIMESTAMP(timezone=True), nullable=False)
