from classstock.api.database.database import Base
from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)


class StudentHolding(Base):
    __tablename__ = "student_holdings"
    __table_args__ = (
        UniqueConstraint("student_id", "stock_code", name="uq_student_holding_stock"),
        Index("ix_student_holding_student_id", "student_id"),
    )

    holding_id = Column(Integer, primary_key=True, nullable=False)
    student_id = Column(
        String,
        ForeignKey("student_accounts.student_id", ondelete="CASCADE"),
        nullable=False,
    )
    stock_code = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    average_cost = Column(Numeric(20, 6), nullable=False)
