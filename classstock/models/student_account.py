from classstock.api.database.database import Base
from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    TIMESTAMP,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship


class StudentAccount(Base):
    # StudentAccount is the persisted cash balance of one enrolled student.
    __tablename__ = "student_accounts"
    __table_args__ = (
        UniqueConstraint("class_id", "nickname", name="uq_student_account_nickname"),
        Index("ix_student_account_class_id", "class_id"),
    )

    student_id = Column(String, primary_key=True, nullable=False)
    class_id = Column(
        String,
        ForeignKey("classrooms.class_id", ondelete="CASCADE"),
        nullable=False,
    )
    nickname = Column(String, nullable=False)
    cash = Column(Numeric(16, 2), nullable=False)
    # enroll_seq keeps enrollment order when created_at values collide.
    enroll_seq = Column(Integer, nullable=False, server_default="0")
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    holdings = relationship(
        "StudentHolding",
        cascade="all, delete-orphan",
        order_by="StudentHolding.holding_id",
    )
