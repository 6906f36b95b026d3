from classstock.api.database.database import Base
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Numeric,
    String,
    TIMESTAMP,
    text,
)


class Classroom(Base):
    # Classroom holds the teacher-controlled configuration of one trading class.
    __tablename__ = "classrooms"

    class_id = Column(String, primary_key=True, nullable=False)
    name = Column(String, nullable=False)
    activity_start = Column(Date, nullable=False)
    activity_end = Column(Date, nullable=False)
    seed_money = Column(Numeric(14, 2), nullable=False)
    allowed_stock_codes = Column(JSON, nullable=False, default=list)
    commission_enabled = Column(Boolean, nullable=False, server_default="0")
    commission_rate = Column(Numeric(6, 3), nullable=False, server_default="0")
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
