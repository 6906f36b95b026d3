from classstock.api.database.database import Base
from sqlalchemy import Column, String, TIMESTAMP, text


class AppSetting(Base):
    # Small key/value records for process-wide state such as the price clock date.
    __tablename__ = "app_settings"

    key = Column(String, primary_key=True, nullable=False)
    value = Column(String, nullable=True)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
