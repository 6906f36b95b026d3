from classstock.api.database.database import Base
from sqlalchemy import Column, Numeric, String


class Stock(Base):
    # Stock is one entry of the tradable universe and its latest simulated or fed price.
    __tablename__ = "stocks"

    code = Column(String, primary_key=True, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Numeric(14, 2), nullable=False)
