from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

# WAD amounts overflow 64-bit integer columns, so they are stored as decimal strings.


class TradeRecord(Base):
    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, index=True)
    option_type = Column(String, nullable=False)  # call, put
    side = Column(String, nullable=False)  # buy, sell
    strike = Column(String, nullable=False)
    size = Column(String, nullable=False)
    cost = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CostUpdateRecord(Base):
    __tablename__ = "cost_updates"

    id = Column(Integer, primary_key=True, index=True)
    old_cost = Column(String, nullable=False)
    new_cost = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RecenterRecord(Base):
    __tablename__ = "recenters"

    id = Column(Integer, primary_key=True, index=True)
    old_center = Column(String, nullable=False)
    new_center = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
