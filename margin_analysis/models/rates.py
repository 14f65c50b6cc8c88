from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey
from datetime import datetime, date
from margin_analysis.database import Base


# ---- Admin-configured cost rate per predefined resource type ----
class CostRate(Base):
    __tablename__ = "admin_cost_rates"

    id = Column(Integer, primary_key=True, index=True)
    resource_type = Column(String, unique=True, nullable=False)
    cost_rate_usd = Column(Float, nullable=False, default=0.0)
    effective_date = Column(Date, default=date.today)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# ---- Flat log of superseded cost rates ----
class CostRateHistory(Base):
    __tablename__ = "cost_rate_history"

    id = Column(Integer, primary_key=True, index=True)
    resource_type = Column(String, nullable=False, index=True)
    cost_rate_usd = Column(Float, nullable=False)
    effective_date = Column(Date, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# ---- Currency -> USD conversion table (USD received per 1 unit) ----
class ExchangeRate(Base):
    __tablename__ = "exchange_rates"

    id = Column(Integer, primary_key=True, index=True)
    currency_code = Column(String, unique=True, nullable=False)
    rate_to_usd = Column(Float, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
