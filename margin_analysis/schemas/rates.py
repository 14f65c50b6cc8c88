from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime


# ---- Admin cost rates ----
class CostRateResponse(BaseModel):
    id: int
    resource_type: str
    cost_rate_usd: float
    effective_date: Optional[date] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CostRateUpdate(BaseModel):
    cost_rate_usd: float = Field(..., ge=0)
    effective_date: Optional[date] = None


class CostRateBulkItem(BaseModel):
    id: int
    cost_rate_usd: float = Field(..., ge=0)


class CostRateBulkUpdate(BaseModel):
    rates: List[CostRateBulkItem]


class CostRateHistoryResponse(BaseModel):
    id: int
    resource_type: str
    cost_rate_usd: float
    effective_date: Optional[date] = None
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ---- Exchange rates ----
class ExchangeRateResponse(BaseModel):
    id: int
    currency_code: str
    rate_to_usd: float
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExchangeRateUpdate(BaseModel):
    rate_to_usd: float = Field(..., gt=0)


class ExchangeRateRefreshResponse(BaseModel):
    message: str
    rates: List[ExchangeRateResponse]
