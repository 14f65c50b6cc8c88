"""
Admin router for cost rates and exchange rates.

Changing a cost rate here never touches existing projects: each project keeps
the rates captured when it was created.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List
from margin_analysis.database import get_db
from margin_analysis.models.rates import CostRate, ExchangeRate
from margin_analysis.schemas.rates import (
    CostRateResponse,
    CostRateUpdate,
    CostRateBulkUpdate,
    CostRateHistoryResponse,
    ExchangeRateResponse,
    ExchangeRateUpdate,
    ExchangeRateRefreshResponse,
)
from margin_analysis.core.exceptions import RateUnavailable
from margin_analysis.core.security import get_current_admin
from margin_analysis.utils.audit import log_audit
from margin_analysis.utils.cost_rates import update_cost_rate, get_rate_history
from margin_analysis.utils.currency import CurrencyService, get_currency_service, BASE_CURRENCY

router = APIRouter(tags=["Admin"], dependencies=[Depends(get_current_admin)])


def _client_ip(request: Request):
    return request.client.host if request.client else None


# -------------------------
# COST RATES
# -------------------------

@router.get("/rates", response_model=List[CostRateResponse])
def list_cost_rates(db: Session = Depends(get_db)):
    return db.query(CostRate).order_by(CostRate.resource_type).all()


@router.get("/rates/{rate_id}", response_model=CostRateResponse)
def get_cost_rate(rate_id: int, db: Session = Depends(get_db)):
    rate = db.query(CostRate).filter(CostRate.id == rate_id).first()
    if not rate:
        raise HTTPException(status_code=404, detail="Cost rate not found")
    return rate


@router.put("/rates/{rate_id}", response_model=CostRateResponse)
def put_cost_rate(
    rate_id: int,
    payload: CostRateUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_admin)
):
    rate = db.query(CostRate).filter(CostRate.id == rate_id).first()
    if not rate:
        raise HTTPException(status_code=404, detail="Cost rate not found")

    old_rate = rate.cost_rate_usd
    update_cost_rate(db, rate, payload.cost_rate_usd, payload.effective_date, current_user["id"])

    log_audit(
        db, current_user["id"], "UPDATE", "admin_cost_rates", rate.id,
        old_values={"cost_rate_usd": old_rate},
        new_values={"cost_rate_usd": payload.cost_rate_usd},
        ip_address=_client_ip(request),
    )
    db.commit()
    db.refresh(rate)
    return rate


@router.patch("/rates/bulk")
def bulk_update_cost_rates(
    payload: CostRateBulkUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_admin)
):
    """Update several rates at once; unknown ids are skipped."""
    updated = []
    for item in payload.rates:
        rate = db.query(CostRate).filter(CostRate.id == item.id).first()
        if not rate:
            continue
        update_cost_rate(db, rate, item.cost_rate_usd, user_id=current_user["id"])
        updated.append(rate.id)

    log_audit(
        db, current_user["id"], "BULK_UPDATE", "admin_cost_rates",
        new_values=[item.model_dump() for item in payload.rates],
        ip_address=_client_ip(request),
    )
    db.commit()
    return {"message": "Cost rates updated successfully", "updated": len(updated)}


@router.get("/rates/{rate_id}/history", response_model=List[CostRateHistoryResponse])
def cost_rate_history(rate_id: int, db: Session = Depends(get_db)):
    rate = db.query(CostRate).filter(CostRate.id == rate_id).first()
    if not rate:
        raise HTTPException(status_code=404, detail="Cost rate not found")
    return get_rate_history(db, rate.resource_type)


# -------------------------
# EXCHANGE RATES
# -------------------------

@router.get("/exchange-rates", response_model=List[ExchangeRateResponse])
def list_exchange_rates(db: Session = Depends(get_db)):
    return db.query(ExchangeRate).order_by(ExchangeRate.currency_code).all()


@router.put("/exchange-rates/{rate_id}", response_model=ExchangeRateResponse)
def put_exchange_rate(
    rate_id: int,
    payload: ExchangeRateUpdate,
    request: Request,
    db: Session = Depends(get_db),
    currency_service: CurrencyService = Depends(get_currency_service),
    current_user: dict = Depends(get_current_admin)
):
    rate = db.query(ExchangeRate).filter(ExchangeRate.id == rate_id).first()
    if not rate:
        raise HTTPException(status_code=404, detail="Exchange rate not found")

    if rate.currency_code == BASE_CURRENCY and payload.rate_to_usd != 1.0:
        raise HTTPException(status_code=400, detail="USD rate is fixed at 1.0")

    old_rate = rate.rate_to_usd
    rate.rate_to_usd = payload.rate_to_usd

    log_audit(
        db, current_user["id"], "UPDATE", "exchange_rates", rate.id,
        old_values={"rate_to_usd": old_rate},
        new_values={"rate_to_usd": payload.rate_to_usd},
        ip_address=_client_ip(request),
    )
    db.commit()
    db.refresh(rate)

    # next conversion must read the new rate from the store
    currency_service.invalidate(rate.currency_code)
    return rate


@router.post("/exchange-rates/refresh", response_model=ExchangeRateRefreshResponse)
def refresh_exchange_rates(
    request: Request,
    db: Session = Depends(get_db),
    currency_service: CurrencyService = Depends(get_currency_service),
    current_user: dict = Depends(get_current_admin)
):
    """Fetch the latest exchange rates from the external API."""
    try:
        rates = currency_service.refresh_rates()
    except RateUnavailable:
        raise HTTPException(status_code=502, detail="Failed to fetch exchange rates from API")

    log_audit(
        db, current_user["id"], "REFRESH", "exchange_rates",
        new_values=rates,
        ip_address=_client_ip(request),
    )
    db.commit()

    return {
        "message": "Exchange rates updated successfully",
        "rates": db.query(ExchangeRate).order_by(ExchangeRate.currency_code).all(),
    }
