from sqlalchemy.orm import Session
from margin_analysis.database import SessionLocal
from margin_analysis.models.rates import CostRate, ExchangeRate
from margin_analysis.utils.cost_rates import RESOURCE_TYPES

# USD received per 1 unit of currency
DEFAULT_EXCHANGE_RATES = [
    ("USD", 1.00),
    ("AUD", 0.65),
    ("EUR", 1.08),
    ("GBP", 1.27),
    ("SGD", 0.74),
    ("NZD", 0.61),
]


def seed_margin_reference_data(db: Session = None):
    """Insert the resource-type catalog (rate 0) and default exchange rates if missing."""
    own_session = db is None
    if own_session:
        db = SessionLocal()

    try:
        # --- Predefined resource types ---
        for resource_type in RESOURCE_TYPES:
            if not db.query(CostRate).filter_by(resource_type=resource_type).first():
                db.add(CostRate(resource_type=resource_type, cost_rate_usd=0.0))

        # --- Exchange rates ---
        for currency_code, rate in DEFAULT_EXCHANGE_RATES:
            if not db.query(ExchangeRate).filter_by(currency_code=currency_code).first():
                db.add(ExchangeRate(currency_code=currency_code, rate_to_usd=rate))

        db.commit()
    finally:
        if own_session:
            db.close()

    return {"message": "Margin analysis reference data seeded successfully."}
