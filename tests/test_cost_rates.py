import pytest

from margin_analysis.core.exceptions import UnknownResourceType
from margin_analysis.models import CostRate, CostRateHistory, ExchangeRate
from margin_analysis.seed.seed_margin import seed_margin_reference_data
from margin_analysis.utils.cost_rates import (
    RESOURCE_TYPES,
    get_cost_rate,
    get_rate_history,
    resolve_cost_rates,
    update_cost_rate,
)


def test_seed_creates_catalog_and_rates(db):
    assert db.query(CostRate).count() == len(RESOURCE_TYPES) == 12
    assert db.query(ExchangeRate).filter_by(currency_code="USD").one().rate_to_usd == 1.0


def test_seed_is_idempotent(db):
    seed_margin_reference_data(db)
    assert db.query(CostRate).count() == 12
    assert db.query(ExchangeRate).count() == 6
    # existing rates are left alone
    assert get_cost_rate(db, "Project Manager") == 100.0


def test_get_cost_rate_unknown_type(db):
    with pytest.raises(UnknownResourceType) as exc:
        get_cost_rate(db, "Astronaut")
    assert exc.value.resource_type == "Astronaut"
    assert "Astronaut" in str(exc.value)


def test_resolve_uses_current_rates(db):
    rates = resolve_cost_rates(db, ["Project Manager", "Solution Architect", "Project Manager"])
    assert rates == {"Project Manager": 100.0, "Solution Architect": 150.0}


def test_resolve_keeps_frozen_rates(db):
    rates = resolve_cost_rates(
        db,
        ["Project Manager", "Solution Architect"],
        frozen_rates={"Project Manager": 90.0},
    )
    assert rates == {"Project Manager": 90.0, "Solution Architect": 150.0}


def test_resolve_keeps_frozen_zero_rate(db):
    rates = resolve_cost_rates(db, ["Project Manager"], frozen_rates={"Project Manager": 0.0})
    assert rates == {"Project Manager": 0.0}


def test_resolve_fails_before_returning_partial_map(db):
    with pytest.raises(UnknownResourceType):
        resolve_cost_rates(db, ["Project Manager", "Astronaut"])


def test_update_cost_rate_records_history(db):
    rate = db.query(CostRate).filter_by(resource_type="Project Manager").one()

    update_cost_rate(db, rate, 120.0, user_id=None)
    update_cost_rate(db, rate, 130.0, user_id=None)
    db.commit()

    assert get_cost_rate(db, "Project Manager") == 130.0
    history = get_rate_history(db, "Project Manager")
    assert sorted(h.cost_rate_usd for h in history) == [100.0, 120.0]
    assert db.query(CostRateHistory).filter_by(resource_type="Solution Architect").count() == 0
