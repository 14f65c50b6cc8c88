"""
Cost-rate lookup and the per-project frozen rate snapshot.

A project's cost rates are captured when the project is created and carried
forward on every edit. Only resource types that are new to the project are
looked up against the current admin-configured rates.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from margin_analysis.core.exceptions import UnknownResourceType
from margin_analysis.models.project import ProjectResource
from margin_analysis.models.rates import CostRate, CostRateHistory

RESOURCE_TYPES = [
    "Project Director",
    "Project Manager",
    "PMO Assistant",
    "Implementation Consultant",
    "Solution Architect",
    "System Engineer",
    "Platform Technology Consultant",
    "Integration Consultant",
    "Non-APAC Global resources",
    "APAC Global Test Team",
    "APAC Global PS Roles",
    "Domestic Non-APAC Roles",
]


def get_cost_rate(db: Session, resource_type: str) -> float:
    """Current admin cost rate for a resource type; raises UnknownResourceType."""
    rate = db.query(CostRate).filter(CostRate.resource_type == resource_type).first()
    if not rate:
        raise UnknownResourceType(resource_type)
    return rate.cost_rate_usd


def frozen_rates_for_project(db: Session, project_id: int) -> Dict[str, float]:
    """Rate map captured on the project's existing resource rows."""
    rows = db.query(ProjectResource.resource_type, ProjectResource.cost_rate_usd).filter(
        ProjectResource.project_id == project_id
    ).all()
    return {resource_type: cost_rate for resource_type, cost_rate in rows}


def resolve_cost_rates(
    db: Session,
    resource_types: Iterable[str],
    frozen_rates: Optional[Dict[str, float]] = None,
) -> Dict[str, float]:
    """
    Build the rate map for a set of resource types.

    Types already present in `frozen_rates` keep their snapshot rate; the
    rest get the current admin rate. Raises UnknownResourceType before any
    write happens if a type is not in the catalog.
    """
    frozen_rates = frozen_rates or {}
    resolved = {}
    for resource_type in resource_types:
        if resource_type in resolved:
            continue
        if resource_type in frozen_rates:
            resolved[resource_type] = frozen_rates[resource_type]
        else:
            resolved[resource_type] = get_cost_rate(db, resource_type)
    return resolved


def update_cost_rate(
    db: Session,
    cost_rate: CostRate,
    new_rate: float,
    effective_date: Optional[date] = None,
    user_id: Optional[int] = None,
) -> CostRate:
    """
    Record the current rate in history, then apply the new one.

    Caller is responsible for committing the transaction.
    """
    db.add(CostRateHistory(
        resource_type=cost_rate.resource_type,
        cost_rate_usd=cost_rate.cost_rate_usd,
        effective_date=cost_rate.effective_date,
        created_by=user_id,
    ))
    cost_rate.cost_rate_usd = new_rate
    cost_rate.effective_date = effective_date or date.today()
    db.flush()
    return cost_rate


def get_rate_history(db: Session, resource_type: str, limit: int = 50) -> List[CostRateHistory]:
    return db.query(CostRateHistory).filter(
        CostRateHistory.resource_type == resource_type
    ).order_by(
        CostRateHistory.effective_date.desc(), CostRateHistory.created_at.desc()
    ).limit(limit).all()
