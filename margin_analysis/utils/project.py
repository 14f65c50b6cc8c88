"""
Utility functions for saving projects and their computed metrics.

Every create and update follows the same steps:
1. Convert the local service value to USD
2. Resolve cost rates (frozen for resource types the project already has)
3. Compute the baseline and final metric snapshots and the hours check
4. Write the project row and replace its line items in one transaction

Any RateUnavailable / UnknownResourceType raised in steps 1-2 aborts the
save before anything is written.
"""
import logging
from datetime import datetime, time
from typing import Any, Dict, List, Optional

from sqlalchemy import func, case
from sqlalchemy.orm import Session, joinedload

from margin_analysis.models.project import Project, ProjectResource, ThirdPartyResource
from margin_analysis.schemas.project import ProjectCreate
from margin_analysis.utils import calculation
from margin_analysis.utils.cost_rates import frozen_rates_for_project, resolve_cost_rates
from margin_analysis.utils.currency import CurrencyService

logger = logging.getLogger(__name__)


def get_project_by_id(db: Session, project_id: int) -> Optional[Project]:
    """
    Get a project by its unique ID, with client and line items loaded.

    Returns:
        Project instance if found, None otherwise
    """
    return db.query(Project).options(
        joinedload(Project.client),
        joinedload(Project.resources),
        joinedload(Project.third_party_resources),
    ).filter(Project.id == project_id).first()


def _allocations(payload: ProjectCreate, rates: Dict[str, float]) -> List[Dict[str, Any]]:
    rows = []
    for r in payload.resources:
        rows.append({
            "resource_type": r.resource_type,
            "hours": r.final_hours,
            "baseline_hours": r.baseline_hours or 0.0,
            "final_hours": r.final_hours or 0.0,
            "cost_rate_usd": rates[r.resource_type],
        })
    return rows


def calculate_project(
    db: Session,
    payload: ProjectCreate,
    currency_service: CurrencyService,
    frozen_rates: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    """
    Resolve rates and currency, then run both metric snapshots.

    Read-only: nothing is added to the session.
    """
    service_value_usd = currency_service.convert_to_usd(payload.local_service_value, payload.currency_used)

    rates = resolve_cost_rates(db, [r.resource_type for r in payload.resources], frozen_rates)
    allocations = _allocations(payload, rates)
    third_party = [t.model_dump() for t in payload.third_party_resources]

    result = calculation.summarize(
        service_value_usd,
        allocations,
        third_party,
        payload.total_baseline_hours,
        payload.non_bill_hours,
        payload.baseline_hours,
    )

    validation = result["hours_validation"]
    if not validation.is_valid:
        logger.warning(
            "Baseline hours mismatch for project '%s': declared %.2f, calculated %.2f (difference %.2f)",
            payload.project_name,
            validation.total_baseline_hours,
            validation.calculated_total,
            validation.difference,
        )

    result["service_value_usd"] = service_value_usd
    result["allocations"] = allocations
    result["third_party"] = third_party
    return result


def _apply(project: Project, payload: ProjectCreate, result: Dict[str, Any]) -> None:
    final = result["final"]
    baseline = result["baseline"]
    validation = result["hours_validation"]

    project.client_id = payload.client_id
    project.currency_used = payload.currency_used
    project.contract_number = payload.contract_number
    project.oracle_id = payload.oracle_id
    project.project_name = payload.project_name
    project.local_service_value = payload.local_service_value
    project.service_value_usd = result["service_value_usd"]
    project.baseline_hours = payload.baseline_hours
    project.total_baseline_hours = payload.total_baseline_hours
    project.non_bill_hours = result["non_bill_hours"]

    project.total_costs_usd = final.total_costs_usd
    project.margin_percent = final.margin_percent
    project.net_revenue_usd = final.net_revenue_usd
    project.ebita_usd = final.ebita_usd
    project.ps_ratio = final.ps_ratio
    project.margin_status = final.margin_status
    project.ps_ratio_status = final.ps_ratio_status

    project.baseline_total_costs_usd = baseline.total_costs_usd
    project.baseline_margin_percent = baseline.margin_percent
    project.baseline_net_revenue_usd = baseline.net_revenue_usd
    project.baseline_ebita_usd = baseline.ebita_usd
    project.baseline_ps_ratio = baseline.ps_ratio
    project.baseline_margin_status = baseline.margin_status
    project.baseline_ps_ratio_status = baseline.ps_ratio_status

    project.hours_valid = validation.is_valid
    project.hours_difference = validation.difference

    project.resources = [
        ProjectResource(
            resource_type=a["resource_type"],
            hours=a["hours"],
            baseline_hours=a["baseline_hours"],
            final_hours=a["final_hours"],
            cost_rate_usd=a["cost_rate_usd"],
            total_cost_usd=a["hours"] * a["cost_rate_usd"],
        )
        for a in result["allocations"]
    ]
    project.third_party_resources = [
        ThirdPartyResource(
            resource_name=t["resource_name"],
            cost_usd=t["cost_usd"],
            hours=t["hours"],
        )
        for t in result["third_party"]
    ]


def create_project(
    db: Session,
    payload: ProjectCreate,
    currency_service: CurrencyService,
    user_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Create a project with both metric snapshots.

    Rates for every resource type come from the current admin rates and are
    frozen on the new resource rows.

    Returns:
        {"project": Project, "result": calculation result}

    Note:
        Caller is responsible for committing the transaction.
    """
    result = calculate_project(db, payload, currency_service)

    project = Project(created_by=user_id)
    _apply(project, payload, result)
    db.add(project)
    db.flush()

    logger.info(
        "Created project %s '%s': margin %s%% (%s), PS ratio %s (%s)",
        project.id, project.project_name,
        project.margin_percent, project.margin_status,
        project.ps_ratio, project.ps_ratio_status,
    )
    return {"project": project, "result": result}


def update_project(
    db: Session,
    project: Project,
    payload: ProjectCreate,
    currency_service: CurrencyService,
) -> Dict[str, Any]:
    """
    Replace a project's inputs and line items and recompute both snapshots.

    Resource types already on the project keep their frozen cost rate; only
    newly added types pick up the current admin rate.

    Note:
        Caller is responsible for committing the transaction.
    """
    frozen = frozen_rates_for_project(db, project.id)
    result = calculate_project(db, payload, currency_service, frozen_rates=frozen)

    _apply(project, payload, result)
    project.updated_at = datetime.utcnow()
    db.flush()

    logger.info("Updated project %s '%s'", project.id, project.project_name)
    return {"project": project, "result": result}


def delete_project(db: Session, project: Project) -> None:
    """
    Delete a project; resource and third-party rows cascade.

    Note:
        Caller is responsible for committing the transaction.
    """
    logger.info("Deleting project %s '%s'", project.id, project.project_name)
    db.delete(project)
    db.flush()


def project_variance(project: Project) -> Optional[Dict[str, float]]:
    """Final minus baseline, read from a stored project's two snapshots."""
    if project.total_costs_usd is None or project.baseline_total_costs_usd is None:
        return None
    return {
        "total_costs_usd": project.total_costs_usd - project.baseline_total_costs_usd,
        "margin_percent": project.margin_percent - project.baseline_margin_percent,
        "net_revenue_usd": project.net_revenue_usd - project.baseline_net_revenue_usd,
        "ebita_usd": project.ebita_usd - project.baseline_ebita_usd,
        "ps_ratio": calculation.round_half_up(project.ps_ratio - project.baseline_ps_ratio, 2),
    }


# -------------------------
# listing / dashboard
# -------------------------

def _apply_filters(query, filters: Dict[str, Any]):
    if filters.get("client_id"):
        query = query.filter(Project.client_id == filters["client_id"])
    if filters.get("start_date"):
        query = query.filter(Project.created_at >= datetime.combine(filters["start_date"], time.min))
    if filters.get("end_date"):
        query = query.filter(Project.created_at <= datetime.combine(filters["end_date"], time.max))
    if filters.get("contract_number"):
        query = query.filter(Project.contract_number.like(f"%{filters['contract_number']}%"))
    if filters.get("oracle_id"):
        query = query.filter(Project.oracle_id.like(f"%{filters['oracle_id']}%"))
    if filters.get("project_name"):
        query = query.filter(Project.project_name.like(f"%{filters['project_name']}%"))
    if filters.get("margin_status"):
        query = query.filter(Project.margin_status == filters["margin_status"])
    if filters.get("ps_ratio_status"):
        query = query.filter(Project.ps_ratio_status == filters["ps_ratio_status"])
    return query


def list_projects(db: Session, **filters) -> List[Project]:
    """List projects, newest first, narrowed by any of the supported filters."""
    query = db.query(Project).options(joinedload(Project.client))
    query = _apply_filters(query, filters)
    return query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def dashboard_stats(db: Session, **filters) -> Dict[str, Any]:
    """Aggregate counts and totals over the filtered project set."""
    on_track = calculation.ON_TRACK
    below = calculation.BELOW_TARGET

    query = db.query(
        func.count(Project.id),
        func.avg(Project.margin_percent),
        func.avg(Project.ps_ratio),
        func.sum(case((Project.margin_status == on_track, 1), else_=0)),
        func.sum(case((Project.margin_status == below, 1), else_=0)),
        func.sum(case((Project.ps_ratio_status == on_track, 1), else_=0)),
        func.sum(case((Project.ps_ratio_status == below, 1), else_=0)),
        func.sum(Project.local_service_value),
        func.sum(Project.service_value_usd),
        func.sum(Project.total_costs_usd),
        func.sum(Project.net_revenue_usd),
    )
    row = _apply_filters(query, filters).one()

    return {
        "total_projects": row[0] or 0,
        "avg_margin": row[1],
        "avg_ps_ratio": row[2],
        "projects_on_track_margin": row[3] or 0,
        "projects_below_target_margin": row[4] or 0,
        "projects_on_track_ps": row[5] or 0,
        "projects_below_target_ps": row[6] or 0,
        "total_service_value": row[7],
        "total_service_value_usd": row[8],
        "total_costs": row[9],
        "total_net_revenue": row[10],
    }
