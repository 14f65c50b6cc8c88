"""
Project margin analysis router.

Create and update convert the service value to USD, resolve cost rates,
compute the baseline and final metric snapshots and persist everything in a
single transaction. Cost rates are only visible to admins.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from margin_analysis.core.exceptions import RateUnavailable, UnknownResourceType
from margin_analysis.core.security import get_current_user, get_current_admin
from margin_analysis.database import get_db
from margin_analysis.models.client import Client
from margin_analysis.models.project import Project
from margin_analysis.schemas.project import (
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
    ProjectListResponse,
    ProjectSaveResponse,
    ProjectResourceResponse,
    ThirdPartyResourceResponse,
    DashboardStats,
)
from margin_analysis.utils.audit import log_audit
from margin_analysis.utils.currency import CurrencyService, get_currency_service
from margin_analysis.utils import project as project_utils

router = APIRouter(tags=["Projects"])


def _filters(
    client_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    contract_number: Optional[str] = None,
    oracle_id: Optional[str] = None,
    project_name: Optional[str] = None,
    margin_status: Optional[str] = None,
    ps_ratio_status: Optional[str] = None,
) -> dict:
    return {
        "client_id": client_id,
        "start_date": start_date,
        "end_date": end_date,
        "contract_number": contract_number,
        "oracle_id": oracle_id,
        "project_name": project_name,
        "margin_status": margin_status,
        "ps_ratio_status": ps_ratio_status,
    }


def _serialize(project: Project, current_user: dict, **extra) -> dict:
    """Build the response body, hiding cost rates from non-admin users."""
    data = ProjectListResponse.model_validate(project).model_dump()

    resources = []
    for r in project.resources:
        row = ProjectResourceResponse.model_validate(r).model_dump()
        if current_user["role"] != "admin":
            row["cost_rate_usd"] = None
            row["total_cost_usd"] = None
        resources.append(row)

    data["resources"] = resources
    data["third_party_resources"] = [
        ThirdPartyResourceResponse.model_validate(t).model_dump()
        for t in project.third_party_resources
    ]
    data["variance"] = project_utils.project_variance(project)
    data.update(extra)
    return data


def _require_client(db: Session, client_id: int) -> None:
    if not db.query(Client).filter(Client.id == client_id).first():
        raise HTTPException(status_code=404, detail="Client not found")


def _save(db: Session, action, *args, **kwargs) -> dict:
    """
    Run a project create/update and translate domain errors.

    Nothing is committed when rates or currency cannot be resolved.
    """
    try:
        return action(db, *args, **kwargs)
    except UnknownResourceType as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except RateUnavailable as e:
        db.rollback()
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/", response_model=List[ProjectListResponse])
def list_projects(
    filters: dict = Depends(_filters),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """
    List projects with both metric snapshots, newest first.

    Supports filtering by client, creation date range, contract number,
    Oracle ID, project name (partial match) and the two status fields.
    """
    return project_utils.list_projects(db, **filters)


@router.get("/dashboard/stats", response_model=DashboardStats)
def get_dashboard_stats(
    filters: dict = Depends(_filters),
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """Aggregated counts and totals over the same filters as the list."""
    return project_utils.dashboard_stats(db, **filters)


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    project = project_utils.get_project_by_id(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return _serialize(project, current_user)


@router.post("/", response_model=ProjectSaveResponse, status_code=201)
def create_project(
    payload: ProjectCreate,
    request: Request,
    db: Session = Depends(get_db),
    currency_service: CurrencyService = Depends(get_currency_service),
    current_user: dict = Depends(get_current_user)
):
    """
    Create a new project with baseline and final metrics.

    The baseline-hours check is advisory: a mismatch is returned in
    `hours_validation` and stored on the project, never rejected.
    """
    _require_client(db, payload.client_id)

    saved = _save(db, project_utils.create_project, payload, currency_service, user_id=current_user["id"])
    project = saved["project"]

    log_audit(
        db, current_user["id"], "CREATE", "projects", project.id,
        new_values=payload.model_dump(),
        ip_address=request.client.host if request.client else None,
    )
    db.commit()

    project = project_utils.get_project_by_id(db, project.id)
    return _serialize(project, current_user, hours_validation=saved["result"]["hours_validation"].to_dict())


@router.put("/{project_id}", response_model=ProjectSaveResponse)
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    request: Request,
    db: Session = Depends(get_db),
    currency_service: CurrencyService = Depends(get_currency_service),
    current_user: dict = Depends(get_current_user)
):
    """
    Replace a project's inputs and line items and recompute both snapshots.

    Resource types that were already on the project keep their original
    cost rate; only newly added resource types pick up the current rate.
    """
    project = project_utils.get_project_by_id(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    _require_client(db, payload.client_id)

    old_values = {
        "margin_percent": project.margin_percent,
        "ps_ratio": project.ps_ratio,
        "total_costs_usd": project.total_costs_usd,
    }
    saved = _save(db, project_utils.update_project, project, payload, currency_service)

    log_audit(
        db, current_user["id"], "UPDATE", "projects", project.id,
        old_values=old_values,
        new_values=payload.model_dump(),
        ip_address=request.client.host if request.client else None,
    )
    db.commit()

    db.expire_all()
    project = project_utils.get_project_by_id(db, project_id)
    return _serialize(project, current_user, hours_validation=saved["result"]["hours_validation"].to_dict())


@router.delete("/{project_id}")
def delete_project(
    project_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_admin)
):
    """
    Delete a project and its resource and third-party rows (admin only).

    Use with caution - this action cannot be undone.
    """
    project = project_utils.get_project_by_id(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    project_utils.delete_project(db, project)
    log_audit(
        db, current_user["id"], "DELETE", "projects", project_id,
        ip_address=request.client.host if request.client else None,
    )
    db.commit()
    return {"message": "Project deleted successfully"}
