"""
Client management router.

Clients own projects (1:N). A client cannot be deleted while it still has
projects.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List
from margin_analysis.database import get_db
from margin_analysis.models.client import Client
from margin_analysis.models.project import Project
from margin_analysis.schemas.client import ClientCreate, ClientUpdate, ClientResponse
from margin_analysis.core.security import get_current_user
from margin_analysis.utils.audit import log_audit

router = APIRouter(tags=["Clients"])


def _get_client_or_404(db: Session, client_id: int) -> Client:
    client = db.query(Client).filter(Client.id == client_id).first()
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("/", response_model=List[ClientResponse])
def list_clients(
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    return db.query(Client).order_by(Client.client_name).all()


@router.get("/{client_id}", response_model=ClientResponse)
def get_client(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    return _get_client_or_404(db, client_id)


@router.post("/", response_model=ClientResponse, status_code=201)
def create_client(
    client_in: ClientCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    existing = db.query(Client).filter(Client.client_name == client_in.client_name).first()
    if existing:
        raise HTTPException(status_code=409, detail="Client already exists")

    client = Client(client_name=client_in.client_name)
    db.add(client)
    db.flush()

    log_audit(
        db, current_user["id"], "CREATE", "clients", client.id,
        new_values={"client_name": client.client_name},
        ip_address=request.client.host if request.client else None,
    )
    db.commit()
    db.refresh(client)
    return client


@router.put("/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: int,
    client_in: ClientUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    client = _get_client_or_404(db, client_id)

    duplicate = db.query(Client).filter(
        Client.client_name == client_in.client_name,
        Client.id != client_id
    ).first()
    if duplicate:
        raise HTTPException(status_code=409, detail="Client already exists")

    old_name = client.client_name
    client.client_name = client_in.client_name

    log_audit(
        db, current_user["id"], "UPDATE", "clients", client.id,
        old_values={"client_name": old_name},
        new_values={"client_name": client.client_name},
        ip_address=request.client.host if request.client else None,
    )
    db.commit()
    db.refresh(client)
    return client


@router.delete("/{client_id}")
def delete_client(
    client_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """Delete a client (only if it has no associated projects)."""
    client = _get_client_or_404(db, client_id)

    project_count = db.query(Project).filter(Project.client_id == client_id).count()
    if project_count > 0:
        raise HTTPException(status_code=400, detail="Cannot delete client with associated projects")

    db.delete(client)
    log_audit(
        db, current_user["id"], "DELETE", "clients", client_id,
        ip_address=request.client.host if request.client else None,
    )
    db.commit()
    return {"message": "Client deleted successfully"}
