from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from liftdesk.database import get_db
from liftdesk.models import Client, Building, Project, User
from liftdesk.schemas import ClientCreate, ClientUpdate, Client as ClientSchema
from liftdesk.api.auth import get_current_user, require_admin, require_write_access
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

PREFERRED_CHANNELS = ["whatsapp", "sms", "email"]


def _validate_client_fields(data: dict):
    if "name" in data and (not data["name"] or not data["name"].strip()):
        raise HTTPException(status_code=400, detail="Client name is required")

    if data.get("preferred_channel") and data["preferred_channel"] not in PREFERRED_CHANNELS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid preferred channel. Must be one of: {', '.join(PREFERRED_CHANNELS)}"
        )

    for field in ("sla_critical_hours", "sla_high_hours", "sla_normal_hours"):
        if data.get(field) is not None and data[field] <= 0:
            raise HTTPException(status_code=400, detail=f"{field} must be a positive number of hours")

    start = data.get("contract_start_date")
    end = data.get("contract_end_date")
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="Contract end date cannot be before its start date")


@router.get("/", response_model=List[ClientSchema])
async def get_clients(
    search: Optional[str] = Query(None, description="Search by name or contact"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get all clients for the current user's company"""
    query = db.query(Client).filter(Client.company_id == current_user.company_id)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (Client.name.ilike(search_term)) |
            (Client.contact_name.ilike(search_term)) |
            (Client.contact_phone.ilike(search_term)) |
            (Client.contract_number.ilike(search_term))
        )

    return query.order_by(Client.name).offset(skip).limit(limit).all()


@router.get("/{client_id}", response_model=ClientSchema)
async def get_client(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a specific client by ID"""
    client = db.query(Client).filter(
        Client.id == client_id,
        Client.company_id == current_user.company_id
    ).first()

    if not client:
        raise HTTPException(status_code=404, detail="Client not found")

    return client


@router.post("/", response_model=ClientSchema, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_data: ClientCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a new client"""
    require_write_access(current_user)

    data = client_data.model_dump()
    _validate_client_fields(data)
    data["name"] = data["name"].strip()

    client = Client(company_id=current_user.company_id, **data)

    db.add(client)
    db.commit()
    db.refresh(client)

    logger.info(f"Created client {client.id} '{client.name}' for company {current_user.company_id}")

    return client


@router.put("/{client_id}", response_model=ClientSchema)
async def update_client(
    client_id: int,
    client_data: ClientUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update a client"""
    require_write_access(current_user)

    client = db.query(Client).filter(
        Client.id == client_id,
        Client.company_id == current_user.company_id
    ).first()

    if not client:
        raise HTTPException(status_code=404, detail="Client not found")

    update_data = client_data.model_dump(exclude_unset=True)

    merged = {
        "contract_start_date": client.contract_start_date,
        "contract_end_date": client.contract_end_date,
        **update_data
    }
    _validate_client_fields(merged)

    for field, value in update_data.items():
        setattr(client, field, value)

    db.commit()
    db.refresh(client)

    logger.info(f"Updated client {client.id} '{client.name}'")

    return client


@router.delete("/{client_id}")
async def delete_client(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a client that no longer has buildings"""
    require_admin(current_user)

    client = db.query(Client).filter(
        Client.id == client_id,
        Client.company_id == current_user.company_id
    ).first()

    if not client:
        raise HTTPException(status_code=404, detail="Client not found")

    building_count = db.query(Building).filter(Building.client_id == client.id).count()
    if building_count:
        logger.warning(f"Refused to delete client {client.id}: {building_count} buildings still linked")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete client with {building_count} building(s). Remove or reassign the buildings first."
        )

    project_count = db.query(Project).filter(Project.client_id == client.id).count()
    if project_count:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete client with {project_count} project(s)"
        )

    db.delete(client)
    db.commit()

    logger.info(f"Deleted client {client_id}")

    return {"message": "Client deleted successfully"}
