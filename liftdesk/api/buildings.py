from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from liftdesk.database import get_db
from liftdesk.models import Building, Client, Elevator, Ticket, Project, User
from liftdesk.schemas import BuildingCreate, BuildingUpdate, Building as BuildingSchema
from liftdesk.api.auth import get_current_user, require_admin, require_write_access
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_client(db: Session, client_id: Optional[int], company_id: int):
    if not client_id:
        raise HTTPException(status_code=400, detail="A building must belong to a client")

    client = db.query(Client).filter(
        Client.id == client_id,
        Client.company_id == company_id
    ).first()
    if not client:
        raise HTTPException(status_code=400, detail="Invalid client")


@router.get("/", response_model=List[BuildingSchema])
async def get_buildings(
    client_id: Optional[int] = None,
    search: Optional[str] = Query(None, description="Search by address or city"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get all buildings for the company, optionally for one client"""
    query = db.query(Building).filter(Building.company_id == current_user.company_id)

    if client_id:
        query = query.filter(Building.client_id == client_id)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (Building.address.ilike(search_term)) |
            (Building.city.ilike(search_term))
        )

    return query.order_by(Building.address).all()


@router.get("/{building_id}", response_model=BuildingSchema)
async def get_building(
    building_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    building = db.query(Building).filter(
        Building.id == building_id,
        Building.company_id == current_user.company_id
    ).first()

    if not building:
        raise HTTPException(status_code=404, detail="Building not found")

    return building


@router.post("/", response_model=BuildingSchema, status_code=status.HTTP_201_CREATED)
async def create_building(
    building_data: BuildingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a building under a client"""
    require_write_access(current_user)

    if not building_data.address or not building_data.address.strip():
        raise HTTPException(status_code=400, detail="Address is required")
    _check_client(db, building_data.client_id, current_user.company_id)

    data = building_data.model_dump()
    data["address"] = data["address"].strip()
    building = Building(company_id=current_user.company_id, **data)

    db.add(building)
    db.commit()
    db.refresh(building)

    logger.info(f"Created building {building.id} '{building.display_name}' for client {building.client_id}")

    return building


@router.put("/{building_id}", response_model=BuildingSchema)
async def update_building(
    building_id: int,
    building_data: BuildingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    building = db.query(Building).filter(
        Building.id == building_id,
        Building.company_id == current_user.company_id
    ).first()

    if not building:
        raise HTTPException(status_code=404, detail="Building not found")

    update_data = building_data.model_dump(exclude_unset=True)

    if "address" in update_data and (not update_data["address"] or not update_data["address"].strip()):
        raise HTTPException(status_code=400, detail="Address is required")
    if "client_id" in update_data:
        _check_client(db, update_data["client_id"], current_user.company_id)

    for field, value in update_data.items():
        setattr(building, field, value)

    db.commit()
    db.refresh(building)

    logger.info(f"Updated building {building.id}")

    return building


@router.delete("/{building_id}")
async def delete_building(
    building_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a building without elevators or tickets"""
    require_admin(current_user)

    building = db.query(Building).filter(
        Building.id == building_id,
        Building.company_id == current_user.company_id
    ).first()

    if not building:
        raise HTTPException(status_code=404, detail="Building not found")

    elevator_count = db.query(Elevator).filter(Elevator.building_id == building.id).count()
    ticket_count = db.query(Ticket).filter(Ticket.building_id == building.id).count()
    if elevator_count or ticket_count:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete building with {elevator_count} elevator(s) and {ticket_count} ticket(s)"
        )

    project_count = db.query(Project).filter(Project.building_id == building.id).count()
    if project_count:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete building with {project_count} project(s)"
        )

    db.delete(building)
    db.commit()

    logger.info(f"Deleted building {building_id}")

    return {"message": "Building deleted successfully"}
