from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional, List
from datetime import datetime
import logging

from liftdesk.database import get_db
from liftdesk.models import Technician, Ticket, PartUsage, Project, Milestone, User
from liftdesk.schemas import (
    TechnicianCreate, TechnicianUpdate, Technician as TechnicianSchema, Ticket as TicketSchema
)
from liftdesk.api.auth import get_current_user, require_admin, require_write_access
from liftdesk.services.performance import calculate_technician_stats, monthly_completions
from liftdesk.utils.formatting import contact_links

logger = logging.getLogger(__name__)

router = APIRouter()

SPECIALIZATIONS = [
    "hydraulic", "traction", "mrl", "vacuum",
    "modernization", "doors", "controls", "safety_systems"
]
TECHNICIAN_STATUSES = ["active", "on_leave", "inactive"]
WEEKDAYS = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]
DEFAULT_AVAILABLE_DAYS = ["monday", "tuesday", "wednesday", "thursday", "friday"]


def _validate_technician_fields(data: dict):
    for field in ("full_name", "phone"):
        if field in data and (not data[field] or not data[field].strip()):
            raise HTTPException(status_code=400, detail=f"{field} is required")

    if data.get("status") and data["status"] not in TECHNICIAN_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status. Must be one of: {', '.join(TECHNICIAN_STATUSES)}"
        )

    invalid = [s for s in (data.get("specialization") or []) if s not in SPECIALIZATIONS]
    if invalid:
        raise HTTPException(status_code=400, detail=f"Invalid specialization: {', '.join(invalid)}")

    if data.get("available_days") is not None:
        data["available_days"] = [d.lower() for d in data["available_days"]]
        invalid = [d for d in data["available_days"] if d not in WEEKDAYS]
        if invalid:
            raise HTTPException(status_code=400, detail=f"Invalid day: {', '.join(invalid)}")

    start = data.get("working_hours_start")
    end = data.get("working_hours_end")
    for value in (start, end):
        if value is not None:
            try:
                datetime.strptime(value, "%H:%M")
            except ValueError:
                raise HTTPException(status_code=400, detail="Working hours must be in HH:MM format")
    if start and end and end <= start:
        raise HTTPException(status_code=400, detail="Working hours must end after they start")


def _get_technician(db: Session, technician_id: int, company_id: int) -> Technician:
    technician = db.query(Technician).filter(
        Technician.id == technician_id,
        Technician.company_id == company_id
    ).first()
    if not technician:
        raise HTTPException(status_code=404, detail="Technician not found")
    return technician


@router.get("/", response_model=List[TechnicianSchema])
async def get_technicians(
    search: Optional[str] = Query(None, description="Search by name, phone, email or employee id"),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Technician).filter(Technician.company_id == current_user.company_id)

    if status:
        query = query.filter(Technician.status == status)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (Technician.full_name.ilike(search_term)) |
            (Technician.phone.ilike(search_term)) |
            (Technician.email.ilike(search_term)) |
            (Technician.employee_id.ilike(search_term))
        )

    return query.order_by(Technician.full_name).all()


@router.get("/stats")
async def get_technician_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    base_query = db.query(Technician).filter(Technician.company_id == current_user.company_id)
    return {
        "total": base_query.count(),
        "active": base_query.filter(Technician.status == "active").count(),
        "on_leave": base_query.filter(Technician.status == "on_leave").count(),
        "inactive": base_query.filter(Technician.status == "inactive").count(),
    }


@router.get("/{technician_id}", response_model=TechnicianSchema)
async def get_technician(
    technician_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_technician(db, technician_id, current_user.company_id)


@router.get("/{technician_id}/profile")
async def get_technician_profile(
    technician_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Technician card with workload statistics and recent tickets"""
    technician = _get_technician(db, technician_id, current_user.company_id)

    tickets = db.query(Ticket).filter(
        Ticket.assigned_technician_id == technician.id
    ).order_by(desc(Ticket.created_at), desc(Ticket.id)).all()

    return {
        "technician": TechnicianSchema.model_validate(technician),
        "stats": calculate_technician_stats(tickets),
        "monthly_performance": monthly_completions(tickets),
        "recent_tickets": [TicketSchema.model_validate(t) for t in tickets[:10]],
        "contact": contact_links(technician.phone, technician.email),
        "emergency_contact": contact_links(technician.emergency_contact_phone),
    }


@router.post("/", response_model=TechnicianSchema, status_code=status.HTTP_201_CREATED)
async def create_technician(
    technician_data: TechnicianCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    data = technician_data.model_dump()
    _validate_technician_fields(data)
    if data.get("available_days") is None:
        data["available_days"] = list(DEFAULT_AVAILABLE_DAYS)
    data["full_name"] = data["full_name"].strip()
    data["phone"] = data["phone"].strip()

    technician = Technician(company_id=current_user.company_id, **data)

    db.add(technician)
    db.commit()
    db.refresh(technician)

    logger.info(f"Created technician {technician.id} '{technician.full_name}' for company {current_user.company_id}")

    return technician


@router.put("/{technician_id}", response_model=TechnicianSchema)
async def update_technician(
    technician_id: int,
    technician_data: TechnicianUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    technician = _get_technician(db, technician_id, current_user.company_id)
    update_data = technician_data.model_dump(exclude_unset=True)

    merged = {
        "working_hours_start": technician.working_hours_start,
        "working_hours_end": technician.working_hours_end,
        **update_data
    }
    _validate_technician_fields(merged)
    if "available_days" in update_data:
        update_data["available_days"] = merged["available_days"]

    for field, value in update_data.items():
        setattr(technician, field, value)

    db.commit()
    db.refresh(technician)

    logger.info(f"Updated technician {technician.id}")

    return technician


@router.delete("/{technician_id}")
async def delete_technician(
    technician_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a technician with no open tickets; history keeps the ticket rows"""
    require_admin(current_user)

    technician = _get_technician(db, technician_id, current_user.company_id)

    open_tickets = db.query(Ticket).filter(
        Ticket.assigned_technician_id == technician.id,
        Ticket.status.notin_(["done", "cancelled"])
    ).count()
    if open_tickets:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Technician still has {open_tickets} open ticket(s). Reassign them first."
        )

    db.query(Ticket).filter(Ticket.assigned_technician_id == technician.id).update(
        {Ticket.assigned_technician_id: None}, synchronize_session=False
    )
    db.query(PartUsage).filter(PartUsage.technician_id == technician.id).update(
        {PartUsage.technician_id: None}, synchronize_session=False
    )
    db.query(Project).filter(Project.lead_technician_id == technician.id).update(
        {Project.lead_technician_id: None}, synchronize_session=False
    )
    db.query(Milestone).filter(Milestone.assigned_to == technician.id).update(
        {Milestone.assigned_to: None}, synchronize_session=False
    )
    db.delete(technician)
    db.commit()

    logger.info(f"Deleted technician {technician_id}")

    return {"message": "Technician deleted successfully"}
