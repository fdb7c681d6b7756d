"""
Elevator registry API endpoints
Each elevator belongs to a building and is identified by its MOL registry number
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
from typing import Optional, List
from datetime import date
import logging

from liftdesk.database import get_db
from liftdesk.models import Elevator, Building, Ticket, InspectorReport, User
from liftdesk.schemas import (
    ElevatorCreate, ElevatorUpdate, Elevator as ElevatorSchema,
    Ticket as TicketSchema, InspectorReportCreate, InspectorReport as InspectorReportSchema
)
from liftdesk.api.auth import get_current_user, require_admin, require_write_access
from liftdesk.services.maintenance import (
    calculate_elevator_stats, elevator_numbers, next_pm_date, next_inspection_date, days_until
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _normalize_manufacturer(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() == "unknown":
        return None
    return value


def _get_elevator(db: Session, elevator_id: int, company_id: int) -> Elevator:
    elevator = db.query(Elevator).options(joinedload(Elevator.building)).filter(
        Elevator.id == elevator_id,
        Elevator.company_id == company_id
    ).first()

    if not elevator:
        raise HTTPException(status_code=404, detail="Elevator not found")
    return elevator


def _check_building(db: Session, building_id: Optional[int], company_id: int):
    if not building_id:
        raise HTTPException(status_code=400, detail="An elevator must belong to a building")

    building = db.query(Building).filter(
        Building.id == building_id,
        Building.company_id == company_id
    ).first()
    if not building:
        raise HTTPException(status_code=400, detail="Invalid building")


def _with_number(db: Session, elevator: Elevator) -> ElevatorSchema:
    siblings = db.query(Elevator).filter(Elevator.building_id == elevator.building_id).all()
    number = elevator_numbers(siblings).get(elevator.id)
    return ElevatorSchema.model_validate(elevator).model_copy(update={"elevator_number": number})


@router.get("/", response_model=List[ElevatorSchema])
async def list_elevators(
    search: Optional[str] = Query(None, description="MOL number, manufacturer, model or building address"),
    building_id: Optional[int] = None,
    manufacturer: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List elevators with their number within the building"""
    all_elevators = db.query(Elevator).options(joinedload(Elevator.building)).filter(
        Elevator.company_id == current_user.company_id
    ).all()
    numbers = elevator_numbers(all_elevators)

    query = db.query(Elevator).options(joinedload(Elevator.building)).join(Building).filter(
        Elevator.company_id == current_user.company_id
    )

    if building_id:
        query = query.filter(Elevator.building_id == building_id)
    if manufacturer:
        if manufacturer.lower() == "unknown":
            query = query.filter((Elevator.manufacturer == None) | (Elevator.manufacturer == ""))
        else:
            query = query.filter(Elevator.manufacturer == manufacturer)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (Elevator.mol_number.ilike(search_term)) |
            (Elevator.manufacturer.ilike(search_term)) |
            (Elevator.model.ilike(search_term)) |
            (Building.address.ilike(search_term))
        )

    elevators = query.order_by(Building.address, Elevator.mol_number).all()

    return [
        ElevatorSchema.model_validate(e).model_copy(update={"elevator_number": numbers.get(e.id)})
        for e in elevators
    ]


@router.get("/stats")
async def get_elevator_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Totals, manufacturer breakdown and what is due this month"""
    elevators = db.query(Elevator).filter(Elevator.company_id == current_user.company_id).all()
    return calculate_elevator_stats(elevators, date.today())


@router.get("/manufacturers", response_model=List[str])
async def list_manufacturers(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    rows = db.query(Elevator.manufacturer).filter(
        Elevator.company_id == current_user.company_id,
        Elevator.manufacturer != None
    ).distinct().all()
    return sorted(row[0] for row in rows if row[0])


@router.get("/{elevator_id}")
async def get_elevator_details(
    elevator_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Elevator with its recent tickets, inspector reports and upcoming visits"""
    elevator = _get_elevator(db, elevator_id, current_user.company_id)

    recent_tickets = db.query(Ticket).filter(
        Ticket.elevator_id == elevator.id
    ).order_by(desc(Ticket.created_at), desc(Ticket.id)).limit(10).all()

    reports = db.query(InspectorReport).filter(
        InspectorReport.elevator_id == elevator.id
    ).order_by(desc(InspectorReport.report_date)).limit(10).all()

    today = date.today()
    next_pm = next_pm_date(elevator.last_pm_date)
    next_inspection = next_inspection_date(elevator.last_inspection_date)

    return {
        "elevator": _with_number(db, elevator),
        "recent_tickets": [TicketSchema.model_validate(t) for t in recent_tickets],
        "inspector_reports": [InspectorReportSchema.model_validate(r) for r in reports],
        "next_pm_date": next_pm,
        "days_until_pm": days_until(next_pm, today),
        "next_inspection_date": next_inspection,
        "days_until_inspection": days_until(next_inspection, today),
    }


@router.post("/", response_model=ElevatorSchema, status_code=status.HTTP_201_CREATED)
async def create_elevator(
    elevator_data: ElevatorCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    if not elevator_data.mol_number or not elevator_data.mol_number.strip():
        raise HTTPException(status_code=400, detail="MOL number is required")
    _check_building(db, elevator_data.building_id, current_user.company_id)

    data = elevator_data.model_dump()
    data["mol_number"] = data["mol_number"].strip()
    data["manufacturer"] = _normalize_manufacturer(data.get("manufacturer"))

    elevator = Elevator(company_id=current_user.company_id, **data)

    db.add(elevator)
    db.commit()
    db.refresh(elevator)

    logger.info(f"Created elevator {elevator.id} MOL {elevator.mol_number} in building {elevator.building_id}")

    return _with_number(db, elevator)


@router.put("/{elevator_id}", response_model=ElevatorSchema)
async def update_elevator(
    elevator_id: int,
    elevator_data: ElevatorUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    elevator = _get_elevator(db, elevator_id, current_user.company_id)
    update_data = elevator_data.model_dump(exclude_unset=True)

    if "mol_number" in update_data:
        if not update_data["mol_number"] or not update_data["mol_number"].strip():
            raise HTTPException(status_code=400, detail="MOL number is required")
        update_data["mol_number"] = update_data["mol_number"].strip()
    if "building_id" in update_data and update_data["building_id"] != elevator.building_id:
        _check_building(db, update_data["building_id"], current_user.company_id)
        # A ticket's elevator must stay in the ticket's building
        ticket_count = db.query(Ticket).filter(Ticket.elevator_id == elevator.id).count()
        if ticket_count:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Cannot move elevator with {ticket_count} ticket(s) to another building"
            )
    if "manufacturer" in update_data:
        update_data["manufacturer"] = _normalize_manufacturer(update_data["manufacturer"])

    for field, value in update_data.items():
        setattr(elevator, field, value)

    db.commit()
    db.refresh(elevator)

    logger.info(f"Updated elevator {elevator.id}")

    return _with_number(db, elevator)


@router.delete("/{elevator_id}")
async def delete_elevator(
    elevator_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_admin(current_user)

    elevator = _get_elevator(db, elevator_id, current_user.company_id)

    ticket_count = db.query(Ticket).filter(Ticket.elevator_id == elevator.id).count()
    if ticket_count:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete elevator with {ticket_count} ticket(s)"
        )

    db.delete(elevator)
    db.commit()

    logger.info(f"Deleted elevator {elevator_id}")

    return {"message": "Elevator deleted successfully"}


# ============================================================================
# Inspector reports
# ============================================================================

@router.get("/{elevator_id}/inspector-reports", response_model=List[InspectorReportSchema])
async def list_inspector_reports(
    elevator_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    elevator = _get_elevator(db, elevator_id, current_user.company_id)
    return db.query(InspectorReport).filter(
        InspectorReport.elevator_id == elevator.id
    ).order_by(desc(InspectorReport.report_date)).all()


@router.post("/{elevator_id}/inspector-reports", response_model=InspectorReportSchema, status_code=status.HTTP_201_CREATED)
async def add_inspector_report(
    elevator_id: int,
    report_data: InspectorReportCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Record an inspection; a newer report also moves the elevator's last inspection date"""
    require_write_access(current_user)

    elevator = _get_elevator(db, elevator_id, current_user.company_id)

    report = InspectorReport(elevator_id=elevator.id, **report_data.model_dump())
    db.add(report)

    if not elevator.last_inspection_date or report.report_date > elevator.last_inspection_date:
        elevator.last_inspection_date = report.report_date

    db.commit()
    db.refresh(report)

    logger.info(f"Added inspector report {report.id} for elevator {elevator.id}")

    return report
