"""
Emergency (trapped person) API endpoints
Emergency tickets are regular tickets with ticket_type "emergency" and an
emergency sub-status driven by the field technician
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import datetime
import logging

from liftdesk.database import get_db
from liftdesk.models import Ticket, User
from liftdesk.schemas import (
    EmergencyCreate, EmergencyPull, EmergencyStatusUpdate, RescueComplete, EmergencyCancel
)
from liftdesk.api.auth import get_current_user, require_write_access
from liftdesk.api.tickets import (
    generate_ticket_number, get_company_ticket, get_company_technician,
    validate_location, serialize_ticket
)
from liftdesk.api.ticket_timeline import (
    log_ticket_created, log_status_change, log_note_added, log_emergency_status_change,
    log_emergency_pulled, log_rescue_completed, log_emergency_cancelled
)
from liftdesk.services.emergency import (
    EmergencyTransitionError, check_transition, allowed_next_statuses, response_time_minutes,
    follow_up_title, follow_up_description, DEFAULT_EMERGENCY_TITLE, DEFAULT_CANCEL_REASON,
    WORKING_STATUSES
)
from liftdesk.utils.formatting import elapsed_timer, tel_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/emergencies", tags=["Emergencies"])


def _get_emergency(db: Session, ticket_id: int, company_id: int) -> Ticket:
    ticket = get_company_ticket(db, ticket_id, company_id)
    if ticket.ticket_type != "emergency":
        raise HTTPException(status_code=400, detail="Ticket is not an emergency")
    return ticket


def _emergency_view(ticket: Ticket, now: datetime = None) -> dict:
    now = now or datetime.utcnow()
    # The timer freezes at the rescue moment
    end = ticket.completed_at if ticket.emergency_status == "rescued" and ticket.completed_at else now
    return {
        "ticket": serialize_ticket(ticket, now),
        "elapsed": elapsed_timer(ticket.emergency_timer_started_at, end),
        "is_final_time": ticket.emergency_status == "rescued",
        "allowed_next_statuses": allowed_next_statuses(ticket.emergency_status),
        "trapped_person_call_link": tel_link(ticket.trapped_person_phone),
        "reporter_call_link": tel_link(ticket.reporter_phone),
    }


@router.get("/active")
async def list_active_emergencies(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Open emergencies with their running timers, oldest first"""
    tickets = db.query(Ticket).filter(
        Ticket.company_id == current_user.company_id,
        Ticket.ticket_type == "emergency",
        Ticket.status.notin_(["done", "cancelled"])
    ).order_by(Ticket.created_at, Ticket.id).all()

    now = datetime.utcnow()
    return [_emergency_view(t, now) for t in tickets]


@router.get("/{ticket_id}")
async def get_emergency(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = _get_emergency(db, ticket_id, current_user.company_id)
    return _emergency_view(ticket)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_emergency(
    data: EmergencyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Open a trapped-person emergency; the response timer starts now"""
    require_write_access(current_user)

    validate_location(db, data.building_id, data.elevator_id, current_user.company_id)

    technician = None
    if data.assigned_technician_id:
        technician = get_company_technician(db, data.assigned_technician_id, current_user.company_id)

    now = datetime.utcnow()
    ticket = Ticket(
        company_id=current_user.company_id,
        ticket_number=generate_ticket_number(db, current_user.company_id),
        building_id=data.building_id,
        elevator_id=data.elevator_id,
        title=(data.title or "").strip() or DEFAULT_EMERGENCY_TITLE,
        description=data.description,
        severity="critical",
        priority="urgent",
        status="assigned" if technician else "new",
        assigned_technician_id=technician.id if technician else None,
        reported_by=data.reported_by,
        reporter_phone=data.reporter_phone,
        reporter_type=data.reporter_type,
        ticket_type="emergency",
        emergency_status="dispatched",
        emergency_timer_started_at=now,
        trapped_person_name=data.trapped_person_name,
        trapped_person_phone=data.trapped_person_phone,
        created_by=current_user.id,
        created_at=now
    )

    db.add(ticket)
    db.commit()
    db.refresh(ticket)

    log_ticket_created(db, ticket, current_user)
    if technician:
        log_emergency_pulled(db, ticket, technician.full_name, current_user)
    db.commit()

    logger.warning(f"EMERGENCY {ticket.ticket_number} opened for building {ticket.building_id}")

    return _emergency_view(get_company_ticket(db, ticket.id, current_user.company_id))


@router.post("/{ticket_id}/pull")
async def pull_emergency(
    ticket_id: int,
    data: EmergencyPull,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """A technician takes the emergency call"""
    require_write_access(current_user)

    ticket = _get_emergency(db, ticket_id, current_user.company_id)
    if ticket.status in ("done", "cancelled"):
        raise HTTPException(status_code=400, detail=f"Emergency is already {ticket.status}")

    technician = get_company_technician(db, data.technician_id, current_user.company_id)

    ticket.assigned_technician_id = technician.id
    if ticket.status == "new":
        log_status_change(db, ticket, "new", "assigned", current_user)
        ticket.status = "assigned"
    log_emergency_pulled(db, ticket, technician.full_name, current_user)
    db.commit()

    logger.info(f"Emergency {ticket.ticket_number} pulled by technician {technician.id}")

    return _emergency_view(get_company_ticket(db, ticket.id, current_user.company_id))


@router.put("/{ticket_id}/status")
async def update_emergency_status(
    ticket_id: int,
    data: EmergencyStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Advance the emergency sub-status (forward only)"""
    require_write_access(current_user)

    ticket = _get_emergency(db, ticket_id, current_user.company_id)
    if ticket.status == "cancelled":
        raise HTTPException(status_code=400, detail="Emergency was cancelled")

    try:
        check_transition(ticket.emergency_status, data.emergency_status)
    except EmergencyTransitionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    ticket.emergency_status = data.emergency_status

    if data.emergency_status in WORKING_STATUSES and ticket.status in ("new", "assigned"):
        log_status_change(db, ticket, ticket.status, "in_progress", current_user)
        ticket.status = "in_progress"

    technician_name = ticket.assigned_technician.full_name if ticket.assigned_technician else None
    log_emergency_status_change(db, ticket, data.emergency_status, technician_name, current_user)
    db.commit()

    logger.info(f"Emergency {ticket.ticket_number} -> {data.emergency_status}")

    return _emergency_view(get_company_ticket(db, ticket.id, current_user.company_id))


@router.post("/{ticket_id}/complete-rescue")
async def complete_rescue(
    ticket_id: int,
    data: RescueComplete,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Close the emergency. If the elevator is left out of service a follow-up
    service ticket is opened for the same elevator.
    """
    require_write_access(current_user)

    ticket = _get_emergency(db, ticket_id, current_user.company_id)
    if ticket.emergency_status == "rescued":
        raise HTTPException(status_code=400, detail="Emergency already completed")
    if ticket.status == "cancelled":
        raise HTTPException(status_code=400, detail="Emergency was cancelled")

    now = datetime.utcnow()
    response_time = response_time_minutes(ticket.created_at, now)
    old_status = ticket.status

    ticket.emergency_status = "rescued"
    ticket.emergency_response_time_minutes = response_time
    ticket.is_elevator_operational = data.is_elevator_operational
    ticket.status = "done"
    ticket.completed_at = now

    log_rescue_completed(db, ticket, response_time, data.is_elevator_operational, current_user)
    if old_status != "done":
        log_status_change(db, ticket, old_status, "done", current_user, data.notes)

    follow_up = None
    if not data.is_elevator_operational and ticket.elevator_id:
        follow_up = Ticket(
            company_id=ticket.company_id,
            ticket_number=generate_ticket_number(db, ticket.company_id),
            building_id=ticket.building_id,
            elevator_id=ticket.elevator_id,
            title=follow_up_title(ticket.building.address if ticket.building else None),
            description=follow_up_description(ticket.ticket_number),
            severity="high",
            priority="high",
            status="new",
            ticket_type="service",
            created_by=current_user.id
        )
        db.add(follow_up)
        db.flush()

        ticket.spawned_service_ticket_id = follow_up.id
        log_ticket_created(db, follow_up, current_user)
        log_note_added(db, ticket, f"Follow-up service ticket opened: {follow_up.ticket_number}", current_user)

    db.commit()

    logger.info(
        f"Emergency {ticket.ticket_number} rescued in {response_time} min, "
        f"operational={data.is_elevator_operational}"
        + (f", follow-up {follow_up.ticket_number}" if follow_up else "")
    )

    return _emergency_view(get_company_ticket(db, ticket.id, current_user.company_id), now)


@router.post("/{ticket_id}/cancel")
async def cancel_emergency(
    ticket_id: int,
    data: EmergencyCancel,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Cancel an emergency, e.g. when the trapped person got out unaided"""
    require_write_access(current_user)

    ticket = _get_emergency(db, ticket_id, current_user.company_id)
    if ticket.emergency_status == "rescued":
        raise HTTPException(status_code=400, detail="A completed rescue cannot be cancelled")
    if ticket.status == "cancelled":
        raise HTTPException(status_code=400, detail="Emergency already cancelled")

    reason = (data.reason or "").strip() or DEFAULT_CANCEL_REASON
    old_status = ticket.status

    ticket.status = "cancelled"
    ticket.emergency_status = None

    log_emergency_cancelled(db, ticket, reason, current_user)
    log_status_change(db, ticket, old_status, "cancelled", current_user)
    db.commit()

    logger.info(f"Emergency {ticket.ticket_number} cancelled: {reason}")

    return _emergency_view(get_company_ticket(db, ticket.id, current_user.company_id))
