"""
Service ticket API endpoints
Tickets belong to a building (and optionally one of its elevators) and move
through new -> assigned -> in_progress -> waiting_parts -> done / cancelled
"""
from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File, status
from fastapi.responses import StreamingResponse, FileResponse
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
from typing import Optional, List
from datetime import datetime
import logging
import uuid
import os

from liftdesk.database import get_db
from liftdesk.models import Ticket, TicketAttachment, Building, Elevator, Technician, User
from liftdesk.schemas import (
    TicketCreate, TicketUpdate, Ticket as TicketSchema, TicketList,
    TicketStatusUpdate, TicketAssign, TicketSeverityUpdate,
    TicketAttachment as TicketAttachmentSchema
)
from liftdesk.api.auth import get_current_user, require_admin, require_write_access
from liftdesk.api.ticket_timeline import (
    log_ticket_created, log_status_change, log_ticket_assigned, log_severity_change,
    log_file_attached, log_technician_arrived, log_technician_started
)
from liftdesk.services.maintenance import sla_hours_for, is_sla_breached, OPEN_TICKET_STATUSES
from liftdesk.services.export import TICKET_COLUMNS, ticket_rows, to_csv, to_xlsx
from liftdesk.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["Tickets"])

TICKET_STATUSES = ["new", "assigned", "in_progress", "waiting_parts", "done", "cancelled"]
SEVERITIES = ["low", "medium", "high", "critical"]
TICKET_TYPES = ["service", "emergency"]


def generate_ticket_number(db: Session, company_id: int) -> str:
    """Generate a unique ticket number in format TKT-YYYYMMDD-XXXX"""
    today = datetime.utcnow().strftime("%Y%m%d")
    prefix = f"TKT-{today}-"

    latest = db.query(Ticket).filter(
        Ticket.company_id == company_id,
        Ticket.ticket_number.like(f"{prefix}%")
    ).order_by(desc(Ticket.ticket_number)).first()

    if latest:
        try:
            new_num = int(latest.ticket_number.split("-")[-1]) + 1
        except ValueError:
            new_num = 1
    else:
        new_num = 1

    return f"{prefix}{new_num:04d}"


def get_company_ticket(db: Session, ticket_id: int, company_id: int) -> Ticket:
    ticket = db.query(Ticket).options(
        joinedload(Ticket.building).joinedload(Building.client),
        joinedload(Ticket.elevator),
        joinedload(Ticket.assigned_technician)
    ).filter(
        Ticket.id == ticket_id,
        Ticket.company_id == company_id
    ).first()

    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


def get_company_technician(db: Session, technician_id: int, company_id: int) -> Technician:
    technician = db.query(Technician).filter(
        Technician.id == technician_id,
        Technician.company_id == company_id
    ).first()
    if not technician:
        raise HTTPException(status_code=400, detail="Invalid technician")
    if technician.status == "inactive":
        raise HTTPException(status_code=400, detail="Cannot assign an inactive technician")
    return technician


def validate_location(db: Session, building_id: Optional[int], elevator_id: Optional[int], company_id: int):
    """Building is mandatory; an elevator, when given, must be in that building"""
    if not building_id:
        raise HTTPException(status_code=400, detail="A ticket must have a building")

    building = db.query(Building).filter(
        Building.id == building_id,
        Building.company_id == company_id
    ).first()
    if not building:
        raise HTTPException(status_code=400, detail="Invalid building")

    if elevator_id:
        elevator = db.query(Elevator).filter(
            Elevator.id == elevator_id,
            Elevator.company_id == company_id
        ).first()
        if not elevator:
            raise HTTPException(status_code=400, detail="Invalid elevator")
        if elevator.building_id != building_id:
            raise HTTPException(status_code=400, detail="Elevator does not belong to the selected building")


def serialize_ticket(ticket: Ticket, now: Optional[datetime] = None) -> TicketSchema:
    """Ticket plus its SLA target and breach flag from the client's contract"""
    client = ticket.building.client if ticket.building else None
    sla_hours = sla_hours_for(client, ticket.severity)
    return TicketSchema.model_validate(ticket).model_copy(update={
        "sla_hours": sla_hours,
        "sla_breached": is_sla_breached(ticket, sla_hours, now),
    })


def _filtered_query(
    db: Session,
    company_id: int,
    status: Optional[str] = None,
    severity: Optional[str] = None,
    building_id: Optional[int] = None,
    elevator_id: Optional[int] = None,
    technician_id: Optional[int] = None,
    ticket_type: Optional[str] = None,
    search: Optional[str] = None
):
    query = db.query(Ticket).options(
        joinedload(Ticket.building).joinedload(Building.client),
        joinedload(Ticket.elevator),
        joinedload(Ticket.assigned_technician)
    ).filter(Ticket.company_id == company_id)

    if status == "open":
        query = query.filter(Ticket.status.in_(OPEN_TICKET_STATUSES))
    elif status:
        query = query.filter(Ticket.status == status)
    if severity:
        query = query.filter(Ticket.severity == severity)
    if building_id:
        query = query.filter(Ticket.building_id == building_id)
    if elevator_id:
        query = query.filter(Ticket.elevator_id == elevator_id)
    if technician_id:
        query = query.filter(Ticket.assigned_technician_id == technician_id)
    if ticket_type:
        query = query.filter(Ticket.ticket_type == ticket_type)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            (Ticket.ticket_number.ilike(search_term)) |
            (Ticket.title.ilike(search_term)) |
            (Ticket.description.ilike(search_term))
        )

    return query.order_by(desc(Ticket.created_at), desc(Ticket.id))


@router.get("/", response_model=TicketList)
async def list_tickets(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    status: Optional[str] = None,
    severity: Optional[str] = None,
    building_id: Optional[int] = None,
    elevator_id: Optional[int] = None,
    technician_id: Optional[int] = None,
    ticket_type: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200)
):
    """List tickets for the company, newest first"""
    query = _filtered_query(
        db, current_user.company_id, status, severity, building_id,
        elevator_id, technician_id, ticket_type, search
    )

    total = query.count()
    tickets = query.offset((page - 1) * size).limit(size).all()

    now = datetime.utcnow()
    return TicketList(
        tickets=[serialize_ticket(t, now) for t in tickets],
        total=total,
        page=page,
        size=size
    )


@router.get("/stats")
async def get_ticket_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Ticket counts for the company"""
    base_query = db.query(Ticket).filter(Ticket.company_id == current_user.company_id)

    by_status = {s: base_query.filter(Ticket.status == s).count() for s in TICKET_STATUSES}

    return {
        "total": base_query.count(),
        "by_status": by_status,
        "open": by_status["new"] + by_status["assigned"],
        "in_progress": by_status["in_progress"] + by_status["waiting_parts"],
        "done": by_status["done"],
        "critical": base_query.filter(
            Ticket.severity == "critical",
            Ticket.status.notin_(["done", "cancelled"])
        ).count(),
        "active_emergencies": base_query.filter(
            Ticket.ticket_type == "emergency",
            Ticket.status.notin_(["done", "cancelled"])
        ).count()
    }


@router.get("/export")
async def export_tickets(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    status: Optional[str] = None,
    severity: Optional[str] = None,
    building_id: Optional[int] = None,
    technician_id: Optional[int] = None,
    ticket_type: Optional[str] = None,
    search: Optional[str] = None
):
    """Export the filtered ticket list as CSV or Excel"""
    tickets = _filtered_query(
        db, current_user.company_id, status, severity, building_id,
        None, technician_id, ticket_type, search
    ).all()
    rows = ticket_rows(tickets)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    logger.info(f"Exporting {len(rows)} tickets as {format} for company {current_user.company_id}")

    if format == "xlsx":
        return StreamingResponse(
            to_xlsx(TICKET_COLUMNS, rows, "Tickets"),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename=tickets_{timestamp}.xlsx"}
        )

    return StreamingResponse(
        iter([to_csv(TICKET_COLUMNS, rows)]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename=tickets_{timestamp}.csv"}
    )


@router.get("/{ticket_id}", response_model=TicketSchema)
async def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = get_company_ticket(db, ticket_id, current_user.company_id)
    return serialize_ticket(ticket)


@router.post("/", response_model=TicketSchema, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    ticket_data: TicketCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Open a new service ticket"""
    require_write_access(current_user)

    if not ticket_data.title or not ticket_data.title.strip():
        raise HTTPException(status_code=400, detail="Title is required")
    if ticket_data.severity not in SEVERITIES:
        raise HTTPException(status_code=400, detail=f"Invalid severity. Must be one of: {', '.join(SEVERITIES)}")
    validate_location(db, ticket_data.building_id, ticket_data.elevator_id, current_user.company_id)

    technician = None
    if ticket_data.assigned_technician_id:
        technician = get_company_technician(db, ticket_data.assigned_technician_id, current_user.company_id)

    ticket = Ticket(
        company_id=current_user.company_id,
        ticket_number=generate_ticket_number(db, current_user.company_id),
        building_id=ticket_data.building_id,
        elevator_id=ticket_data.elevator_id,
        title=ticket_data.title.strip(),
        description=ticket_data.description,
        severity=ticket_data.severity,
        priority=ticket_data.priority,
        status="assigned" if technician else "new",
        assigned_technician_id=technician.id if technician else None,
        reported_by=ticket_data.reported_by,
        reporter_phone=ticket_data.reporter_phone,
        reporter_type=ticket_data.reporter_type,
        ticket_type="service",
        created_by=current_user.id
    )

    db.add(ticket)
    db.commit()
    db.refresh(ticket)

    log_ticket_created(db, ticket, current_user)
    if technician:
        log_ticket_assigned(db, ticket, technician.full_name, current_user)
    db.commit()

    logger.info(f"Created ticket {ticket.ticket_number} for building {ticket.building_id}")

    return serialize_ticket(get_company_ticket(db, ticket.id, current_user.company_id))


@router.put("/{ticket_id}", response_model=TicketSchema)
async def update_ticket(
    ticket_id: int,
    ticket_data: TicketUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update ticket details; status, severity and assignment have their own endpoints"""
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)
    update_data = ticket_data.model_dump(exclude_unset=True)

    if "title" in update_data and (not update_data["title"] or not update_data["title"].strip()):
        raise HTTPException(status_code=400, detail="Title is required")

    if "building_id" in update_data or "elevator_id" in update_data:
        building_id = update_data.get("building_id", ticket.building_id)
        elevator_id = update_data.get("elevator_id", ticket.elevator_id)
        # Moving to another building drops an elevator that is not there
        if "building_id" in update_data and "elevator_id" not in update_data and building_id != ticket.building_id:
            elevator_id = None
            update_data["elevator_id"] = None
        validate_location(db, building_id, elevator_id, current_user.company_id)

    for field, value in update_data.items():
        setattr(ticket, field, value)

    db.commit()

    logger.info(f"Updated ticket {ticket.ticket_number}")

    return serialize_ticket(get_company_ticket(db, ticket.id, current_user.company_id))


@router.put("/{ticket_id}/status", response_model=TicketSchema)
async def update_ticket_status(
    ticket_id: int,
    status_data: TicketStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)

    if status_data.status not in TICKET_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(TICKET_STATUSES)}")

    if ticket.ticket_type == "emergency" and ticket.status not in ("done", "cancelled") \
            and status_data.status in ("done", "cancelled"):
        raise HTTPException(
            status_code=400,
            detail="Emergency tickets are closed through the complete-rescue or cancel actions"
        )

    old_status = ticket.status
    if old_status == status_data.status:
        raise HTTPException(status_code=400, detail=f"Ticket is already {old_status}")

    ticket.status = status_data.status
    if status_data.status == "done":
        ticket.completed_at = datetime.utcnow()
    elif old_status == "done":
        ticket.completed_at = None

    log_status_change(db, ticket, old_status, status_data.status, current_user, status_data.notes)
    db.commit()

    logger.info(f"Ticket {ticket.ticket_number} status {old_status} -> {ticket.status}")

    return serialize_ticket(get_company_ticket(db, ticket.id, current_user.company_id))


@router.put("/{ticket_id}/assign", response_model=TicketSchema)
async def assign_ticket(
    ticket_id: int,
    assign_data: TicketAssign,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Assign a technician; a new ticket moves to assigned"""
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)
    if ticket.status in ("done", "cancelled"):
        raise HTTPException(status_code=400, detail=f"Cannot assign a {ticket.status} ticket")

    technician = get_company_technician(db, assign_data.technician_id, current_user.company_id)

    ticket.assigned_technician_id = technician.id
    log_ticket_assigned(db, ticket, technician.full_name, current_user)

    if ticket.status == "new":
        ticket.status = "assigned"
        log_status_change(db, ticket, "new", "assigned", current_user)

    db.commit()

    logger.info(f"Ticket {ticket.ticket_number} assigned to technician {technician.id}")

    return serialize_ticket(get_company_ticket(db, ticket.id, current_user.company_id))


@router.put("/{ticket_id}/severity", response_model=TicketSchema)
async def update_ticket_severity(
    ticket_id: int,
    severity_data: TicketSeverityUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)

    if severity_data.severity not in SEVERITIES:
        raise HTTPException(status_code=400, detail=f"Invalid severity. Must be one of: {', '.join(SEVERITIES)}")

    old_severity = ticket.severity
    if old_severity != severity_data.severity:
        ticket.severity = severity_data.severity
        log_severity_change(db, ticket, old_severity, severity_data.severity, current_user)
        db.commit()

    return serialize_ticket(get_company_ticket(db, ticket.id, current_user.company_id))


@router.post("/{ticket_id}/arrive", response_model=TicketSchema)
async def technician_arrived(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """The assigned technician reports arrival on site"""
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)
    if not ticket.assigned_technician:
        raise HTTPException(status_code=400, detail="Ticket has no assigned technician")

    log_technician_arrived(db, ticket, ticket.assigned_technician.full_name, current_user)
    db.commit()

    return serialize_ticket(ticket)


@router.post("/{ticket_id}/start", response_model=TicketSchema)
async def technician_started(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """The assigned technician starts work; the ticket moves to in progress"""
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)
    if not ticket.assigned_technician:
        raise HTTPException(status_code=400, detail="Ticket has no assigned technician")
    if ticket.status in ("done", "cancelled"):
        raise HTTPException(status_code=400, detail=f"Cannot start a {ticket.status} ticket")

    log_technician_started(db, ticket, ticket.assigned_technician.full_name, current_user)
    if ticket.status != "in_progress":
        log_status_change(db, ticket, ticket.status, "in_progress", current_user)
        ticket.status = "in_progress"
    db.commit()

    return serialize_ticket(get_company_ticket(db, ticket.id, current_user.company_id))


@router.delete("/{ticket_id}")
async def delete_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_admin(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)

    # Follow-up tickets keep existing without the back reference
    db.query(Ticket).filter(Ticket.spawned_service_ticket_id == ticket.id).update(
        {Ticket.spawned_service_ticket_id: None}, synchronize_session=False
    )

    for attachment in ticket.attachments:
        _remove_file(attachment.file_path)

    ticket_number = ticket.ticket_number
    db.delete(ticket)
    db.commit()

    logger.info(f"Deleted ticket {ticket_number}")

    return {"message": "Ticket deleted successfully"}


# ============================================================================
# Attachments
# ============================================================================

def _remove_file(path: str):
    try:
        if path and os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logger.warning(f"Could not remove attachment file {path}: {e}")


@router.get("/{ticket_id}/attachments", response_model=List[TicketAttachmentSchema])
async def list_attachments(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = get_company_ticket(db, ticket_id, current_user.company_id)
    return db.query(TicketAttachment).filter(
        TicketAttachment.ticket_id == ticket.id
    ).order_by(desc(TicketAttachment.created_at), desc(TicketAttachment.id)).all()


@router.post("/{ticket_id}/attachments", response_model=TicketAttachmentSchema, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    ticket_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Attach a photo or document to a ticket"""
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(contents) > settings.max_upload_size_mb * 1024 * 1024:
        raise HTTPException(status_code=400, detail=f"File exceeds {settings.max_upload_size_mb} MB")

    original_name = os.path.basename(file.filename or "attachment")
    upload_dir = os.path.join(settings.upload_dir, "tickets", str(ticket.id))
    os.makedirs(upload_dir, exist_ok=True)
    file_path = os.path.join(upload_dir, f"{uuid.uuid4().hex}_{original_name}")

    with open(file_path, "wb") as f:
        f.write(contents)

    attachment = TicketAttachment(
        ticket_id=ticket.id,
        file_path=file_path,
        file_name=original_name,
        file_size=len(contents),
        file_type=file.content_type,
        created_by=current_user.id
    )
    db.add(attachment)
    log_file_attached(db, ticket, original_name, file.content_type, current_user)
    db.commit()
    db.refresh(attachment)

    logger.info(f"Attached {original_name} ({len(contents)} bytes) to ticket {ticket.ticket_number}")

    return attachment


@router.get("/{ticket_id}/attachments/{attachment_id}/download")
async def download_attachment(
    ticket_id: int,
    attachment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ticket = get_company_ticket(db, ticket_id, current_user.company_id)
    attachment = db.query(TicketAttachment).filter(
        TicketAttachment.id == attachment_id,
        TicketAttachment.ticket_id == ticket.id
    ).first()

    if not attachment:
        raise HTTPException(status_code=404, detail="Attachment not found")
    if not os.path.exists(attachment.file_path):
        raise HTTPException(status_code=404, detail="Attachment file is missing")

    return FileResponse(
        attachment.file_path,
        media_type=attachment.file_type or "application/octet-stream",
        filename=attachment.file_name
    )


@router.delete("/{ticket_id}/attachments/{attachment_id}")
async def delete_attachment(
    ticket_id: int,
    attachment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    require_write_access(current_user)

    ticket = get_company_ticket(db, ticket_id, current_user.company_id)
    attachment = db.query(TicketAttachment).filter(
        TicketAttachment.id == attachment_id,
        TicketAttachment.ticket_id == ticket.id
    ).first()

    if not attachment:
        raise HTTPException(status_code=404, detail="Attachment not found")

    _remove_file(attachment.file_path)
    db.delete(attachment)
    db.commit()

    return {"message": "Attachment deleted successfully"}
