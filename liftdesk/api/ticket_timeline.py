"""
Ticket Timeline API endpoints
Activity feed for service tickets plus the helpers every ticket mutation uses
to record what happened
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional, List
from datetime import datetime
import logging

from liftdesk.database import get_db
from liftdesk.models import Ticket, TicketActivity, User
from liftdesk.schemas import TicketNoteCreate, TicketActivity as TicketActivitySchema
from liftdesk.api.auth import get_current_user, require_write_access
from liftdesk.utils.formatting import (
    relative_time, status_label, severity_label, EMERGENCY_STATUS_LABELS
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["Ticket Timeline"])

ACTIVITY_TYPES = [
    "created", "assigned", "status_changed", "severity_changed", "note_added",
    "technician_arrived", "technician_started", "part_used", "file_attached", "comment"
]

NOTE_PREVIEW_LENGTH = 100


@router.get("/{ticket_id}/activities", response_model=List[TicketActivitySchema])
async def list_ticket_activities(
    ticket_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Activity feed for a ticket, newest first"""
    ticket = db.query(Ticket).filter(
        Ticket.id == ticket_id,
        Ticket.company_id == current_user.company_id
    ).first()

    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")

    activities = db.query(TicketActivity).filter(
        TicketActivity.ticket_id == ticket_id
    ).order_by(desc(TicketActivity.created_at), desc(TicketActivity.id)).all()

    now = datetime.utcnow()
    return [
        TicketActivitySchema.model_validate(activity).model_copy(
            update={"relative_time": relative_time(activity.created_at, now) if activity.created_at else None}
        )
        for activity in activities
    ]


@router.post("/{ticket_id}/notes", response_model=TicketActivitySchema, status_code=status.HTTP_201_CREATED)
async def add_ticket_note(
    ticket_id: int,
    note_data: TicketNoteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Add a note or a comment to the ticket timeline"""
    require_write_access(current_user)

    ticket = db.query(Ticket).filter(
        Ticket.id == ticket_id,
        Ticket.company_id == current_user.company_id
    ).first()

    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")

    if not note_data.note or not note_data.note.strip():
        raise HTTPException(status_code=400, detail="Note text is required")

    if note_data.activity_type == "comment":
        activity = log_comment(db, ticket, note_data.note.strip(), current_user)
    elif note_data.activity_type == "note_added":
        activity = log_note_added(db, ticket, note_data.note.strip(), current_user)
    else:
        raise HTTPException(status_code=400, detail="Invalid activity type. Must be one of: note_added, comment")

    db.commit()
    db.refresh(activity)
    return activity


# ============================================================================
# Activity Logging Helper Functions
# ============================================================================

def create_activity(
    db: Session,
    ticket: Ticket,
    activity_type: str,
    description: str,
    user: Optional[User] = None,
    extra_data: Optional[dict] = None,
    created_by_name: Optional[str] = None
) -> TicketActivity:
    """Add an activity row to the session; the caller commits"""
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {activity_type}")

    activity = TicketActivity(
        company_id=ticket.company_id,
        ticket_id=ticket.id,
        activity_type=activity_type,
        description=description,
        extra_data=extra_data or {},
        created_by=user.id if user else None,
        created_by_name=created_by_name or (user.full_name if user and user.full_name else "System")
    )
    db.add(activity)
    return activity


def log_ticket_created(db: Session, ticket: Ticket, user: User):
    return create_activity(db, ticket, "created", f'New ticket created: "{ticket.title}"', user)


def log_status_change(db: Session, ticket: Ticket, old_status: str, new_status: str, user: User, notes: str = None):
    description = f'Status changed from "{status_label(old_status)}" to "{status_label(new_status)}"'
    if notes:
        description += f" - {notes}"
    return create_activity(
        db, ticket, "status_changed", description, user,
        {"old_status": old_status, "new_status": new_status}
    )


def log_ticket_assigned(db: Session, ticket: Ticket, technician_name: str, user: User):
    return create_activity(
        db, ticket, "assigned", f"Ticket assigned to technician: {technician_name}", user,
        {"technician_name": technician_name}
    )


def log_severity_change(db: Session, ticket: Ticket, old_severity: str, new_severity: str, user: User):
    return create_activity(
        db, ticket, "severity_changed",
        f'Severity changed from "{severity_label(old_severity)}" to "{severity_label(new_severity)}"',
        user,
        {"old_severity": old_severity, "new_severity": new_severity}
    )


def log_note_added(db: Session, ticket: Ticket, note: str, user: Optional[User] = None):
    preview = note[:NOTE_PREVIEW_LENGTH]
    if len(note) > NOTE_PREVIEW_LENGTH:
        preview += "..."
    return create_activity(db, ticket, "note_added", f'Note added: "{preview}"', user, {"note_content": note})


def log_comment(db: Session, ticket: Ticket, comment: str, user: User):
    return create_activity(db, ticket, "comment", comment, user)


def log_technician_arrived(db: Session, ticket: Ticket, technician_name: str, user: User):
    return create_activity(
        db, ticket, "technician_arrived", f"{technician_name} arrived on site", user,
        {"technician_name": technician_name}
    )


def log_technician_started(db: Session, ticket: Ticket, technician_name: str, user: User):
    return create_activity(
        db, ticket, "technician_started", f"{technician_name} started working", user,
        {"technician_name": technician_name}
    )


def log_part_used(db: Session, ticket: Ticket, part_description: str, quantity: int, user: User):
    return create_activity(
        db, ticket, "part_used", f"Part used: {part_description} (quantity: {quantity})", user,
        {"part_description": part_description, "quantity": quantity}
    )


def log_file_attached(db: Session, ticket: Ticket, file_name: str, file_type: Optional[str], user: User):
    return create_activity(
        db, ticket, "file_attached", f"File attached: {file_name}", user,
        {"file_name": file_name, "file_type": file_type}
    )


# Emergency workflow

def log_emergency_status_change(db: Session, ticket: Ticket, new_status: str, technician_name: Optional[str], user: User):
    label = EMERGENCY_STATUS_LABELS.get(new_status, new_status)
    description = f"{label} - {technician_name}" if technician_name else label
    return create_activity(
        db, ticket, "status_changed", description, user,
        {"emergency_status": new_status, "technician_name": technician_name}
    )


def log_emergency_pulled(db: Session, ticket: Ticket, technician_name: str, user: User):
    return create_activity(
        db, ticket, "assigned", f"{technician_name} took the emergency call and is heading out", user,
        {"action": "emergency_pulled", "technician_name": technician_name}
    )


def log_rescue_completed(db: Session, ticket: Ticket, response_time_minutes: int, is_elevator_operational: bool, user: User):
    if is_elevator_operational:
        description = f"Rescue completed - elevator operational (response time: {response_time_minutes} minutes)"
    else:
        description = f"Rescue completed - elevator needs repair (response time: {response_time_minutes} minutes)"
    return create_activity(
        db, ticket, "status_changed", description, user,
        {
            "action": "rescue_completed",
            "response_time_minutes": response_time_minutes,
            "is_elevator_operational": is_elevator_operational
        }
    )


def log_emergency_cancelled(db: Session, ticket: Ticket, reason: str, user: User):
    return create_activity(
        db, ticket, "status_changed", f"Emergency call cancelled: {reason}", user,
        {"action": "emergency_cancelled", "cancellation_reason": reason}
    )
