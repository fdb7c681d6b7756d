"""
Dashboard API endpoints - headline counts for the home screen
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, case, and_, desc
from datetime import datetime

from liftdesk.database import get_db
from liftdesk.models import User, Ticket, Building, Elevator, Client, Part
from liftdesk.api.auth import get_current_user
from liftdesk.api.tickets import serialize_ticket
from liftdesk.services.maintenance import OPEN_TICKET_STATUSES

router = APIRouter(tags=["dashboard"])

RECENT_TICKETS = 5


@router.get("/dashboard/stats")
async def get_dashboard_stats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    company_id = user.company_id

    ticket_stats = db.query(
        func.count(Ticket.id).label('total'),
        func.sum(case((Ticket.status.in_(['new', 'assigned']), 1), else_=0)).label('open'),
        func.sum(case((Ticket.status.in_(['in_progress', 'waiting_parts']), 1), else_=0)).label('in_progress'),
        func.sum(case((Ticket.status == 'done', 1), else_=0)).label('done'),
        func.sum(case((and_(Ticket.severity == 'critical', Ticket.status.in_(OPEN_TICKET_STATUSES)), 1), else_=0)).label('critical'),
        func.sum(case((and_(Ticket.ticket_type == 'emergency', Ticket.status.in_(OPEN_TICKET_STATUSES)), 1), else_=0)).label('active_emergencies')
    ).filter(Ticket.company_id == company_id).first()

    recent = db.query(Ticket).options(
        joinedload(Ticket.building).joinedload(Building.client),
        joinedload(Ticket.assigned_technician)
    ).filter(
        Ticket.company_id == company_id
    ).order_by(desc(Ticket.created_at), desc(Ticket.id)).limit(RECENT_TICKETS).all()

    low_stock_parts = [
        p for p in db.query(Part).filter(Part.company_id == company_id, Part.is_active == True).all()
        if p.stock_status in ("out_of_stock", "critical", "low")
    ]

    now = datetime.utcnow()

    return {
        "tickets": {
            "total": ticket_stats.total or 0,
            "open": int(ticket_stats.open or 0),
            "in_progress": int(ticket_stats.in_progress or 0),
            "done": int(ticket_stats.done or 0),
            "critical": int(ticket_stats.critical or 0),
        },
        "active_emergencies": int(ticket_stats.active_emergencies or 0),
        "clients": db.query(Client).filter(Client.company_id == company_id).count(),
        "buildings": db.query(Building).filter(Building.company_id == company_id).count(),
        "elevators": db.query(Elevator).filter(Elevator.company_id == company_id).count(),
        "low_stock_parts": len(low_stock_parts),
        "recent_tickets": [serialize_ticket(t, now) for t in recent],
    }
