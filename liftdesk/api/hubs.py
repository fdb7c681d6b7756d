"""
Client Hub and Site Hub: aggregated views over a client or a single building
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
from datetime import datetime
import logging

from liftdesk.database import get_db
from liftdesk.models import Client, Building, Elevator, Ticket, User
from liftdesk.schemas import (
    Client as ClientSchema, Building as BuildingSchema, Elevator as ElevatorSchema
)
from liftdesk.api.auth import get_current_user
from liftdesk.api.tickets import serialize_ticket
from liftdesk.services.maintenance import (
    calculate_health_score, upcoming_events, contract_status, elevator_numbers
)
from liftdesk.utils.formatting import contact_links

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Hubs"])

RECENT_TICKETS = 5


def _elevator_rows(elevators):
    numbers = elevator_numbers(elevators)
    return [
        ElevatorSchema.model_validate(e).model_copy(update={"elevator_number": numbers.get(e.id)})
        for e in elevators
    ]


@router.get("/client-hub/{client_id}")
async def get_client_hub(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Everything about one client: sites, elevators, tickets, health and contract"""
    client = db.query(Client).filter(
        Client.id == client_id,
        Client.company_id == current_user.company_id
    ).first()
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")

    buildings = db.query(Building).filter(
        Building.client_id == client.id
    ).order_by(Building.address).all()
    building_ids = [b.id for b in buildings]

    elevators = []
    tickets = []
    if building_ids:
        elevators = db.query(Elevator).options(
            joinedload(Elevator.building)
        ).filter(Elevator.building_id.in_(building_ids)).order_by(Elevator.building_id, Elevator.mol_number).all()

        tickets = db.query(Ticket).options(
            joinedload(Ticket.building).joinedload(Building.client),
            joinedload(Ticket.elevator),
            joinedload(Ticket.assigned_technician)
        ).filter(Ticket.building_id.in_(building_ids)).order_by(desc(Ticket.created_at), desc(Ticket.id)).all()

    now = datetime.utcnow()
    ticket_rows = [serialize_ticket(t, now) for t in tickets]
    active_tickets = [t for t in ticket_rows if t.status not in ("done", "cancelled")]

    elevator_counts = {}
    for e in elevators:
        elevator_counts[e.building_id] = elevator_counts.get(e.building_id, 0) + 1

    return {
        "client": ClientSchema.model_validate(client),
        "buildings": [
            {
                **BuildingSchema.model_validate(b).model_dump(),
                "elevator_count": elevator_counts.get(b.id, 0)
            }
            for b in buildings
        ],
        "elevators": _elevator_rows(elevators),
        "tickets": ticket_rows,
        "active_tickets": active_tickets,
        "recent_tickets": ticket_rows[:RECENT_TICKETS],
        "sla_breaches": [t for t in active_tickets if t.sla_breached],
        "health": calculate_health_score(tickets, elevators, now),
        "upcoming_events": upcoming_events(elevators, now.date()),
        "contract": contract_status(client, now.date()),
        "sla": {
            "critical_hours": client.sla_critical_hours,
            "high_hours": client.sla_high_hours,
            "normal_hours": client.sla_normal_hours,
        },
        "contact": contact_links(client.contact_phone, client.contact_email),
    }


@router.get("/site-hub/{building_id}")
async def get_site_hub(
    building_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """One building with its client, elevators and tickets"""
    building = db.query(Building).options(
        joinedload(Building.client)
    ).filter(
        Building.id == building_id,
        Building.company_id == current_user.company_id
    ).first()
    if not building:
        raise HTTPException(status_code=404, detail="Building not found")

    elevators = db.query(Elevator).filter(
        Elevator.building_id == building.id
    ).order_by(Elevator.mol_number).all()

    tickets = db.query(Ticket).options(
        joinedload(Ticket.elevator),
        joinedload(Ticket.assigned_technician)
    ).filter(Ticket.building_id == building.id).order_by(desc(Ticket.created_at), desc(Ticket.id)).all()

    now = datetime.utcnow()
    client = building.client

    return {
        "building": BuildingSchema.model_validate(building),
        "client": ClientSchema.model_validate(client) if client else None,
        "elevators": _elevator_rows(elevators),
        "tickets": [serialize_ticket(t, now) for t in tickets],
        "upcoming_events": upcoming_events(elevators, now.date()),
        "contact": contact_links(client.contact_phone, client.contact_email) if client else contact_links(),
    }
