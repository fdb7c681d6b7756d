"""
Maintenance schedule, client health and SLA calculations.

Preventive maintenance (PM) is due three months after the last PM visit and
the state inspection six months after the last inspection. Everything here is
pure calculation over ORM rows so the routers and tests can pass a fixed
"today"/"now".
"""
from datetime import date, datetime, timedelta
from typing import Optional, List, Dict, Any, Iterable
from dateutil.relativedelta import relativedelta

PM_INTERVAL_MONTHS = 3
INSPECTION_INTERVAL_MONTHS = 6

OVERDUE_TICKET_DAYS = 7
CONTRACT_EXPIRY_WARNING_DAYS = 60

OPEN_TICKET_STATUSES = ["new", "assigned", "in_progress", "waiting_parts"]


def next_pm_date(last_pm_date: Optional[date]) -> Optional[date]:
    if not last_pm_date:
        return None
    return last_pm_date + relativedelta(months=PM_INTERVAL_MONTHS)


def next_inspection_date(last_inspection_date: Optional[date]) -> Optional[date]:
    if not last_inspection_date:
        return None
    return last_inspection_date + relativedelta(months=INSPECTION_INTERVAL_MONTHS)


def days_until(target: Optional[date], today: Optional[date] = None) -> Optional[int]:
    if not target:
        return None
    today = today or date.today()
    return (target - today).days


def _due_in_month(next_date: Optional[date], today: date) -> bool:
    # Missing history means the visit has never been recorded and is due now
    if next_date is None:
        return True
    return next_date.year == today.year and next_date.month == today.month


def is_pm_due_this_month(elevator, today: Optional[date] = None) -> bool:
    return _due_in_month(next_pm_date(elevator.last_pm_date), today or date.today())


def is_inspection_due_this_month(elevator, today: Optional[date] = None) -> bool:
    return _due_in_month(next_inspection_date(elevator.last_inspection_date), today or date.today())


def is_pm_overdue(elevator, today: Optional[date] = None) -> bool:
    next_pm = next_pm_date(elevator.last_pm_date)
    return next_pm is not None and next_pm < (today or date.today())


def calculate_elevator_stats(elevators: List[Any], today: Optional[date] = None) -> Dict[str, Any]:
    """Totals shown above the elevator list"""
    today = today or date.today()
    by_manufacturer: Dict[str, int] = {}
    buildings = set()

    for elevator in elevators:
        manufacturer = elevator.manufacturer or "Unknown"
        by_manufacturer[manufacturer] = by_manufacturer.get(manufacturer, 0) + 1
        buildings.add(elevator.building_id)

    return {
        "total": len(elevators),
        "by_manufacturer": by_manufacturer,
        "buildings": len(buildings),
        "pm_due_this_month": sum(1 for e in elevators if is_pm_due_this_month(e, today)),
        "inspections_due_this_month": sum(1 for e in elevators if is_inspection_due_this_month(e, today)),
    }


def elevator_numbers(elevators: Iterable[Any]) -> Dict[int, int]:
    """
    Number the elevators of each building 1..n in MOL number order.
    Returns a mapping of elevator id -> number within its building.
    """
    per_building: Dict[int, List[Any]] = {}
    for elevator in elevators:
        per_building.setdefault(elevator.building_id, []).append(elevator)

    numbers = {}
    for building_elevators in per_building.values():
        ordered = sorted(building_elevators, key=lambda e: (e.mol_number or "", e.id))
        for index, elevator in enumerate(ordered, 1):
            numbers[elevator.id] = index
    return numbers


# ============================================================================
# Client health
# ============================================================================

def health_label(score: int) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "needs_attention"


def calculate_health_score(tickets: List[Any], elevators: List[Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Start at 100, subtract 10 for every ticket open longer than a week and
    8 for every elevator whose PM is overdue. Clamped to 0..100.
    """
    now = now or datetime.utcnow()
    cutoff = now - timedelta(days=OVERDUE_TICKET_DAYS)

    overdue_tickets = [
        t for t in tickets
        if t.status in OPEN_TICKET_STATUSES and t.created_at and t.created_at < cutoff
    ]
    overdue_elevators = [e for e in elevators if is_pm_overdue(e, now.date())]

    score = 100
    score -= len(overdue_tickets) * 10
    score -= len(overdue_elevators) * 8
    score = max(0, min(100, score))

    return {
        "score": score,
        "status": health_label(score),
        "overdue_tickets": len(overdue_tickets),
        "overdue_pm_elevators": len(overdue_elevators),
    }


def upcoming_events(elevators: List[Any], today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Future PM and inspection visits, soonest first"""
    today = today or date.today()
    events = []

    for elevator in elevators:
        location = elevator.building.address if elevator.building else None

        next_pm = next_pm_date(elevator.last_pm_date)
        if next_pm and next_pm > today:
            days = days_until(next_pm, today)
            events.append({
                "date": next_pm,
                "type": "PM",
                "title": f"Preventive maintenance - {elevator.mol_number}",
                "elevator_id": elevator.id,
                "location": location,
                "days_until": days,
                "priority": "high" if days < 7 else "medium",
            })

        next_inspection = next_inspection_date(elevator.last_inspection_date)
        if next_inspection and next_inspection > today:
            days = days_until(next_inspection, today)
            events.append({
                "date": next_inspection,
                "type": "Inspection",
                "title": f"State inspection - {elevator.mol_number}",
                "elevator_id": elevator.id,
                "location": location,
                "days_until": days,
                "priority": "high" if days < 14 else "low",
            })

    events.sort(key=lambda e: e["date"])
    return events


def contract_status(client, today: Optional[date] = None) -> Dict[str, Any]:
    days = days_until(client.contract_end_date, today)
    return {
        "contract_expiry_days": days,
        "is_contract_expiring_soon": days is not None and days <= CONTRACT_EXPIRY_WARNING_DAYS,
    }


# ============================================================================
# SLA
# ============================================================================

def sla_hours_for(client, severity: str) -> int:
    """Response target for a ticket severity under the client's contract"""
    critical = 2
    high = 4
    normal = 24
    if client is not None:
        critical = client.sla_critical_hours or critical
        high = client.sla_high_hours or high
        normal = client.sla_normal_hours or normal

    if severity == "critical":
        return critical
    if severity == "high":
        return high
    return normal


def is_sla_breached(ticket, sla_hours: int, now: Optional[datetime] = None) -> bool:
    """An open ticket older than its response target"""
    if ticket.status not in OPEN_TICKET_STATUSES or not ticket.created_at:
        return False
    now = now or datetime.utcnow()
    return now - ticket.created_at > timedelta(hours=sla_hours)
