"""
Schedule, health and SLA calculations
"""
from datetime import date, datetime, timedelta
from types import SimpleNamespace

from liftdesk.services.maintenance import (
    next_pm_date, next_inspection_date, days_until, is_pm_due_this_month,
    is_inspection_due_this_month, is_pm_overdue, calculate_elevator_stats, elevator_numbers,
    health_label, calculate_health_score, upcoming_events, contract_status,
    sla_hours_for, is_sla_breached
)

TODAY = date(2025, 6, 10)
NOW = datetime(2025, 6, 10, 12, 0)


def elevator(id=1, building_id=1, mol_number="41-1", manufacturer=None, last_pm_date=None, last_inspection_date=None):
    return SimpleNamespace(
        id=id,
        building_id=building_id,
        building=SimpleNamespace(address="Herzl 12"),
        mol_number=mol_number,
        manufacturer=manufacturer,
        last_pm_date=last_pm_date,
        last_inspection_date=last_inspection_date,
    )


def ticket(status="new", created_at=NOW):
    return SimpleNamespace(status=status, created_at=created_at)


def test_schedule_dates():
    assert next_pm_date(date(2025, 1, 15)) == date(2025, 4, 15)
    assert next_inspection_date(date(2025, 1, 15)) == date(2025, 7, 15)
    # Month ends are clamped
    assert next_pm_date(date(2024, 11, 30)) == date(2025, 2, 28)
    assert next_pm_date(None) is None
    assert days_until(date(2025, 6, 20), TODAY) == 10
    assert days_until(date(2025, 6, 1), TODAY) == -9
    assert days_until(None, TODAY) is None


def test_due_this_month():
    assert is_pm_due_this_month(elevator(last_pm_date=date(2025, 3, 1)), TODAY)
    assert not is_pm_due_this_month(elevator(last_pm_date=date(2025, 4, 1)), TODAY)
    # Never serviced counts as due
    assert is_pm_due_this_month(elevator(), TODAY)
    assert is_inspection_due_this_month(elevator(last_inspection_date=date(2024, 12, 25)), TODAY)
    assert not is_inspection_due_this_month(elevator(last_inspection_date=date(2025, 1, 1)), TODAY)


def test_pm_overdue():
    assert is_pm_overdue(elevator(last_pm_date=date(2025, 3, 1)), TODAY)
    assert not is_pm_overdue(elevator(last_pm_date=date(2025, 3, 10)), TODAY)
    assert not is_pm_overdue(elevator(), TODAY)


def test_elevator_stats():
    stats = calculate_elevator_stats([
        elevator(id=1, manufacturer="Otis", last_pm_date=date(2025, 5, 1)),
        elevator(id=2, building_id=2, manufacturer="Otis"),
        elevator(id=3, building_id=2),
    ], TODAY)
    assert stats["total"] == 3
    assert stats["buildings"] == 2
    assert stats["by_manufacturer"] == {"Otis": 2, "Unknown": 1}
    assert stats["pm_due_this_month"] == 2
    assert stats["inspections_due_this_month"] == 3


def test_elevator_numbers_per_building():
    numbers = elevator_numbers([
        elevator(id=10, building_id=1, mol_number="B"),
        elevator(id=11, building_id=1, mol_number="A"),
        elevator(id=12, building_id=2, mol_number="Z"),
    ])
    assert numbers == {11: 1, 10: 2, 12: 1}


def test_health_labels():
    assert health_label(100) == "excellent"
    assert health_label(80) == "excellent"
    assert health_label(79) == "good"
    assert health_label(60) == "good"
    assert health_label(40) == "fair"
    assert health_label(39) == "needs_attention"


def test_health_score():
    week_old = NOW - timedelta(days=8)
    tickets = [
        ticket(created_at=week_old),
        ticket(status="in_progress", created_at=week_old),
        ticket(status="done", created_at=week_old),
        ticket(created_at=NOW - timedelta(days=2)),
    ]
    elevators = [elevator(last_pm_date=date(2025, 1, 1)), elevator(id=2, last_pm_date=date(2025, 5, 1))]

    health = calculate_health_score(tickets, elevators, NOW)
    assert health == {"score": 72, "status": "good", "overdue_tickets": 2, "overdue_pm_elevators": 1}


def test_health_score_is_clamped():
    tickets = [ticket(created_at=NOW - timedelta(days=30)) for _ in range(15)]
    assert calculate_health_score(tickets, [], NOW)["score"] == 0
    assert calculate_health_score([], [], NOW)["score"] == 100


def test_upcoming_events():
    events = upcoming_events([
        elevator(id=1, last_pm_date=date(2025, 3, 14), last_inspection_date=date(2025, 1, 1)),
        elevator(id=2, last_pm_date=date(2025, 4, 1), last_inspection_date=date(2024, 11, 1)),
    ], TODAY)

    assert [(e["elevator_id"], e["type"]) for e in events] == [
        (1, "PM"), (1, "Inspection"), (2, "PM"),
    ]
    assert events[0]["days_until"] == 4
    assert events[0]["priority"] == "high"
    assert events[2]["priority"] == "medium"
    assert events[1]["days_until"] == 21
    assert events[1]["priority"] == "low"
    assert events[0]["location"] == "Herzl 12"


def test_contract_status():
    expiring = SimpleNamespace(contract_end_date=date(2025, 8, 9))
    assert contract_status(expiring, TODAY) == {"contract_expiry_days": 60, "is_contract_expiring_soon": True}

    later = SimpleNamespace(contract_end_date=date(2025, 8, 10))
    assert contract_status(later, TODAY)["is_contract_expiring_soon"] is False

    open_ended = SimpleNamespace(contract_end_date=None)
    assert contract_status(open_ended, TODAY) == {"contract_expiry_days": None, "is_contract_expiring_soon": False}


def test_sla_hours():
    client = SimpleNamespace(sla_critical_hours=1, sla_high_hours=3, sla_normal_hours=12)
    assert sla_hours_for(client, "critical") == 1
    assert sla_hours_for(client, "high") == 3
    assert sla_hours_for(client, "medium") == 12
    assert sla_hours_for(client, "low") == 12
    assert sla_hours_for(None, "critical") == 2
    assert sla_hours_for(None, "high") == 4
    assert sla_hours_for(None, "low") == 24


def test_sla_breach():
    assert is_sla_breached(ticket(created_at=NOW - timedelta(hours=3)), 2, NOW)
    assert not is_sla_breached(ticket(created_at=NOW - timedelta(hours=1)), 2, NOW)
    assert not is_sla_breached(ticket(status="done", created_at=NOW - timedelta(days=3)), 2, NOW)
