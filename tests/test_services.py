"""
Stock, workload, emergency, purchasing and project helpers
"""
from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from liftdesk.services.inventory import get_stock_status, calculate_part_stats
from liftdesk.services.performance import calculate_technician_stats, monthly_completions
from liftdesk.services.emergency import (
    EmergencyTransitionError, allowed_next_statuses, check_transition,
    response_time_minutes, follow_up_title, follow_up_description
)
from liftdesk.services.purchasing import (
    calculate_supplier_metrics, expected_delivery, line_total, order_total, received_status
)
from liftdesk.services.projects import calculate_progress, calculate_project_stats, build_timeline

NOW = datetime(2025, 6, 10, 12, 0)


# ============================================================================
# Inventory
# ============================================================================

@pytest.mark.parametrize("quantity, expected", [
    (0, "out_of_stock"),
    (-1, "out_of_stock"),
    (3, "critical"),
    (5, "critical"),
    (8, "low"),
    (10, "low"),
    (11, "adequate"),
])
def test_stock_status(quantity, expected):
    assert get_stock_status(quantity, minimum_stock_level=10, reorder_point=5) == expected


def test_part_stats():
    parts = [
        SimpleNamespace(stock_status="adequate", quantity_in_stock=20, unit_price=45.0),
        SimpleNamespace(stock_status="low", quantity_in_stock=8, unit_price=10.0),
        SimpleNamespace(stock_status="critical", quantity_in_stock=2, unit_price=None),
        SimpleNamespace(stock_status="out_of_stock", quantity_in_stock=0, unit_price=99.0),
    ]
    assert calculate_part_stats(parts) == {"total": 4, "low_stock": 2, "out_of_stock": 1, "total_value": 980.0}


# ============================================================================
# Technician performance
# ============================================================================

def _ticket(status, created_at=None, completed_at=None):
    return SimpleNamespace(status=status, created_at=created_at or NOW, completed_at=completed_at)


def test_technician_stats():
    tickets = [
        _ticket("done", NOW - timedelta(hours=10), NOW - timedelta(hours=6)),
        _ticket("done", NOW - timedelta(hours=3), NOW - timedelta(hours=1)),
        _ticket("in_progress"),
        _ticket("waiting_parts"),
        _ticket("new"),
    ]
    stats = calculate_technician_stats(tickets)
    assert stats["tickets_assigned"] == 5
    assert stats["tickets_completed"] == 2
    assert stats["tickets_in_progress"] == 2
    assert stats["completion_rate"] == 40.0
    assert stats["average_resolution_hours"] == 3.0
    assert stats["by_status"] == {"done": 2, "in_progress": 1, "waiting_parts": 1, "new": 1}


def test_technician_stats_without_tickets():
    stats = calculate_technician_stats([])
    assert stats["completion_rate"] == 0
    assert stats["average_resolution_hours"] is None


def test_monthly_completions():
    tickets = [
        _ticket("done", completed_at=datetime(2025, 6, 2)),
        _ticket("done", completed_at=datetime(2025, 4, 30, 23, 0)),
        _ticket("done", completed_at=datetime(2024, 12, 1)),
        _ticket("cancelled", completed_at=datetime(2025, 6, 3)),
    ]
    months = monthly_completions(tickets, NOW)
    assert [m["month"] for m in months] == ["2025-01", "2025-02", "2025-03", "2025-04", "2025-05", "2025-06"]
    assert [m["completed"] for m in months] == [0, 0, 0, 1, 0, 1]
    assert months[-1]["label"] == "Jun"


# ============================================================================
# Emergency workflow
# ============================================================================

def test_allowed_next_statuses():
    assert allowed_next_statuses("dispatched") == ["en_route", "on_site", "rescuing"]
    assert allowed_next_statuses("rescuing") == []
    assert allowed_next_statuses("rescued") == []
    assert allowed_next_statuses(None) == []


def test_check_transition():
    check_transition("dispatched", "on_site")
    check_transition("en_route", "rescuing")

    with pytest.raises(EmergencyTransitionError):
        check_transition("on_site", "en_route")
    with pytest.raises(EmergencyTransitionError):
        check_transition("on_site", "on_site")
    with pytest.raises(EmergencyTransitionError):
        check_transition("rescuing", "rescued")
    with pytest.raises(EmergencyTransitionError):
        check_transition(None, "en_route")
    with pytest.raises(EmergencyTransitionError, match="Invalid emergency status"):
        check_transition("dispatched", "teleported")


def test_response_time_minutes():
    assert response_time_minutes(NOW - timedelta(minutes=17, seconds=59), NOW) == 17
    assert response_time_minutes(NOW - timedelta(seconds=30), NOW) == 0
    assert response_time_minutes(NOW + timedelta(minutes=1), NOW) == 0


def test_follow_up_ticket_text():
    assert follow_up_title("Herzl 12") == "Elevator repair after rescue - Herzl 12"
    assert follow_up_title(None) == "Elevator repair after rescue"
    assert "TKT-20250610-0003" in follow_up_description("TKT-20250610-0003")


# ============================================================================
# Purchasing
# ============================================================================

def _po(status="received", total_amount=100.0, order_date=date(2025, 5, 1),
        expected=date(2025, 5, 10), actual=None, quality_rating=None):
    return SimpleNamespace(
        status=status,
        total_amount=total_amount,
        order_date=order_date,
        expected_delivery_date=expected,
        actual_delivery_date=actual,
        quality_rating=quality_rating,
    )


def test_supplier_metrics():
    metrics = calculate_supplier_metrics([
        _po(actual=date(2025, 5, 9), quality_rating=5),
        _po(order_date=date(2025, 5, 20), expected=date(2025, 5, 25), actual=date(2025, 5, 28), quality_rating=2),
        _po(status="ordered", total_amount=50.0, order_date=date(2025, 6, 1)),
        _po(status="cancelled", total_amount=1000.0, order_date=date(2025, 6, 5)),
    ])
    assert metrics == {
        "total_orders": 3,
        "total_spend": 250.0,
        "last_order_date": date(2025, 6, 1),
        "on_time_delivery_rate": 50.0,
        "quality_rating_average": 3.5,
    }


def test_supplier_metrics_without_orders():
    metrics = calculate_supplier_metrics([])
    assert metrics["total_orders"] == 0
    assert metrics["last_order_date"] is None
    assert metrics["on_time_delivery_rate"] is None


def test_order_arithmetic():
    assert expected_delivery(date(2025, 3, 1), 10) == date(2025, 3, 11)
    assert expected_delivery(date(2025, 3, 1), 0) == date(2025, 3, 1)
    assert expected_delivery(date(2025, 3, 1), None) is None
    assert line_total(3, 19.99) == 59.97
    assert order_total([SimpleNamespace(total_price=10.5), SimpleNamespace(total_price=None)]) == 10.5


def test_received_status():
    def item(ordered, received):
        return SimpleNamespace(quantity_ordered=ordered, quantity_received=received)

    assert received_status([item(4, 0), item(2, 0)]) is None
    assert received_status([item(4, 4), item(2, 0)]) == "partially_received"
    assert received_status([item(4, 4), item(2, 2)]) == "received"
    assert received_status([]) is None


# ============================================================================
# Projects
# ============================================================================

def _milestone(status, id=1, name="Survey", completed_date=None):
    return SimpleNamespace(id=id, name=name, description=None, status=status, completed_date=completed_date)


def test_progress_ignores_cancelled_milestones():
    assert calculate_progress([]) == 0
    assert calculate_progress([_milestone("completed"), _milestone("not_started"), _milestone("cancelled")]) == 50
    assert calculate_progress([_milestone("completed"), _milestone("in_progress"), _milestone("not_started")]) == 33
    assert calculate_progress([_milestone("cancelled")]) == 0


def test_project_stats():
    projects = [
        SimpleNamespace(status="planning", quoted_price=100.0),
        SimpleNamespace(status="in_progress", quoted_price=None),
        SimpleNamespace(status="completed", quoted_price=50.0),
        SimpleNamespace(status="cancelled", quoted_price=999.0),
    ]
    assert calculate_project_stats(projects) == {
        "total": 4, "active": 2, "in_progress": 1, "completed": 1, "total_value": 150.0
    }


def test_project_timeline():
    project = SimpleNamespace(name="Cabin modernization", created_at=datetime(2025, 1, 5, 9, 0))
    events = build_timeline(project, [
        _milestone("completed", id=1, name="Survey", completed_date=date(2025, 2, 1)),
        _milestone("completed", id=2, name="Controller", completed_date=date(2025, 3, 1)),
        _milestone("in_progress", id=3, name="Handover"),
    ])
    assert [e["title"] for e in events] == ["Controller", "Survey", "Project created"]
    assert events[-1]["type"] == "system"
