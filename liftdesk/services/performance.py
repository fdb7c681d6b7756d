"""
Technician workload and performance figures derived from their tickets
"""
from datetime import datetime
from typing import List, Dict, Any, Optional
from dateutil.relativedelta import relativedelta

MONTHS_OF_HISTORY = 6


def calculate_technician_stats(tickets: List[Any]) -> Dict[str, Any]:
    assigned = len(tickets)
    completed = [t for t in tickets if t.status == "done"]
    in_progress = sum(1 for t in tickets if t.status in ("in_progress", "waiting_parts"))

    resolution_hours = [
        (t.completed_at - t.created_at).total_seconds() / 3600
        for t in completed
        if t.completed_at and t.created_at
    ]
    average_resolution = round(sum(resolution_hours) / len(resolution_hours), 1) if resolution_hours else None

    by_status: Dict[str, int] = {}
    for t in tickets:
        by_status[t.status] = by_status.get(t.status, 0) + 1

    return {
        "tickets_assigned": assigned,
        "tickets_completed": len(completed),
        "tickets_in_progress": in_progress,
        "completion_rate": round(len(completed) / assigned * 100, 1) if assigned else 0,
        "average_resolution_hours": average_resolution,
        "by_status": by_status,
    }


def monthly_completions(tickets: List[Any], now: Optional[datetime] = None, months: int = MONTHS_OF_HISTORY) -> List[Dict[str, Any]]:
    """Completed tickets per calendar month, oldest month first, current month included"""
    now = now or datetime.utcnow()
    current_month = datetime(now.year, now.month, 1)

    result = []
    for offset in range(months - 1, -1, -1):
        month_start = current_month - relativedelta(months=offset)
        month_end = month_start + relativedelta(months=1)
        completed = sum(
            1 for t in tickets
            if t.status == "done" and t.completed_at and month_start <= t.completed_at < month_end
        )
        result.append({
            "month": month_start.strftime("%Y-%m"),
            "label": month_start.strftime("%b"),
            "completed": completed,
        })
    return result
