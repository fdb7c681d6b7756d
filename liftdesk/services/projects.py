"""
Project progress and timeline helpers
"""
from datetime import datetime
from typing import List, Dict, Any

PROJECT_TYPES = [
    "modernization", "new_installation", "component_replacement",
    "renovation", "major_repair", "other"
]
PROJECT_STATUSES = ["planning", "quotation", "approved", "in_progress", "on_hold", "completed", "cancelled"]
ACTIVE_PROJECT_STATUSES = ["planning", "quotation", "approved", "in_progress", "on_hold"]
PROJECT_PRIORITIES = ["low", "medium", "high", "urgent"]

MILESTONE_STATUSES = ["not_started", "in_progress", "completed", "cancelled"]


def calculate_progress(milestones: List[Any]) -> int:
    """Percentage of completed milestones, cancelled ones excluded"""
    relevant = [m for m in milestones if m.status != "cancelled"]
    if not relevant:
        return 0
    completed = sum(1 for m in relevant if m.status == "completed")
    return round(completed / len(relevant) * 100)


def calculate_project_stats(projects: List[Any]) -> Dict[str, Any]:
    return {
        "total": len(projects),
        "active": sum(1 for p in projects if p.status in ACTIVE_PROJECT_STATUSES),
        "in_progress": sum(1 for p in projects if p.status == "in_progress"),
        "completed": sum(1 for p in projects if p.status == "completed"),
        "total_value": round(sum(p.quoted_price or 0 for p in projects if p.status != "cancelled"), 2),
    }


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def build_timeline(project, milestones: List[Any]) -> List[Dict[str, Any]]:
    """Project creation plus completed milestones, newest first"""
    events = [{
        "id": "created",
        "date": project.created_at,
        "title": "Project created",
        "description": f"Project {project.name} was created",
        "type": "system",
    }]

    for milestone in milestones:
        if milestone.status == "completed" and milestone.completed_date:
            events.append({
                "id": milestone.id,
                "date": milestone.completed_date,
                "title": milestone.name,
                "description": milestone.description or "",
                "type": "milestone",
            })

    events.sort(key=lambda e: _as_datetime(e["date"]) if e["date"] else datetime.min, reverse=True)
    return events
