"""
Display helpers shared by the routers: status labels, relative times,
emergency timers and contact links.
"""
import re
from datetime import datetime
from typing import Optional, Dict
from urllib.parse import quote

TICKET_STATUS_LABELS = {
    "new": "New",
    "assigned": "Assigned",
    "in_progress": "In progress",
    "waiting_parts": "Waiting for parts",
    "done": "Done",
    "cancelled": "Cancelled",
}

SEVERITY_LABELS = {
    "low": "Low",
    "medium": "Medium",
    "high": "High",
    "critical": "Critical",
}

EMERGENCY_STATUS_LABELS = {
    "dispatched": "Dispatched to technician",
    "en_route": "Technician en route",
    "on_site": "Technician on site",
    "rescuing": "Rescue in progress",
    "rescued": "Rescue completed",
}


def status_label(status: Optional[str]) -> str:
    return TICKET_STATUS_LABELS.get(status, status or "")


def severity_label(severity: Optional[str]) -> str:
    return SEVERITY_LABELS.get(severity, severity or "")


def relative_time(moment: datetime, now: Optional[datetime] = None) -> str:
    """Human friendly age of a timestamp, e.g. '5 minutes ago'"""
    now = now or datetime.utcnow()
    diff_minutes = int((now - moment).total_seconds() // 60)
    diff_hours = diff_minutes // 60
    diff_days = diff_hours // 24

    if diff_minutes < 1:
        return "just now"
    if diff_minutes == 1:
        return "a minute ago"
    if diff_minutes < 60:
        return f"{diff_minutes} minutes ago"
    if diff_hours == 1:
        return "an hour ago"
    if diff_hours < 24:
        return f"{diff_hours} hours ago"
    if diff_days == 1:
        return "yesterday"
    if diff_days < 7:
        return f"{diff_days} days ago"

    diff_weeks = diff_days // 7
    if diff_weeks == 1:
        return "a week ago"
    if diff_weeks < 4:
        return f"{diff_weeks} weeks ago"

    return moment.strftime("%d/%m/%Y")


def elapsed_timer(started_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """HH:MM:SS since the emergency timer started"""
    if not started_at:
        return "00:00:00"
    now = now or datetime.utcnow()
    total_seconds = max(0, int((now - started_at).total_seconds()))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


# ============================================================================
# Contact links
# ============================================================================

def _dial_digits(phone: str) -> str:
    # Keep a leading + for international numbers
    cleaned = re.sub(r"[^\d+]", "", phone)
    return cleaned[0] + cleaned[1:].replace("+", "") if cleaned else ""


def tel_link(phone: Optional[str]) -> Optional[str]:
    if not phone or not _dial_digits(phone):
        return None
    return f"tel:{_dial_digits(phone)}"


def sms_link(phone: Optional[str]) -> Optional[str]:
    if not phone or not _dial_digits(phone):
        return None
    return f"sms:{_dial_digits(phone)}"


def whatsapp_link(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    return f"https://wa.me/{digits}" if digits else None


def mailto_link(email: Optional[str], subject: Optional[str] = None) -> Optional[str]:
    if not email:
        return None
    link = f"mailto:{email.strip()}"
    if subject:
        link += f"?subject={quote(subject)}"
    return link


def contact_links(phone: Optional[str] = None, email: Optional[str] = None) -> Dict[str, Optional[str]]:
    return {
        "tel": tel_link(phone),
        "sms": sms_link(phone),
        "whatsapp": whatsapp_link(phone),
        "mailto": mailto_link(email),
    }
