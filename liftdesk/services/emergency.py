"""
Trapped-person emergency workflow.

An emergency ticket walks a fixed sequence of sub-statuses:

    dispatched -> en_route -> on_site -> rescuing -> rescued

Moves only go forward (skipping ahead is allowed, e.g. a technician who is
already nearby goes straight to on_site). "rescued" is only reached by
completing the rescue, which also closes the ticket and records the response
time.
"""
import math
from datetime import datetime
from typing import List, Optional

EMERGENCY_FLOW = ["dispatched", "en_route", "on_site", "rescuing", "rescued"]

DEFAULT_EMERGENCY_TITLE = "Person trapped in elevator"
DEFAULT_CANCEL_REASON = "The trapped person got out of the elevator on their own"

# Sub-statuses that mean the technician is actively handling the call
WORKING_STATUSES = ["on_site", "rescuing"]


class EmergencyTransitionError(ValueError):
    """Raised when an emergency cannot move to the requested state"""


def allowed_next_statuses(current: Optional[str]) -> List[str]:
    """Sub-statuses that may be set manually from the current one"""
    if current not in EMERGENCY_FLOW or current == "rescued":
        return []
    index = EMERGENCY_FLOW.index(current)
    return [s for s in EMERGENCY_FLOW[index + 1:] if s != "rescued"]


def check_transition(current: Optional[str], target: str):
    if target not in EMERGENCY_FLOW:
        raise EmergencyTransitionError(
            f"Invalid emergency status. Must be one of: {', '.join(EMERGENCY_FLOW)}"
        )
    if target == "rescued":
        raise EmergencyTransitionError("Use the complete-rescue action to mark the person as rescued")
    if current is None:
        raise EmergencyTransitionError("Emergency is not active")
    if current == "rescued":
        raise EmergencyTransitionError("Emergency already completed")
    if target not in allowed_next_statuses(current):
        raise EmergencyTransitionError(f"Cannot move emergency from {current} back to {target}")


def response_time_minutes(created_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole minutes from the call being opened until the rescue"""
    now = now or datetime.utcnow()
    seconds = (now - created_at).total_seconds()
    return max(0, math.floor(seconds / 60))


def follow_up_title(building_address: Optional[str]) -> str:
    return f"Elevator repair after rescue - {building_address or ''}".rstrip(" -")


def follow_up_description(emergency_ticket_number: str) -> str:
    return (
        "Service ticket opened automatically after a trapped-person rescue.\n"
        f"Original emergency ticket: {emergency_ticket_number}"
    )
