# Slot generation helpers for providers without an availability endpoint
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from clinic_booking.models.schemas import TimeSlot
from clinic_booking.utils.timezones import LOCAL_FORMAT

logger = logging.getLogger(__name__)

# Opening hours by weekday (Monday = 0); None means closed
BUSINESS_HOURS: Dict[int, Optional[Tuple[int, int]]] = {
    0: (9, 18),
    1: (9, 18),
    2: (9, 18),
    3: (9, 18),
    4: (9, 18),
    5: (9, 17),
    6: None,
}

MIN_NOTICE_MINUTES = 15


def business_hours_for(day: date) -> Optional[Tuple[int, int]]:
    return BUSINESS_HOURS.get(day.weekday())


def generate_time_slots(
    day: date,
    open_hour: int,
    close_hour: int,
    duration: int,
    now: Optional[datetime] = None,
) -> List[TimeSlot]:
    """Candidate start times between opening and closing.

    Slots start every ``max(15, duration // 4)`` minutes and must finish by
    closing time. ``now`` is naive clinic-local time; on that day, slots
    starting within the minimum notice period are left out.
    """
    if now is not None and day < now.date():
        return []

    length = timedelta(minutes=duration)
    step = timedelta(minutes=max(15, duration // 4))
    start = datetime.combine(day, time(open_hour))
    closing = datetime.combine(day, time(close_hour))
    earliest = None
    if now is not None and now.date() == day:
        earliest = now + timedelta(minutes=MIN_NOTICE_MINUTES)

    slots = []
    while start + length <= closing:
        if earliest is None or start > earliest:
            slots.append(TimeSlot(
                time=start.strftime("%H:%M"),
                available=True,
                startTime=start.strftime(LOCAL_FORMAT),
                endTime=(start + length).strftime(LOCAL_FORMAT),
            ))
        start += step

    return slots


def _appointment_window(appointment: Dict[str, Any]) -> Optional[Tuple[datetime, datetime]]:
    # Phorest keeps the date apart from the start and end times
    day = appointment.get("appointmentDate")
    start = appointment.get("startTime")
    end = appointment.get("endTime")
    if not day or not start or not end:
        return None
    try:
        return datetime.fromisoformat(f"{day}T{start}"), datetime.fromisoformat(f"{day}T{end}")
    except ValueError:
        logger.warning(f"Ignoring appointment with unreadable times: {day} {start}-{end}")
        return None


def mark_booked_slots(slots: List[TimeSlot], appointments: List[Dict[str, Any]]) -> List[TimeSlot]:
    """Mark slots overlapping an existing appointment as unavailable."""
    windows = [w for w in (_appointment_window(a) for a in appointments) if w]
    marked = []

    for slot in slots:
        slot_start = datetime.fromisoformat(slot.startTime)
        slot_end = datetime.fromisoformat(slot.endTime)
        taken = any(slot_start < apt_end and slot_end > apt_start for apt_start, apt_end in windows)
        marked.append(slot.model_copy(update={"available": slot.available and not taken}))

    return marked
