# Helper functions for the application
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from clinic_booking.models.schemas import ClientAppointment


def iso_week_key(day: date) -> str:
    # ISO-8601 week, e.g. "2025-W07"
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def parse_iso_date(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return None


def embedded(payload: Any, key: str) -> List[Dict[str, Any]]:
    # Phorest wraps collections as {"_embedded": {key: [...]}, "page": {...}}
    if not isinstance(payload, dict):
        return []
    return (payload.get("_embedded") or {}).get(key) or []


def format_client_appointments(appointments: List[Dict[str, Any]]) -> List[ClientAppointment]:
    # Map raw Phorest appointments to the shape the front end expects
    formatted = []

    for apt in appointments:
        formatted.append(ClientAppointment(
            id=apt.get("appointmentId") or apt.get("id"),
            serviceId=apt.get("serviceId"),
            serviceName=apt.get("serviceName"),
            staffId=apt.get("staffId"),
            staffName=apt.get("staffName"),
            startTime=apt.get("startTime"),
            endTime=apt.get("endTime"),
            duration=apt.get("duration"),
            status=apt.get("status") or apt.get("activationState"),
            notes=apt.get("notes"),
            cost=apt.get("totalCost", apt.get("cost")),
        ))

    return formatted
