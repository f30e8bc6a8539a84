# Conversion between clinic local time and the provider's UTC wire format
from datetime import datetime, timezone, tzinfo
from typing import Optional

LOCAL_FORMAT = "%Y-%m-%dT%H:%M:%S"


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z`` for UTC."""
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def to_provider_time(value: str, local_tz: tzinfo) -> str:
    """Convert a clinic-local start time to the provider's UTC format.

    Naive input is read as clinic local time. Input that already carries an
    offset (including ``Z``) is converted from that offset, so converting an
    already converted value returns it unchanged. With a UTC+8 clinic,
    ``2025-03-10T09:30`` becomes ``2025-03-10T01:30:00.000Z``.
    """
    moment = parse_datetime(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=local_tz)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime(LOCAL_FORMAT) + f".{moment.microsecond // 1000:03d}Z"


def to_local_time(value: str, local_tz: tzinfo) -> str:
    """Convert a provider UTC timestamp back to clinic local ``YYYY-MM-DDTHH:MM:SS``."""
    moment = parse_datetime(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(local_tz).strftime(LOCAL_FORMAT)


def local_now(local_tz: tzinfo, now: Optional[datetime] = None) -> datetime:
    # Naive wall-clock time at the clinic
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(local_tz).replace(tzinfo=None)
