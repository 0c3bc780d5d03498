from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from icalendar import Calendar, Event

from .models import TravelEvent

DEFAULT_DURATION = timedelta(hours=1)


@dataclass(frozen=True)
class CalendarEntry:
    start: datetime
    end: datetime
    title: str
    location: str
    notes: str


def calendar_entry(event: TravelEvent) -> CalendarEntry:
    """Fields a calendar exporter needs; a missing end time means one hour."""
    return CalendarEntry(
        start=event.start_time,
        end=event.end_time or event.start_time + DEFAULT_DURATION,
        title=event.title,
        location=event.location,
        notes=event.notes,
    )


def _utc(dt: datetime) -> datetime:
    # Stored times are naive local; calendars get UTC.
    return dt.astimezone(timezone.utc)


def to_ics(event: TravelEvent) -> bytes:
    entry = calendar_entry(event)
    cal = Calendar()
    cal.add("prodid", "-//Trip Ledger//EN")
    cal.add("version", "2.0")

    ev = Event()
    ev.add("uid", f"{event.id}@tripledger")
    ev.add("summary", entry.title)
    ev.add("dtstart", _utc(entry.start))
    ev.add("dtend", _utc(entry.end))
    if entry.location:
        ev.add("location", entry.location)
    ev.add("description", f"{entry.notes}\n\nGenerated by Trip Ledger".lstrip())
    cal.add_component(ev)
    return cal.to_ical()


def ics_filename(event: TravelEvent) -> str:
    return re.sub(r"\s+", "_", event.title.strip()) + ".ics"
