from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

EVENT_TYPES = ("activity", "transport", "dining", "lodging")
TRANSPORT_MODES = ("train", "bus", "flight")

# snake_case attribute -> camelCase wire key
_WIRE_KEYS = {
    "id": "id",
    "title": "title",
    "location": "location",
    "start_time": "startTime",
    "end_time": "endTime",
    "type": "type",
    "notes": "notes",
    "is_cash_only": "isCashOnly",
    "cost": "cost",
    "currency": "currency",
    "image_url": "imageUrl",
    "must_dos": "mustDos",
    "warnings": "warnings",
    "transport_mode": "transportMode",
    "seat_info": "seatInfo",
    "platform": "platform",
    "transfer_info": "transferInfo",
    "ticket_file_ref": "ticketFileRef",
}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp (or datetime) into a naive local datetime.

    Returns None for empty or unparseable values.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, datetime.min.time())
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def format_timestamp(dt: datetime) -> str:
    if dt.second == 0 and dt.microsecond == 0:
        return dt.isoformat(timespec="minutes")
    return dt.isoformat()


@dataclass(frozen=True)
class TravelEvent:
    id: str
    title: str
    start_time: datetime        # naive, local
    type: str = "activity"
    location: str = ""
    end_time: Optional[datetime] = None
    notes: str = ""
    is_cash_only: bool = False
    cost: float = 0.0
    currency: str = "EUR"
    image_url: Optional[str] = None
    must_dos: Optional[List[str]] = None
    warnings: Optional[List[str]] = None
    transport_mode: Optional[str] = None
    seat_info: Optional[str] = None
    platform: Optional[str] = None
    transfer_info: Optional[str] = None
    ticket_file_ref: Optional[str] = None

    @property
    def calendar_date(self) -> date:
        return self.start_time.date()

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for attr, key in _WIRE_KEYS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            if isinstance(value, datetime):
                value = format_timestamp(value)
            elif isinstance(value, list):
                value = list(value)
            out[key] = value
        return out


@dataclass
class EventDraft:
    """Uncommitted event data; values are raw and validated by the store on commit."""

    title: Any = None
    start_time: Any = None
    end_time: Any = None
    type: Any = None
    location: Any = None
    notes: Any = None
    is_cash_only: Any = None
    cost: Any = None
    currency: Any = None
    image_url: Any = None
    must_dos: Any = None
    warnings: Any = None
    transport_mode: Any = None
    seat_info: Any = None
    platform: Any = None
    transfer_info: Any = None
    ticket_file_ref: Any = None
    id: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EventDraft":
        kwargs = {}
        for attr, key in _WIRE_KEYS.items():
            if key in data:
                kwargs[attr] = data[key]
            elif attr in data:
                kwargs[attr] = data[attr]
        return cls(**kwargs)

    @classmethod
    def from_event(cls, event: TravelEvent) -> "EventDraft":
        return cls(**{attr: getattr(event, attr) for attr in _WIRE_KEYS})


@dataclass(frozen=True)
class Suggestion:
    title: str
    start_time: str              # "HH:MM"
    day_offset: int = 0
    location: str = ""
    type: str = "activity"
    cost: float = 0.0
    currency: Optional[str] = None
    notes: str = ""
    reason: str = ""


@dataclass
class BackupSnapshot:
    events: List[TravelEvent]
    rates: Optional[Dict[str, float]] = None
    timestamp: Optional[str] = None
    format_version: Optional[int] = None
    app: Optional[str] = None


@dataclass(frozen=True)
class DateGroup:
    date: date
    events: List[TravelEvent] = field(default_factory=list)
