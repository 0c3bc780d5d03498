from __future__ import annotations

import logging
import math
import re
import threading
import uuid
from dataclasses import replace
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from .debounce import DebouncedSaver
from .errors import NotFoundError, ValidationError
from .models import (
    EVENT_TYPES,
    TRANSPORT_MODES,
    BackupSnapshot,
    DateGroup,
    EventDraft,
    TravelEvent,
    parse_timestamp,
)

if TYPE_CHECKING:
    from .persistence import Repository

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "EUR"
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


def _coerce_cost(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        cost = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(cost):
        return 0.0
    return cost


def _string_list(value: Any, name: str) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{name} must be a list of strings")
    return [str(item).strip() for item in value if str(item).strip()]


def normalize_currency(value: Any, default: str = DEFAULT_CURRENCY) -> str:
    code = _text(value).upper() or default.upper()
    if not _CURRENCY_RE.match(code):
        raise ValidationError(f"Currency must be a 3-letter code, got {code!r}")
    return code


def build_event(draft: EventDraft, event_id: str, default_currency: str = DEFAULT_CURRENCY) -> TravelEvent:
    """Validate a draft and turn it into a committed event with ``event_id``."""
    title = _text(draft.title)
    if not title:
        raise ValidationError("Title is required")

    if draft.start_time is None or _text(draft.start_time) == "":
        raise ValidationError("Start time is required")
    start_time = parse_timestamp(draft.start_time)
    if start_time is None:
        raise ValidationError(f"Start time {draft.start_time!r} is not a valid timestamp")

    end_time = None
    if draft.end_time is not None and _text(draft.end_time):
        end_time = parse_timestamp(draft.end_time)
        if end_time is None:
            raise ValidationError(f"End time {draft.end_time!r} is not a valid timestamp")

    event_type = _text(draft.type).lower() or "activity"
    if event_type not in EVENT_TYPES:
        raise ValidationError(f"Event type must be one of {', '.join(EVENT_TYPES)}")

    cost = _coerce_cost(draft.cost)
    if cost < 0:
        raise ValidationError("Cost cannot be negative")

    transport_mode = _optional_text(draft.transport_mode)
    if transport_mode:
        transport_mode = transport_mode.lower()
        # Only meaningful on transport legs; tolerated as-is elsewhere.
        if event_type == "transport" and transport_mode not in TRANSPORT_MODES:
            raise ValidationError(f"Transport mode must be one of {', '.join(TRANSPORT_MODES)}")

    return TravelEvent(
        id=event_id,
        title=title,
        start_time=start_time,
        end_time=end_time,
        type=event_type,
        location=_text(draft.location),
        notes=_text(draft.notes),
        is_cash_only=bool(draft.is_cash_only),
        cost=cost,
        currency=normalize_currency(draft.currency, default_currency),
        image_url=_optional_text(draft.image_url),
        must_dos=_string_list(draft.must_dos, "mustDos"),
        warnings=_string_list(draft.warnings, "warnings"),
        transport_mode=transport_mode,
        seat_info=_optional_text(draft.seat_info),
        platform=_optional_text(draft.platform),
        transfer_info=_optional_text(draft.transfer_info),
        ticket_file_ref=_optional_text(draft.ticket_file_ref),
    )


def sort_events(events: Iterable[TravelEvent]) -> List[TravelEvent]:
    # sorted() is stable, so equal start times keep insertion order.
    return sorted(events, key=lambda e: e.start_time)


def group_by_date(events: Iterable[TravelEvent]) -> List[DateGroup]:
    """Split an ordered event sequence into runs sharing a calendar date."""
    groups: List[DateGroup] = []
    for event in events:
        if groups and groups[-1].date == event.calendar_date:
            groups[-1].events.append(event)
        else:
            groups.append(DateGroup(date=event.calendar_date, events=[event]))
    return groups


class EventStore:
    """In-memory itinerary plus its currency rate table.

    Commits are serialized by a lock. When a repository is given every
    mutation schedules a debounced save.
    """

    def __init__(
        self,
        repository: Optional[Repository] = None,
        default_currency: str = DEFAULT_CURRENCY,
        rates: Optional[Dict[str, float]] = None,
        save_delay_seconds: float = 0.8,
    ) -> None:
        self.default_currency = default_currency.upper()
        self.repository = repository
        self._events: List[TravelEvent] = []
        self._rates: Dict[str, float] = dict(rates or {})
        self._issued_ids: set[str] = set()
        self._lock = threading.RLock()
        self._saver: Optional[DebouncedSaver] = None
        if repository is not None:
            self._saver = DebouncedSaver(self._save, delay_seconds=save_delay_seconds)

    # -- queries -------------------------------------------------------

    @property
    def rates(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._rates)

    def get(self, event_id: str) -> Optional[TravelEvent]:
        with self._lock:
            for event in self._events:
                if event.id == event_id:
                    return event
        return None

    def list_events(self, today_only: bool = False, today: Optional[date] = None) -> List[TravelEvent]:
        with self._lock:
            ordered = sort_events(self._events)
        if not today_only:
            return ordered
        target = today or date.today()
        return [e for e in ordered if e.calendar_date == target]

    def grouped(self, today_only: bool = False, today: Optional[date] = None) -> List[DateGroup]:
        return group_by_date(self.list_events(today_only=today_only, today=today))

    # -- mutations -----------------------------------------------------

    def create(self, draft: EventDraft) -> TravelEvent:
        with self._lock:
            event = build_event(draft, self._new_id(), self.default_currency)
            self._issued_ids.add(event.id)
            self._events.append(event)
            self._register_rate(event.currency)
        self._changed()
        return event

    def update(self, event_id: str, draft: EventDraft) -> TravelEvent:
        with self._lock:
            index = self._index_of(event_id)
            if index is None:
                raise NotFoundError(event_id)
            event = build_event(draft, event_id, self.default_currency)
            self._events[index] = event
            self._register_rate(event.currency)
        self._changed()
        return event

    def delete(self, event_id: str) -> None:
        with self._lock:
            index = self._index_of(event_id)
            if index is None:
                return
            del self._events[index]
        self._changed()

    def enrich(
        self,
        event_id: str,
        image_url: Optional[str] = None,
        must_dos: Optional[List[str]] = None,
        warnings: Optional[List[str]] = None,
    ) -> Optional[TravelEvent]:
        with self._lock:
            index = self._index_of(event_id)
            if index is None:
                return None
            current = self._events[index]
            updated = replace(
                current,
                image_url=image_url if image_url is not None else current.image_url,
                must_dos=list(must_dos) if must_dos is not None else current.must_dos,
                warnings=list(warnings) if warnings is not None else current.warnings,
            )
            self._events[index] = updated
        self._changed()
        return updated

    def set_rate(self, code: str, value: Any) -> None:
        code = normalize_currency(code)
        try:
            rate = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Rate for {code} must be a number") from None
        if not math.isfinite(rate) or rate <= 0:
            raise ValidationError(f"Rate for {code} must be positive")
        with self._lock:
            self._rates[code] = rate
        self._changed()

    def ensure_rate(self, code: str) -> None:
        with self._lock:
            added = self._register_rate(normalize_currency(code))
        if added:
            self._changed()

    def snapshot(self) -> BackupSnapshot:
        with self._lock:
            return BackupSnapshot(events=list(self._events), rates=dict(self._rates))

    def restore(self, snapshot: BackupSnapshot) -> None:
        """Replace every event (and the rate table when the snapshot has one)."""
        with self._lock:
            self._events = list(snapshot.events)
            self._issued_ids.update(e.id for e in self._events)
            if snapshot.rates is not None:
                self._rates = dict(snapshot.rates)
            for event in self._events:
                self._register_rate(event.currency)
        self._changed()

    # -- persistence ---------------------------------------------------

    def load(self) -> None:
        if self.repository is None:
            return
        stored = self.repository.load()
        with self._lock:
            if stored.events is not None:
                self._events = _unique(stored.events)
                self._issued_ids.update(e.id for e in self._events)
            if stored.rates is not None:
                self._rates.update(stored.rates)
            for event in self._events:
                self._register_rate(event.currency)

    def flush(self) -> None:
        if self._saver is not None:
            self._saver.flush()

    def _save(self) -> None:
        self.repository.save(self.snapshot())

    def _changed(self) -> None:
        if self._saver is not None:
            self._saver.schedule()

    # -- helpers -------------------------------------------------------

    def _new_id(self) -> str:
        while True:
            candidate = uuid.uuid4().hex
            if candidate not in self._issued_ids:
                return candidate

    def _index_of(self, event_id: str) -> Optional[int]:
        for i, event in enumerate(self._events):
            if event.id == event_id:
                return i
        return None

    def _register_rate(self, code: str) -> bool:
        if code in self._rates:
            return False
        self._rates[code] = 1.0
        return True


def _unique(events: Iterable[TravelEvent]) -> List[TravelEvent]:
    seen: set[str] = set()
    out: List[TravelEvent] = []
    for event in events:
        if event.id in seen:
            logger.warning("Dropping stored event with duplicate id %s", event.id)
            continue
        seen.add(event.id)
        out.append(event)
    return out
