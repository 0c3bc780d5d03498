from __future__ import annotations

import json
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import FormatError, ValidationError
from .extract import extract
from .models import BackupSnapshot, EventDraft, TravelEvent
from .store import DEFAULT_CURRENCY, build_event

logger = logging.getLogger(__name__)

APP_SIGNATURE = "trip-ledger"
FORMAT_VERSION = 1


@dataclass
class RestoreResult:
    snapshot: BackupSnapshot
    warnings: List[str] = field(default_factory=list)


def serialize(snapshot: BackupSnapshot, now: Optional[datetime] = None) -> str:
    """Render a snapshot as the portable backup document."""
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    document = {
        "app": APP_SIGNATURE,
        "version": FORMAT_VERSION,
        "timestamp": stamp,
        "events": [e.to_dict() for e in snapshot.events],
        "rates": dict(snapshot.rates or {}),
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def backup_filename(now: Optional[datetime] = None) -> str:
    return f"travel_backup_{(now or datetime.now()).strftime('%Y-%m-%d')}.txt"


def deserialize(text: str, default_currency: str = DEFAULT_CURRENCY) -> RestoreResult:
    """Parse and normalize backup text.

    Accepts a full backup document, a bare list of events, or a document
    without rates. Raises ExtractionError when nothing parseable is found and
    FormatError when the structure is not a backup. Nothing is applied here;
    hand the snapshot to ``EventStore.restore``.
    """
    data = extract(text, allow_relaxed=True)
    warnings: List[str] = []

    if isinstance(data, list):
        data = {"events": data}
    if not isinstance(data, dict):
        raise FormatError("Invalid data format: expected an object or a list of events.")
    if "events" not in data:
        raise FormatError("Invalid backup: 'events' list is missing.")
    if not isinstance(data["events"], list):
        raise FormatError("Invalid backup: 'events' must be a list.")

    app = data.get("app")
    if app and app != APP_SIGNATURE:
        message = f"Backup was written by {app!r}; restoring it anyway."
        logger.warning(message)
        warnings.append(message)

    version = data.get("version")
    if isinstance(version, int) and not isinstance(version, bool) and version > FORMAT_VERSION:
        message = f"Backup format version {version} is newer than {FORMAT_VERSION}."
        logger.warning(message)
        warnings.append(message)

    events = _events(data["events"], default_currency, warnings)

    rates: Optional[Dict[str, float]] = None
    if "rates" in data:
        rates = _rates(data["rates"])
        if rates is None:
            message = "Ignoring malformed 'rates'; keeping the current exchange rates."
            logger.warning(message)
            warnings.append(message)

    snapshot = BackupSnapshot(
        events=events,
        rates=rates,
        timestamp=data.get("timestamp") if isinstance(data.get("timestamp"), str) else None,
        format_version=version if isinstance(version, int) else None,
        app=app if isinstance(app, str) else None,
    )
    return RestoreResult(snapshot=snapshot, warnings=warnings)


def _events(items: List[Any], default_currency: str, warnings: List[str]) -> List[TravelEvent]:
    events: List[TravelEvent] = []
    seen: set[str] = set()
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise FormatError(f"events[{i}] is not an object.")

        event_id = str(item.get("id") or "").strip()
        if event_id in seen:
            warnings.append(f"events[{i}] repeats id {event_id!r}; assigned a new id.")
            event_id = ""
        if not event_id:
            event_id = uuid.uuid4().hex

        try:
            event = build_event(EventDraft.from_dict(item), event_id, default_currency)
        except ValidationError as exc:
            raise FormatError(f"events[{i}]: {exc}") from exc
        seen.add(event.id)
        events.append(event)
    return events


def _rates(value: Any) -> Optional[Dict[str, float]]:
    if not isinstance(value, dict):
        return None
    rates: Dict[str, float] = {}
    for code, raw in value.items():
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return None
        if not math.isfinite(raw) or raw <= 0:
            return None
        rates[str(code).strip().upper()] = float(raw)
    return rates
