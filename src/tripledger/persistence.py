from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .errors import ValidationError
from .models import BackupSnapshot, EventDraft, TravelEvent
from .store import DEFAULT_CURRENCY, build_event

logger = logging.getLogger(__name__)

EVENTS_FILE = "events.json"
RATES_FILE = "rates.json"


@dataclass
class StoredState:
    events: Optional[List[TravelEvent]] = None   # None when never saved
    rates: Optional[Dict[str, float]] = None


class Repository(Protocol):
    def load(self) -> StoredState: ...

    def save(self, snapshot: BackupSnapshot) -> None: ...


class MemoryRepository:
    """Keeps the last saved snapshot in memory; handy for tests and dry runs."""

    def __init__(self, state: Optional[StoredState] = None) -> None:
        self.state = state or StoredState()
        self.saves = 0

    def load(self) -> StoredState:
        return self.state

    def save(self, snapshot: BackupSnapshot) -> None:
        self.saves += 1
        self.state = StoredState(events=list(snapshot.events), rates=dict(snapshot.rates or {}))


class JsonFileRepository:
    """Two JSON documents in one directory: the event list and the rate table."""

    def __init__(self, directory: str | Path, default_currency: str = DEFAULT_CURRENCY) -> None:
        self.directory = Path(directory).expanduser()
        self.default_currency = default_currency

    @property
    def events_path(self) -> Path:
        return self.directory / EVENTS_FILE

    @property
    def rates_path(self) -> Path:
        return self.directory / RATES_FILE

    def load(self) -> StoredState:
        return StoredState(
            events=self._load_events(),
            rates=self._load_rates(),
        )

    def save(self, snapshot: BackupSnapshot) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        events = [e.to_dict() for e in snapshot.events]
        self.events_path.write_text(json.dumps(events, indent=2, ensure_ascii=False), encoding="utf-8")
        self.rates_path.write_text(json.dumps(snapshot.rates or {}, indent=2), encoding="utf-8")
        logger.debug("Saved %d events to %s", len(events), self.directory)

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable %s: %s", path, exc)
            return None

    def _load_events(self) -> Optional[List[TravelEvent]]:
        data = self._read_json(self.events_path)
        if data is None:
            return None
        if not isinstance(data, list):
            logger.warning("Ignoring %s: expected a list of events", self.events_path)
            return None

        events: List[TravelEvent] = []
        for i, item in enumerate(data):
            if not isinstance(item, dict) or not str(item.get("id") or "").strip():
                logger.warning("Skipping stored event #%d: not an event object with an id", i)
                continue
            try:
                events.append(build_event(EventDraft.from_dict(item), str(item["id"]), self.default_currency))
            except ValidationError as exc:
                logger.warning("Skipping stored event #%d: %s", i, exc)
        return events

    def _load_rates(self) -> Optional[Dict[str, float]]:
        data = self._read_json(self.rates_path)
        if data is None:
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring %s: expected a mapping of currency rates", self.rates_path)
            return None

        rates: Dict[str, float] = {}
        for code, value in data.items():
            try:
                rate = float(value)
            except (TypeError, ValueError):
                rate = math.nan
            if not math.isfinite(rate) or rate <= 0:
                logger.warning("Skipping stored rate %s=%r", code, value)
                continue
            rates[str(code).upper()] = rate
        return rates
