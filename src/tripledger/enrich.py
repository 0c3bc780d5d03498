from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Set

from .assistant import TripAssistant
from .images import WikiImageResolver
from .models import TravelEvent
from .store import EventStore

logger = logging.getLogger(__name__)


class EnrichmentCoordinator:
    """Adds must-dos, warnings and an image to events.

    At most one request per event id is in flight; a second trigger for the
    same id is ignored. Different ids proceed independently. A response that
    lands after local edits still merges, touching only the enrichment fields.
    """

    def __init__(
        self,
        store: EventStore,
        assistant: TripAssistant,
        images: Optional[WikiImageResolver] = None,
        max_workers: int = 4,
    ) -> None:
        self.store = store
        self.assistant = assistant
        self.images = images
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._max_workers = max_workers

    def is_in_flight(self, event_id: str) -> bool:
        with self._lock:
            return event_id in self._in_flight

    def enrich(self, event_id: str) -> Optional[TravelEvent]:
        """Enrich synchronously. Returns None when skipped (in flight or unknown id).

        ExtractionError from an unusable service response propagates after
        the id is released.
        """
        if not self._claim(event_id):
            logger.info("Enrichment for %s already in flight; ignoring", event_id)
            return None
        return self._enrich_claimed(event_id)

    def _enrich_claimed(self, event_id: str) -> Optional[TravelEvent]:
        try:
            event = self.store.get(event_id)
            if event is None:
                return None
            guide = self.assistant.describe_place(event)
            image_url = None
            if self.images is not None:
                image_url = self.images.lookup(guide.image_search_term or event.title)
            return self.store.enrich(
                event_id,
                image_url=image_url,
                must_dos=guide.must_dos,
                warnings=guide.warnings,
            )
        finally:
            self._release(event_id)

    def submit(self, event_id: str) -> Optional[Future]:
        """Enrich in the background; None when the id is already in flight."""
        if not self._claim(event_id):
            return None
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="enrich")
        return self._executor.submit(self._enrich_claimed, event_id)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _claim(self, event_id: str) -> bool:
        with self._lock:
            if event_id in self._in_flight:
                return False
            self._in_flight.add(event_id)
            return True

    def _release(self, event_id: str) -> None:
        with self._lock:
            self._in_flight.discard(event_id)
