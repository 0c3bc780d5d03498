from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class DebouncedSaver:
    """Coalesces bursts of mutations into a single write.

    Each ``schedule()`` cancels the pending timer and starts a new one, so the
    callback runs once the store has been quiet for ``delay_seconds``. A crash
    inside that window loses the latest mutation.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        delay_seconds: float = 0.8,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.callback = callback
        self.delay_seconds = delay_seconds
        self.timer_factory = timer_factory or threading.Timer
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._lock = threading.Lock()
        # Callback runs never overlap.
        self._run_lock = threading.Lock()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = self.timer_factory(self.delay_seconds, lambda: self._fire(generation))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> None:
        """Run a pending save right away."""
        with self._lock:
            if self._timer is None:
                return
            self._timer.cancel()
            self._timer = None
        self._run()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        with self._run_lock:
            try:
                self.callback()
            except Exception:  # noqa: BLE001
                logger.exception("Debounced save failed; will retry on next change")
