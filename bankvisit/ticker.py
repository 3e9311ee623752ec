"""Periodic driver for time-based status transitions.

One ticker per scheduler (not one timer per view). It stops when no
appointment can change any more, on stop(), or when its `with` block exits.
"""
import threading
from typing import Optional

from bankvisit import config
from bankvisit.logging_config import get_logger

logger = get_logger(__name__)


class StatusTicker:
    """Calls VisitScheduler.tick() every `interval` seconds on a background thread."""

    def __init__(
        self,
        scheduler,
        interval: float = config.TICK_INTERVAL_SECONDS,
        stop_when_idle: bool = True,
    ):
        self.scheduler = scheduler
        self.interval = interval
        self.stop_when_idle = stop_when_idle
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self):
        """One pass; returns the transitions made."""
        changes = self.scheduler.tick()
        for appointment_id, status in changes:
            logger.debug("ticker_transition", appointment_id=appointment_id, status=status.value)
        return changes

    def _loop(self):
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception:
                # Failed pass is retried on the next interval
                logger.exception("ticker_tick_failed")
                continue
            if self.stop_when_idle and not self.scheduler.has_pending():
                logger.info("ticker_idle_stop")
                break

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="status-ticker", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout if timeout is not None else self.interval * 2)
        self._thread = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
