from __future__ import annotations

import logging
import threading
from typing import Optional

from .core import NewsAggregator
from .exceptions import PersistenceError


logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Runs `NewsAggregator.refresh()` at a fixed interval on a background thread.

    After a failed cycle the delay doubles, up to `max_backoff` seconds, and goes
    back to `interval` after the next success. Swap this class out for cron or any
    other trigger; the aggregator does not care who calls it.
    """

    def __init__(self, aggregator: NewsAggregator, *, interval: float, max_backoff: Optional[float] = None) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.aggregator = aggregator
        self.interval = float(interval)
        self.max_backoff = float(max_backoff) if max_backoff else self.interval * 8
        self._delay = self.interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> float:
        """Run one refresh and return the number of seconds to wait before the next one."""
        try:
            result = self.aggregator.refresh()
        except PersistenceError as e:
            self._delay = min(self._delay * 2, self.max_backoff)
            logger.error("Scheduled refresh failed: %s; retrying in %.0fs", e, self._delay)
            return self._delay

        if result.reason == "all_sources_failed":
            self._delay = min(self._delay * 2, self.max_backoff)
            logger.warning("No source answered; retrying in %.0fs", self._delay)
        else:
            self._delay = self.interval
        return self._delay

    def run_forever(self) -> None:
        """Tick until `stop()` is called. Blocks the calling thread."""
        while not self._stop.is_set():
            delay = self.tick()
            if self._stop.wait(delay):
                break

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="rss-digest-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
