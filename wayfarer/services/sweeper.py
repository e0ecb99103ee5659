"""
Periodic cache maintenance.

A single daemon thread that deletes expired GeoCache rows and drops
expired memo entries every CACHE_SWEEP_MINUTES.
"""

import logging
import threading
import time
from typing import Iterable, Optional

from wayfarer.config import config
from wayfarer.memo import MemoCache
from wayfarer.services.geo_cache import GeoCache

logger = logging.getLogger(__name__)


class CacheSweeper:
    """Background sweeper for the GeoCache and the memo caches."""

    def __init__(
        self,
        geo_cache: GeoCache,
        memo_caches: Iterable[MemoCache] = (),
        interval_seconds: Optional[float] = None,
    ):
        self.geo_cache = geo_cache
        self.memo_caches = list(memo_caches)
        self.interval = interval_seconds or config.cache.sweep_interval_minutes * 60

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        # Statistics
        self._sweep_count = 0
        self._error_count = 0
        self._rows_removed = 0
        self._memo_entries_removed = 0
        self._last_sweep_time: Optional[float] = None

    def sweep_once(self) -> int:
        """
        Run one sweep pass.

        Returns the number of GeoCache rows removed, or -1 on error.
        """
        try:
            removed = self.geo_cache.sweep_expired()
            memo_removed = sum(cache.sweep() for cache in self.memo_caches)

            self._sweep_count += 1
            self._rows_removed += removed
            self._memo_entries_removed += memo_removed
            self._last_sweep_time = time.time()

            if removed or memo_removed:
                logger.info(f'Swept {removed} cache rows and {memo_removed} memo entries')
            return removed

        except Exception:
            self._error_count += 1
            logger.exception('Cache sweep failed')
            return -1

    def run_continuous(self) -> None:
        """
        Sweep on an interval until stop() is called.

        This method blocks - use start_background() for non-blocking.
        """
        logger.info(f'Starting cache sweeper (interval={self.interval}s)')
        while not self._stop_event.wait(self.interval):
            self.sweep_once()
        logger.info('Cache sweeper stopped')

    def start_background(self) -> None:
        """Start sweeping in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Cache sweeper already running')
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_continuous,
            name='cache-sweeper',
            daemon=True,
        )
        self._thread.start()
        logger.info('Background cache sweeper started')

    def stop(self) -> None:
        """Stop the background sweeper."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    @property
    def stats(self) -> dict:
        """Get sweeper statistics."""
        return {
            'sweep_count': self._sweep_count,
            'error_count': self._error_count,
            'rows_removed': self._rows_removed,
            'memo_entries_removed': self._memo_entries_removed,
            'last_sweep_time': self._last_sweep_time,
            'interval_seconds': self.interval,
            'running': self.running,
        }
