"""Tests for the CacheSweeper and service wiring."""

import time
from dataclasses import replace
from unittest.mock import MagicMock

from wayfarer.config import ScraperConfig, config
from wayfarer.memo import MemoCache
from wayfarer.services.container import build_services
from wayfarer.services.flight_resolver import ResolutionSource
from wayfarer.services.sweeper import CacheSweeper


class TestCacheSweeper:
    def test_sweeps_geo_cache_and_memos(self, geo_cache, clock, monotonic):
        memo = MemoCache('t', ttl_seconds=10, clock=monotonic)
        memo.set('k', 'v')
        geo_cache.set('old', [1], 1)
        geo_cache.set('new', [2], 7)
        clock.advance(days=2)
        monotonic.advance(11)

        sweeper = CacheSweeper(geo_cache, memo_caches=[memo], interval_seconds=60)

        assert sweeper.sweep_once() == 1
        assert len(memo) == 0
        stats = sweeper.stats
        assert stats['sweep_count'] == 1
        assert stats['rows_removed'] == 1
        assert stats['memo_entries_removed'] == 1

    def test_errors_logged_not_raised(self):
        geo_cache = MagicMock()
        geo_cache.sweep_expired.side_effect = RuntimeError('database is locked')
        sweeper = CacheSweeper(geo_cache, interval_seconds=60)

        assert sweeper.sweep_once() == -1
        assert sweeper.stats['error_count'] == 1

    def test_background_thread_runs_and_stops(self):
        geo_cache = MagicMock()
        geo_cache.sweep_expired.return_value = 0
        sweeper = CacheSweeper(geo_cache, interval_seconds=0.01)

        sweeper.start_background()
        deadline = time.time() + 5
        while geo_cache.sweep_expired.call_count == 0 and time.time() < deadline:
            time.sleep(0.01)
        sweeper.stop()

        assert geo_cache.sweep_expired.call_count >= 1
        assert sweeper.running is False


class TestBuildServices:
    def test_wires_stages_from_config(self, session_factory):
        services = build_services(config, session_factory=session_factory)
        try:
            stages = services.resolver.stats['stages']
            assert stages == ['static', 'remote', 'scrape']
            assert services.scraper is not None
            assert len(services.sweeper.memo_caches) == 4
            [flight] = services.resolver.resolve_batch([{'callsign': 'AAL123'}])
            assert flight.resolution_source is ResolutionSource.STATIC
        finally:
            services.close()

    def test_scraper_disabled(self, session_factory):
        cfg = replace(config, scraper=ScraperConfig(enabled=False))
        services = build_services(cfg, session_factory=session_factory)
        try:
            assert services.scraper is None
            assert services.resolver.stats['stages'] == ['static', 'remote']
            assert len(services.memo_caches) == 3
        finally:
            services.close()
