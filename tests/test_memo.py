"""Tests for the in-process MemoCache."""

from wayfarer.memo import MISSING, MemoCache


class TestMemoCache:
    def test_missing_key(self):
        cache = MemoCache('t')
        assert cache.get('nope') is MISSING
        assert cache.get('nope', default=None) is None

    def test_none_is_a_stored_value(self):
        cache = MemoCache('t')
        cache.set('neg', None)
        assert cache.get('neg') is None

    def test_ttl_expiry(self, monotonic):
        cache = MemoCache('t', ttl_seconds=300, clock=monotonic)
        cache.set('k', 'v')
        monotonic.advance(299)
        assert cache.get('k') == 'v'
        monotonic.advance(1)
        assert cache.get('k') is MISSING

    def test_per_entry_ttl_override(self, monotonic):
        cache = MemoCache('t', ttl_seconds=300, clock=monotonic)
        cache.set('short', 1, ttl_seconds=10)
        monotonic.advance(11)
        assert cache.get('short') is MISSING

    def test_no_ttl_keeps_entries(self, monotonic):
        cache = MemoCache('t', clock=monotonic)
        cache.set('k', 'v')
        monotonic.advance(10 ** 9)
        assert cache.get('k') == 'v'

    def test_evicts_oldest_tenth_when_full(self, monotonic):
        cache = MemoCache('t', max_entries=20, clock=monotonic)
        for i in range(21):
            cache.set(i, i)
            monotonic.advance(1)
        assert len(cache) == 19
        assert cache.get(0) is MISSING
        assert cache.get(1) is MISSING
        assert cache.get(20) == 20

    def test_sweep_removes_only_expired(self, monotonic):
        cache = MemoCache('t', ttl_seconds=60, clock=monotonic)
        cache.set('old', 1)
        monotonic.advance(30)
        cache.set('new', 2)
        monotonic.advance(31)
        assert cache.sweep() == 1
        assert len(cache) == 1
        assert cache.get('new') == 2

    def test_empty_cache_is_falsy_but_usable(self):
        cache = MemoCache('t')
        assert len(cache) == 0
        cache.set('k', 'v')
        assert len(cache) == 1

    def test_stats(self):
        cache = MemoCache('hexdb')
        cache.set('a', 1)
        cache.get('a')
        cache.get('b')
        stats = cache.stats
        assert stats['name'] == 'hexdb'
        assert stats['hits'] == 1
        assert stats['misses'] == 1
        assert stats['hit_rate'] == 0.5

    def test_invalidate_and_clear(self):
        cache = MemoCache('t')
        cache.set('a', 1)
        cache.set('b', 2)
        cache.invalidate('a')
        assert cache.get('a') is MISSING
        cache.clear()
        assert len(cache) == 0
