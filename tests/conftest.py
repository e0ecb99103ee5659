"""Shared fixtures for the Wayfarer test suite.

Points the app at an in-memory SQLite database before any wayfarer import,
and provides fake clocks, fake HTTP responses and a GeoCache bound to a
fresh schema for every test.
"""

import os

# Must be set before wayfarer.config is imported anywhere.
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['SCRAPER_ENABLED'] = '1'

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from wayfarer.config import DEFAULT_DATASET_PATH
from wayfarer.lookup.static_table import StaticLookupTable
from wayfarer.models.base import Base, build_engine, build_session_factory
from wayfarer.models.map_data_cache import MapDataCache  # noqa: F401
from wayfarer.services.geo_cache import GeoCache


class FakeClock:
    """Naive-UTC datetime clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 6, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Float clock for MemoCache and CircuitBreaker."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def fake_response(status_code=200, json_data=None, text='', json_error=False):
    """Build a fake requests.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if json_error:
        resp.json.side_effect = ValueError('No JSON object could be decoded')
    else:
        resp.json.return_value = json_data
    resp.raise_for_status = MagicMock()
    return resp


@pytest.fixture
def engine():
    eng = build_engine('sqlite://')
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def geo_cache(session_factory, clock):
    return GeoCache(session_factory=session_factory, clock=clock)


@pytest.fixture(scope='session')
def static_table():
    return StaticLookupTable.from_file(DEFAULT_DATASET_PATH)


@pytest.fixture
def http_session():
    """Stand-in for the requests.Session a client holds."""
    return MagicMock()
