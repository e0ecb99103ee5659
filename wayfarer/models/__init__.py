"""
Database models for Wayfarer.

Only the geospatial cache is persisted; airline and airport reference
data lives in the bundled static dataset.
"""

from wayfarer.models.base import (
    Base,
    SessionLocal,
    build_engine,
    build_session_factory,
    engine,
    init_db,
    session_scope,
)
from wayfarer.models.map_data_cache import MapDataCache

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'build_engine',
    'build_session_factory',
    'init_db',
    'session_scope',
    'MapDataCache',
]
