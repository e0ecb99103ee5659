"""
GeoCache: TTL-bound cache-aside store for map payloads.

Backed by the map_data_cache table. Knows nothing about geography beyond
formatting coordinates into a key; callers decide what a payload is.

Validity is strict: an entry is served only while now < expires_at. Expired
rows read as absent and are left for sweep_expired() to delete.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from wayfarer.models.base import SessionLocal, session_scope
from wayfarer.models.map_data_cache import MapDataCache

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC now, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _format_radius(radius: Any) -> str:
    if isinstance(radius, float) and radius.is_integer():
        radius = int(radius)
    return str(radius)


def make_cache_key(
    data_type: str,
    lat: float,
    lng: float,
    radius: Optional[float] = None,
    types: Optional[Iterable[str]] = None,
) -> str:
    """
    Build the deterministic key for a location query.

    E.g., make_cache_key('places-nearby', 19.6, -155.99, 2000, ['lodging', 'cafe'])
          -> 'places-nearby-19.600000--155.990000-r2000-tcafe,lodging'

    The type set is de-duplicated and sorted, so order never matters.
    """
    key = f'{data_type}-{float(lat):.6f}-{float(lng):.6f}'
    if radius is not None:
        key += f'-r{_format_radius(radius)}'
    if types:
        key += '-t' + ','.join(sorted(set(types)))
    return key


class GeoCache:
    """Persistent key -> payload cache with per-entry expiry."""

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory or SessionLocal
        self._clock = clock
        self._lock = threading.Lock()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._writes = 0

    def get(self, key: str) -> Optional[Any]:
        """Return the payload for key if present and unexpired."""
        now = self._clock()
        with session_scope(self._session_factory) as session:
            entry = session.scalar(select(MapDataCache).where(MapDataCache.cache_key == key))
            payload = entry.data if entry is not None and entry.is_valid(now) else None

        with self._lock:
            if payload is None:
                self._misses += 1
            else:
                self._hits += 1

        if payload is None:
            logger.debug(f'GeoCache miss for {key}')
        return payload

    def set(
        self,
        key: str,
        payload: Any,
        ttl_days: float,
        *,
        data_type: str = 'places-nearby',
        destination_id: Optional[str] = None,
        coordinates: Optional[Tuple[float, float]] = None,
        search_params: Optional[dict] = None,
    ) -> None:
        """
        Store payload under key for ttl_days, replacing any existing row.

        Raises:
            ValueError: ttl_days is not positive
        """
        if ttl_days is None or ttl_days <= 0:
            raise ValueError(f'ttl_days must be positive, got {ttl_days}')

        now = self._clock()
        lat, lng = coordinates if coordinates else (None, None)
        entry = MapDataCache(
            cache_key=key,
            destination_id=str(destination_id) if destination_id is not None else None,
            data_type=data_type,
            lat=lat,
            lng=lng,
            search_params=search_params,
            data=payload,
            created_at=now,
            expires_at=now + timedelta(days=ttl_days),
        )

        with session_scope(self._session_factory) as session:
            session.execute(delete(MapDataCache).where(MapDataCache.cache_key == key))
            session.flush()
            session.add(entry)

        with self._lock:
            self._writes += 1
        logger.info(f'GeoCache stored {key} (expires {entry.expires_at.isoformat()})')

    def invalidate(self, key: str) -> bool:
        """Delete the entry for key. Returns True if a row was removed."""
        with session_scope(self._session_factory) as session:
            result = session.execute(delete(MapDataCache).where(MapDataCache.cache_key == key))
            removed = result.rowcount or 0
        if removed:
            logger.info(f'GeoCache invalidated {key}')
        return removed > 0

    def invalidate_destination(self, destination_id: str) -> int:
        """Delete every entry owned by a destination. Returns count removed."""
        with session_scope(self._session_factory) as session:
            result = session.execute(
                delete(MapDataCache).where(MapDataCache.destination_id == str(destination_id))
            )
            removed = result.rowcount or 0
        logger.info(f'GeoCache invalidated {removed} entries for destination {destination_id}')
        return removed

    def sweep_expired(self) -> int:
        """Delete all expired rows. Returns count removed."""
        now = self._clock()
        with session_scope(self._session_factory) as session:
            result = session.execute(delete(MapDataCache).where(MapDataCache.expires_at <= now))
            removed = result.rowcount or 0
        if removed:
            logger.info(f'GeoCache swept {removed} expired entries')
        return removed

    @property
    def stats(self) -> dict:
        """Get cache statistics."""
        now = self._clock()
        with session_scope(self._session_factory) as session:
            total = session.scalar(select(func.count()).select_from(MapDataCache)) or 0
            valid = session.scalar(
                select(func.count()).select_from(MapDataCache).where(MapDataCache.expires_at > now)
            ) or 0

        with self._lock:
            lookups = self._hits + self._misses
            return {
                'entries': total,
                'valid_entries': valid,
                'hits': self._hits,
                'misses': self._misses,
                'writes': self._writes,
                'hit_rate': self._hits / lookups if lookups > 0 else 0,
            }
