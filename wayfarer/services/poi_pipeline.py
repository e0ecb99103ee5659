"""
POI fetch pipeline: cache-aside wrapper around Google Places Nearby Search.

Flow for one request:

    CHECK_CACHE -> HIT                          return cached places
                -> MISS -> FETCH_PER_TYPE       one Nearby Search per type, in parallel
                        -> MERGE                sorted type order, dedupe by place_id
                        -> TRIM                 cap at global_max
                        -> WRITE_CACHE          only if some type succeeded

A failed type is dropped and logged; it never fails the whole request. If
every type fails nothing is cached, so an outage is not remembered for a
week.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import requests

from wayfarer.config import config
from wayfarer.errors import ConfigError, EnrichmentError, Malformed, TransportError
from wayfarer.services.geo_cache import GeoCache, make_cache_key

logger = logging.getLogger(__name__)


PLACES_DATA_TYPE = 'places-nearby'

# Places statuses that mean "the request worked"
_OK_STATUSES = ('OK', 'ZERO_RESULTS')


def per_type_quota(global_max: int, type_count: int) -> int:
    """
    Results kept per type so the merged set stays near global_max.

    E.g., per_type_quota(30, 2) -> 15
    """
    if type_count <= 0:
        raise ValueError(f'type_count must be positive, got {type_count}')
    return global_max // type_count


def project_place(place: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a raw Places result to the fields the map renders."""
    geometry = place.get('geometry') or {}
    photos = place.get('photos')
    return {
        'place_id': place.get('place_id'),
        'name': place.get('name'),
        'vicinity': place.get('vicinity'),
        'rating': place.get('rating'),
        'user_ratings_total': place.get('user_ratings_total'),
        'types': place.get('types'),
        'geometry': {'location': geometry.get('location')},
        'icon': place.get('icon'),
        # Only the first photo, to keep cached rows small
        'photos': photos[:1] if isinstance(photos, list) else None,
        'business_status': place.get('business_status'),
        'price_level': place.get('price_level'),
    }


def normalize_types(types: Optional[Iterable[str]]) -> List[str]:
    """Strip, de-duplicate and sort a type list."""
    return sorted({t.strip() for t in (types or []) if t and t.strip()})


class PlacesClient:
    """Google Places Nearby Search client."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key if api_key is not None else config.places.api_key
        self.base_url = base_url or config.places.base_url
        self.timeout = timeout or config.places.timeout_seconds
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def nearby_search(self, lat: float, lng: float, radius: int, place_type: str) -> List[Dict[str, Any]]:
        """
        Fetch raw results for one place type.

        Raises:
            ConfigError: no API key
            TransportError: network failure, HTTP error or a non-OK Places status
            Malformed: the body is not a Places response
        """
        if not self.is_configured:
            raise ConfigError('Google Maps API key not configured')

        params = {
            'location': f'{lat},{lng}',
            'radius': str(radius),
            'type': place_type,
            'key': self.api_key,
        }
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f'Places request for {place_type} failed: {e}') from e

        try:
            data = response.json()
        except ValueError as e:
            raise Malformed(f'Places returned invalid JSON for {place_type}') from e

        if not isinstance(data, dict):
            raise Malformed(f'Places returned unexpected payload for {place_type}')

        status = data.get('status')
        if status not in _OK_STATUSES:
            message = f'Places status {status} for {place_type}'
            if data.get('error_message'):
                message += f': {data["error_message"]}'
            raise TransportError(message)

        results = data.get('results') or []
        if not isinstance(results, list):
            raise Malformed(f'Places results for {place_type} is not a list')
        return [r for r in results if isinstance(r, dict)]


@dataclass(frozen=True)
class PoiFetchResult:
    """Places plus where they came from ('cache' or 'api')."""
    source: str
    places: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {'source': self.source, 'data': self.places}


class PoiFetchPipeline:
    """
    Cache-aside POI fetcher.

    Owns two thread pools: one for the per-type fan-out and one for
    background refreshes. They are separate so a background refresh can
    fan out without waiting on itself.
    """

    def __init__(
        self,
        geo_cache: GeoCache,
        places_client: Optional[PlacesClient] = None,
        global_max: Optional[int] = None,
        cache_days: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        self.geo_cache = geo_cache
        self.places = places_client or PlacesClient()
        self.global_max = global_max or config.places.global_max
        self.cache_days = cache_days or config.places.cache_days

        self._fetch_pool = ThreadPoolExecutor(
            max_workers=max_workers or config.places.max_workers,
            thread_name_prefix='poi-fetch',
        )
        self._background = ThreadPoolExecutor(max_workers=1, thread_name_prefix='poi-refresh')

        # Statistics
        self._lock = threading.Lock()
        self._fetches = 0
        self._type_failures = 0
        self._refreshes_failed = 0

    def cache_key(self, lat: float, lng: float, radius: int, types: Optional[Iterable[str]]) -> str:
        return make_cache_key(PLACES_DATA_TYPE, lat, lng, radius, normalize_types(types))

    def is_cached(self, lat: float, lng: float, radius: int, types: Optional[Iterable[str]]) -> bool:
        return self.geo_cache.get(self.cache_key(lat, lng, radius, types)) is not None

    def fetch_or_cache(
        self,
        lat: float,
        lng: float,
        radius: int,
        types: Optional[Iterable[str]],
        destination_id: Optional[str] = None,
    ) -> PoiFetchResult:
        """
        Return places for a location, from cache when fresh.

        Raises:
            ConfigError: cache miss and no Places API key configured
        """
        type_list = normalize_types(types)
        if not type_list:
            return PoiFetchResult(source='api', places=[])

        key = self.cache_key(lat, lng, radius, type_list)
        cached = self.geo_cache.get(key)
        if cached is not None:
            logger.debug(f'POI cache hit for {key}')
            return PoiFetchResult(source='cache', places=cached)

        if not self.places.is_configured:
            raise ConfigError('Google Maps API key not configured')

        quota = per_type_quota(self.global_max, len(type_list))
        logger.info(f'Fetching POIs for {key} ({len(type_list)} types, {quota} per type)')
        with self._lock:
            self._fetches += 1

        futures = {
            place_type: self._fetch_pool.submit(self.places.nearby_search, lat, lng, radius, place_type)
            for place_type in type_list
        }

        merged: List[Dict[str, Any]] = []
        seen = set()
        succeeded = 0
        for place_type in type_list:
            try:
                results = futures[place_type].result()
            except EnrichmentError as e:
                self._count_type_failure()
                logger.warning(f'Dropping POI type {place_type}: {e}')
                continue
            except Exception:
                self._count_type_failure()
                logger.exception(f'Unexpected error fetching POI type {place_type}')
                continue

            succeeded += 1
            for place in results[:quota]:
                place_id = place.get('place_id')
                if place_id is not None:
                    if place_id in seen:
                        continue
                    seen.add(place_id)
                merged.append(project_place(place))

        places = merged[:self.global_max]

        if succeeded:
            self.geo_cache.set(
                key,
                places,
                self.cache_days,
                data_type=PLACES_DATA_TYPE,
                destination_id=destination_id,
                coordinates=(lat, lng),
                search_params={'radius': radius, 'types': type_list},
            )
        else:
            logger.warning(f'All POI type requests failed for {key}, not caching')

        return PoiFetchResult(source='api', places=places)

    def schedule_refresh(
        self,
        lat: float,
        lng: float,
        radius: int,
        types: Optional[Iterable[str]],
        destination_id: Optional[str] = None,
        invalidate_key: Optional[str] = None,
    ) -> Future:
        """
        Fetch (and cache) in the background.

        The returned Future resolves to a PoiFetchResult, or None if the
        refresh failed. Failures are logged, never raised.
        """
        type_list = normalize_types(types)
        return self._background.submit(
            self._refresh, lat, lng, radius, type_list, destination_id, invalidate_key,
        )

    def _refresh(
        self,
        lat: float,
        lng: float,
        radius: int,
        types: List[str],
        destination_id: Optional[str],
        invalidate_key: Optional[str],
    ) -> Optional[PoiFetchResult]:
        try:
            if invalidate_key:
                self.geo_cache.invalidate(invalidate_key)
            result = self.fetch_or_cache(lat, lng, radius, types, destination_id=destination_id)
            logger.info(
                f'Background POI refresh for destination {destination_id}: '
                f'{len(result.places)} places from {result.source}'
            )
            return result
        except Exception:
            with self._lock:
                self._refreshes_failed += 1
            logger.exception(f'Background POI refresh failed for destination {destination_id}')
            return None

    def _count_type_failure(self) -> None:
        with self._lock:
            self._type_failures += 1

    def close(self) -> None:
        """Stop accepting work and wait for running jobs."""
        self._background.shutdown(wait=True)
        self._fetch_pool.shutdown(wait=True)

    @property
    def stats(self) -> dict:
        with self._lock:
            counts = {
                'fetches': self._fetches,
                'type_failures': self._type_failures,
                'background_failures': self._refreshes_failed,
            }
        return {
            **counts,
            'global_max': self.global_max,
            'cache_days': self.cache_days,
            'api_configured': self.places.is_configured,
        }
