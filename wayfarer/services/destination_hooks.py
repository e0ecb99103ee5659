"""
Destination document hooks.

Called by the CMS after a destination is created or updated. When the
destination shows a 3D map or POIs, its POI cache is refreshed in the
background so the first visitor does not pay for the Places calls.

The hook itself never blocks on network I/O and never raises into the
CMS save path.
"""

import json
import logging
from typing import Any, List, Mapping, Optional, Tuple

from wayfarer.services.poi_pipeline import PoiFetchPipeline

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_RADIUS = 2000
DEFAULT_POI_TYPES = ('tourist_attraction', 'restaurant', 'lodging')


def document_coordinates(doc: Optional[Mapping[str, Any]]) -> Optional[Tuple[float, float]]:
    """Coordinates from locationData.coordinates, falling back to top-level lat/lng."""
    if not doc:
        return None
    coords = (doc.get('locationData') or {}).get('coordinates') or {}
    lat = coords.get('lat') or doc.get('lat')
    lng = coords.get('lng') or doc.get('lng')
    if not lat or not lng:
        return None
    try:
        return float(lat), float(lng)
    except (TypeError, ValueError):
        return None


def area_explorer_settings(doc: Optional[Mapping[str, Any]]) -> Tuple[int, List[str]]:
    """Search radius and POI types, with defaults for anything unset."""
    settings = (doc or {}).get('areaExplorerConfig') or {}
    radius = settings.get('searchRadius') or DEFAULT_SEARCH_RADIUS
    types = settings.get('poiTypes') or list(DEFAULT_POI_TYPES)
    return int(radius), list(types)


def needs_poi_data(doc: Mapping[str, Any]) -> bool:
    settings = doc.get('areaExplorerConfig') or {}
    return bool(doc.get('enable3DMap') or settings.get('showPOIs'))


def _settings_fingerprint(doc: Optional[Mapping[str, Any]]) -> str:
    return json.dumps((doc or {}).get('areaExplorerConfig'), sort_keys=True, default=str)


class DestinationCacheHook:
    """after_change hook that keeps a destination's POI cache warm."""

    def __init__(self, pipeline: PoiFetchPipeline):
        self.pipeline = pipeline
        self._scheduled = 0

    def after_change(
        self,
        doc: Mapping[str, Any],
        previous_doc: Optional[Mapping[str, Any]] = None,
        operation: str = 'update',
    ) -> Mapping[str, Any]:
        """Schedule a POI refresh if needed. Always returns doc unchanged."""
        try:
            self._maybe_schedule(doc, previous_doc, operation)
        except Exception:
            logger.exception(f'POI cache hook failed for destination {doc.get("id")}')
        return doc

    def _maybe_schedule(
        self,
        doc: Mapping[str, Any],
        previous_doc: Optional[Mapping[str, Any]],
        operation: str,
    ) -> None:
        if not needs_poi_data(doc):
            return

        coordinates = document_coordinates(doc)
        if coordinates is None:
            return

        if operation == 'update':
            coords_changed = document_coordinates(previous_doc) != coordinates
            settings_changed = _settings_fingerprint(previous_doc) != _settings_fingerprint(doc)
            if not coords_changed and not settings_changed:
                return

        if not self.pipeline.places.is_configured:
            logger.debug('Places API key not configured, skipping POI cache refresh')
            return

        lat, lng = coordinates
        radius, types = area_explorer_settings(doc)
        new_key = self.pipeline.cache_key(lat, lng, radius, types)

        stale_key = None
        previous_coordinates = document_coordinates(previous_doc)
        if previous_coordinates is not None:
            prev_radius, prev_types = area_explorer_settings(previous_doc)
            prev_key = self.pipeline.cache_key(*previous_coordinates, prev_radius, prev_types)
            if prev_key != new_key:
                stale_key = prev_key

        destination_id = doc.get('id')
        self.pipeline.schedule_refresh(
            lat, lng, radius, types,
            destination_id=str(destination_id) if destination_id is not None else None,
            invalidate_key=stale_key,
        )
        self._scheduled += 1
        logger.info(f'Scheduled POI cache refresh for destination {destination_id} ({operation})')

    @property
    def stats(self) -> dict:
        return {'scheduled': self._scheduled}
