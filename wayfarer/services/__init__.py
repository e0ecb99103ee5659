"""Enrichment services: flight resolution and the POI cache pipeline."""

from wayfarer.services.container import EnrichmentServices, build_services
from wayfarer.services.destination_hooks import DestinationCacheHook
from wayfarer.services.flight_resolver import (
    EnrichedFlight,
    FlightResolver,
    ResolutionSource,
)
from wayfarer.services.geo_cache import GeoCache, make_cache_key
from wayfarer.services.poi_pipeline import (
    PlacesClient,
    PoiFetchPipeline,
    PoiFetchResult,
    per_type_quota,
)
from wayfarer.services.sweeper import CacheSweeper

__all__ = [
    'CacheSweeper',
    'DestinationCacheHook',
    'EnrichedFlight',
    'EnrichmentServices',
    'FlightResolver',
    'GeoCache',
    'PlacesClient',
    'PoiFetchPipeline',
    'PoiFetchResult',
    'ResolutionSource',
    'build_services',
    'make_cache_key',
    'per_type_quota',
]
