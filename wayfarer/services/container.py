"""
Service wiring.

Builds every long-lived object once (clients, memo caches, thread pools)
and hands them to the Flask app as a single container. Tests build their
own container with fakes and pass it to create_app().
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from wayfarer.config import AppConfig, config as default_config
from wayfarer.lookup.photos import PhotoClient
from wayfarer.lookup.remote_client import RemoteLookupClient
from wayfarer.lookup.scraper import CircuitBreaker, ScrapingFallbackClient
from wayfarer.lookup.static_table import StaticLookupTable
from wayfarer.memo import MemoCache
from wayfarer.services.destination_hooks import DestinationCacheHook
from wayfarer.services.flight_resolver import (
    FlightResolver,
    RemoteResolver,
    Resolver,
    ScrapeResolver,
    StaticResolver,
)
from wayfarer.services.geo_cache import GeoCache
from wayfarer.services.poi_pipeline import PlacesClient, PoiFetchPipeline
from wayfarer.services.sweeper import CacheSweeper

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentServices:
    """Everything the HTTP layer and document hooks need."""
    static_table: StaticLookupTable
    remote_client: RemoteLookupClient
    scraper: Optional[ScrapingFallbackClient]
    photos: PhotoClient
    resolver: FlightResolver
    geo_cache: GeoCache
    poi_pipeline: PoiFetchPipeline
    destination_hook: DestinationCacheHook
    sweeper: CacheSweeper

    @property
    def memo_caches(self) -> List[MemoCache]:
        caches = [
            self.remote_client.airline_cache,
            self.remote_client.aircraft_cache,
            self.photos.cache,
        ]
        if self.scraper is not None:
            caches.append(self.scraper.cache)
        return caches

    def close(self) -> None:
        """Stop the sweeper and shut down the thread pools."""
        self.sweeper.stop()
        self.resolver.close()
        self.poi_pipeline.close()
        logger.info('Enrichment services closed')


def build_services(
    cfg: Optional[AppConfig] = None,
    session_factory: Optional[Callable[[], Session]] = None,
) -> EnrichmentServices:
    """Construct the service graph from configuration."""
    cfg = cfg or default_config

    static_table = StaticLookupTable.from_file(cfg.static_data.dataset_path)

    remote_client = RemoteLookupClient(
        base_url=cfg.remote.base_url,
        timeout=cfg.remote.timeout_seconds,
        airline_cache=MemoCache('hexdb-airlines', max_entries=cfg.remote.max_entries),
        aircraft_cache=MemoCache('hexdb-aircraft', max_entries=cfg.remote.max_entries),
    )

    resolvers: List[Resolver] = [StaticResolver(static_table), RemoteResolver(remote_client)]

    scraper = None
    if cfg.scraper.enabled:
        scraper = ScrapingFallbackClient(
            base_url=cfg.scraper.base_url,
            timeout=cfg.scraper.timeout_seconds,
            cache=MemoCache('flightaware', ttl_seconds=cfg.scraper.cache_seconds, max_entries=500),
            breaker=CircuitBreaker(
                threshold=cfg.scraper.breaker_threshold,
                window_seconds=cfg.scraper.breaker_window_seconds,
            ),
        )
        resolvers.append(ScrapeResolver(scraper))
    else:
        logger.info('FlightAware scraping disabled')

    photos = PhotoClient(
        base_url=cfg.photos.base_url,
        timeout=cfg.photos.timeout_seconds,
        cache=MemoCache('jetphotos', ttl_seconds=cfg.photos.cache_seconds, max_entries=2000),
    )

    resolver = FlightResolver(
        static_table,
        resolvers=resolvers,
        max_batch=cfg.resolver.max_batch,
        max_workers=cfg.resolver.max_workers,
    )

    geo_cache = GeoCache(session_factory=session_factory)

    places = PlacesClient(
        api_key=cfg.places.api_key,
        base_url=cfg.places.base_url,
        timeout=cfg.places.timeout_seconds,
    )
    if not places.is_configured:
        logger.warning('Google Maps API key not configured - POI fetches will fail on cache miss')

    poi_pipeline = PoiFetchPipeline(
        geo_cache,
        places_client=places,
        global_max=cfg.places.global_max,
        cache_days=cfg.places.cache_days,
        max_workers=cfg.places.max_workers,
    )

    services = EnrichmentServices(
        static_table=static_table,
        remote_client=remote_client,
        scraper=scraper,
        photos=photos,
        resolver=resolver,
        geo_cache=geo_cache,
        poi_pipeline=poi_pipeline,
        destination_hook=DestinationCacheHook(poi_pipeline),
        sweeper=CacheSweeper(geo_cache, interval_seconds=cfg.cache.sweep_interval_minutes * 60),
    )
    services.sweeper.memo_caches = services.memo_caches
    return services
