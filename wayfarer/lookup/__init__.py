"""Reference-data providers: static table, HexDB, FlightAware and JetPhotos."""

from wayfarer.lookup.photos import PhotoClient
from wayfarer.lookup.remote_client import AircraftRecord, RemoteLookupClient
from wayfarer.lookup.scraper import (
    CircuitBreaker,
    ScrapedFlightInfo,
    ScrapeResult,
    ScrapingFallbackClient,
)
from wayfarer.lookup.static_table import AirlineRecord, AirportRecord, StaticLookupTable

__all__ = [
    'AircraftRecord',
    'AirlineRecord',
    'AirportRecord',
    'CircuitBreaker',
    'PhotoClient',
    'RemoteLookupClient',
    'ScrapedFlightInfo',
    'ScrapeResult',
    'ScrapingFallbackClient',
    'StaticLookupTable',
]
