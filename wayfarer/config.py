"""
Configuration management for Wayfarer.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


DEFAULT_DATASET_PATH = Path(__file__).resolve().parent / 'data' / 'openflights-runtime.json'


def _env_flag(name: str, default: str = '1') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///wayfarer.db')

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')

    @property
    def is_memory(self) -> bool:
        # sqlite:// and sqlite:///:memory: both open a private in-memory database
        return self.url in ('sqlite://', 'sqlite:///:memory:')


@dataclass(frozen=True)
class StaticDataConfig:
    """Bundled OpenFlights dataset location."""
    dataset_path: Path = Path(os.getenv('STATIC_DATASET_PATH') or DEFAULT_DATASET_PATH)


@dataclass(frozen=True)
class RemoteLookupConfig:
    """HexDB reference-data API configuration."""
    base_url: str = os.getenv('HEXDB_BASE_URL', 'https://hexdb.io/api/v1')
    timeout_seconds: float = float(os.getenv('HEXDB_TIMEOUT_SECONDS', '10'))
    max_entries: int = int(os.getenv('HEXDB_CACHE_ENTRIES', '5000'))


@dataclass(frozen=True)
class ScraperConfig:
    """FlightAware scraping fallback configuration."""
    enabled: bool = _env_flag('SCRAPER_ENABLED')
    base_url: str = os.getenv('SCRAPER_BASE_URL', 'https://flightaware.com/live/flight')
    timeout_seconds: float = float(os.getenv('SCRAPER_TIMEOUT_SECONDS', '15'))
    cache_seconds: int = int(os.getenv('SCRAPER_CACHE_SECONDS', '300'))
    breaker_threshold: int = int(os.getenv('SCRAPER_BREAKER_THRESHOLD', '3'))
    breaker_window_seconds: int = int(os.getenv('SCRAPER_BREAKER_WINDOW_SECONDS', '300'))


@dataclass(frozen=True)
class PhotoConfig:
    """JetPhotos lookup configuration."""
    base_url: str = os.getenv('PHOTO_BASE_URL', 'https://www.jetphotos.com/photo/keyword')
    timeout_seconds: float = float(os.getenv('PHOTO_TIMEOUT_SECONDS', '10'))
    cache_seconds: int = int(os.getenv('PHOTO_CACHE_SECONDS', str(24 * 60 * 60)))


@dataclass(frozen=True)
class ResolverConfig:
    """Flight batch resolution limits."""
    max_batch: int = int(os.getenv('RESOLVER_MAX_BATCH', '30'))
    max_workers: int = int(os.getenv('RESOLVER_MAX_WORKERS', '10'))


@dataclass(frozen=True)
class PlacesConfig:
    """Google Places configuration for the POI pipeline."""
    api_key: Optional[str] = (
        os.getenv('GOOGLE_MAPS_API_KEY') or os.getenv('NEXT_PUBLIC_GOOGLE_MAPS_API_KEY') or None
    )
    base_url: str = os.getenv(
        'PLACES_BASE_URL',
        'https://maps.googleapis.com/maps/api/place/nearbysearch/json',
    )
    timeout_seconds: float = float(os.getenv('PLACES_TIMEOUT_SECONDS', '10'))
    global_max: int = int(os.getenv('PLACES_GLOBAL_MAX', '30'))
    cache_days: int = int(os.getenv('PLACES_CACHE_DAYS', '7'))
    max_workers: int = int(os.getenv('PLACES_MAX_WORKERS', '4'))

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class CacheConfig:
    """Cache maintenance settings."""
    sweep_interval_minutes: int = int(os.getenv('CACHE_SWEEP_MINUTES', '60'))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    database: DatabaseConfig
    static_data: StaticDataConfig
    remote: RemoteLookupConfig
    scraper: ScraperConfig
    photos: PhotoConfig
    resolver: ResolverConfig
    places: PlacesConfig
    cache: CacheConfig

    # Flask settings
    secret_key: str
    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        database=DatabaseConfig(),
        static_data=StaticDataConfig(),
        remote=RemoteLookupConfig(),
        scraper=ScraperConfig(),
        photos=PhotoConfig(),
        resolver=ResolverConfig(),
        places=PlacesConfig(),
        cache=CacheConfig(),
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
