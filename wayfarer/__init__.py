"""
Wayfarer enrichment core.

External-data enrichment and caching for the travel site, built with Flask,
SQLAlchemy, requests and BeautifulSoup.

Modules:
    api/         REST endpoints for flight enrichment, area explorer and status
    lookup/      Flight data providers (static table, HexDB, FlightAware, JetPhotos)
    models/      SQLAlchemy ORM models (MapDataCache)
    services/    Flight resolution, POI cache-aside pipeline, hooks and sweeper
    memo.py      Bounded in-process memo cache shared by the providers
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
