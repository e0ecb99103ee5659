"""
API module for Wayfarer.

Provides REST endpoints for:
- Flight enrichment, airport lookup, flight status and aircraft photos
- Area explorer POI data
- System status
"""

from wayfarer.api.area_explorer import area_explorer_bp
from wayfarer.api.flights import flights_bp
from wayfarer.api.metrics import metrics_bp

__all__ = ['area_explorer_bp', 'flights_bp', 'metrics_bp']
