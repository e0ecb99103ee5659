"""
Area explorer API endpoints.

Provides endpoints for:
- GET /api/area-explorer - Nearby places for a destination, cache first
- POST /api/area-explorer - Pre-warm the cache for a destination
"""

import logging
from typing import List, Optional

from flask import Blueprint, current_app, jsonify, request

from wayfarer.errors import ConfigError
from wayfarer.services.destination_hooks import DEFAULT_POI_TYPES, DEFAULT_SEARCH_RADIUS
from wayfarer.services.poi_pipeline import PLACES_DATA_TYPE

logger = logging.getLogger(__name__)

area_explorer_bp = Blueprint('area_explorer', __name__, url_prefix='/api/area-explorer')


def _float_or_none(value) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_types(value) -> List[str]:
    if isinstance(value, str):
        return [t for t in value.split(',') if t.strip()]
    if isinstance(value, list):
        return [t for t in value if isinstance(t, str) and t.strip()]
    return []


@area_explorer_bp.route('', methods=['GET'])
def get_area_data():
    """
    Get nearby places around a point.

    Query params:
    - destinationId: owning destination (required)
    - lat, lng: search centre (required)
    - radius: metres (default 2000)
    - types: comma-separated Places types
    - dataType: only 'places-nearby' is supported

    Returns {"source": "cache" | "api", "data": [...]}.
    """
    destination_id = request.args.get('destinationId')
    lat = _float_or_none(request.args.get('lat'))
    lng = _float_or_none(request.args.get('lng'))
    radius = request.args.get('radius', DEFAULT_SEARCH_RADIUS, type=int)
    types = _parse_types(request.args.get('types', ''))
    data_type = request.args.get('dataType', PLACES_DATA_TYPE)

    if not destination_id or lat is None or lng is None:
        return jsonify({'error': 'Missing required parameters'}), 400

    if data_type != PLACES_DATA_TYPE:
        return jsonify({'error': 'Unsupported data type'}), 400

    pipeline = current_app.config['SERVICES'].poi_pipeline
    try:
        result = pipeline.fetch_or_cache(lat, lng, radius, types, destination_id=destination_id)
    except ConfigError as e:
        logger.error(f'Area explorer unavailable: {e}')
        return jsonify({'error': str(e)}), 503

    return jsonify(result.to_dict())


@area_explorer_bp.route('', methods=['POST'])
def warm_area_cache():
    """
    Pre-cache places for a destination.

    Body: {"destinationId": ..., "lat": float, "lng": float,
           "radius": int (optional), "types": [str] (optional)}

    200 {"cached": true} if fresh data already exists, otherwise
    schedules a background fetch and returns 202 {"cached": false}.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'JSON body required'}), 400

    destination_id = data.get('destinationId')
    lat = _float_or_none(data.get('lat'))
    lng = _float_or_none(data.get('lng'))

    if not destination_id:
        return jsonify({'error': 'Missing destinationId'}), 400
    if lat is None or lng is None:
        return jsonify({'error': 'Destination coordinates not found'}), 400

    try:
        radius = int(data.get('radius') or DEFAULT_SEARCH_RADIUS)
    except (TypeError, ValueError):
        return jsonify({'error': 'radius must be an integer'}), 400
    types = _parse_types(data.get('types')) or list(DEFAULT_POI_TYPES)

    pipeline = current_app.config['SERVICES'].poi_pipeline
    if pipeline.is_cached(lat, lng, radius, types):
        return jsonify({'message': 'Data already cached', 'cached': True})

    if not pipeline.places.is_configured:
        return jsonify({'error': 'Google Maps API key not configured'}), 503

    pipeline.schedule_refresh(lat, lng, radius, types, destination_id=str(destination_id))
    logger.info(f'Caching initiated for destination {destination_id}')

    return jsonify({'message': 'Caching initiated', 'cached': False}), 202
