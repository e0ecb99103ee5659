"""
Flight enrichment API endpoints.

Provides endpoints for:
- POST /api/flights/enrich - Attach airline/airport info to a batch of flights
- GET /api/flights/airports/<code> - Static airport record
- GET /api/flights/lookup/<callsign> - Scraped flight status page
- GET /api/flights/photo - Aircraft photo URL by registration or ICAO24
"""

import logging
import time

from flask import Blueprint, current_app, jsonify, request

from wayfarer.errors import ScrapeFailure

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__, url_prefix='/api/flights')

# HTTP status for each scrape failure
SCRAPE_FAILURE_STATUS = {
    ScrapeFailure.NOT_FOUND: 404,
    ScrapeFailure.MALFORMED: 502,
    ScrapeFailure.NETWORK_ERROR: 502,
    ScrapeFailure.BLOCKED: 503,
}


def _services():
    return current_app.config['SERVICES']


@flights_bp.route('/enrich', methods=['POST'])
def enrich_flights():
    """
    Enrich a batch of flight records.

    Body: {"flights": [{"icao24": ..., "callsign": ..., ...}, ...]}

    Every record comes back in input order with airline_name,
    airline_iata, airline_icao, departure_airport and arrival_airport
    where known, plus resolution_source.
    """
    data = request.get_json(silent=True)
    flights = data.get('flights') if isinstance(data, dict) else None

    if flights is None or not isinstance(flights, list):
        return jsonify({'error': 'Flights array required'}), 400
    if not all(isinstance(f, dict) for f in flights):
        return jsonify({'error': 'Each flight must be an object'}), 400

    start_time = time.perf_counter()
    enriched = _services().resolver.resolve_batch(flights)
    query_time_ms = (time.perf_counter() - start_time) * 1000

    logger.debug(f'Enriched {len(enriched)} flights in {query_time_ms:.1f}ms')

    return jsonify({
        'flights': [flight.to_dict() for flight in enriched],
        'query_time_ms': round(query_time_ms, 2),
    })


@flights_bp.route('/airports/<code>', methods=['GET'])
def get_airport(code: str):
    """Look up an airport by IATA or ICAO code."""
    airport = _services().static_table.find_airport(code)
    if airport is None:
        return jsonify({'error': 'Airport not found'}), 404
    return jsonify(airport.to_dict())


@flights_bp.route('/lookup/<callsign>', methods=['GET'])
def lookup_flight(callsign: str):
    """
    Scrape live flight status for a callsign.

    Failures carry a machine-readable reason:
    not_found (404), malformed/network_error (502), blocked (503).
    """
    scraper = _services().scraper
    if scraper is None:
        return jsonify({'error': 'Flight lookup disabled', 'reason': 'disabled'}), 503

    result = scraper.lookup_flight(callsign)
    if result.ok:
        return jsonify({
            'flight': result.info.to_dict(),
            'source': 'flightaware',
        })

    return jsonify({
        'error': result.detail or 'Flight lookup failed',
        'reason': result.failure.value,
    }), SCRAPE_FAILURE_STATUS.get(result.failure, 502)


@flights_bp.route('/photo', methods=['GET'])
def get_aircraft_photo():
    """
    Find an aircraft photo.

    Query params:
    - registration: tail number (preferred)
    - icao24: transponder address, resolved to a registration via HexDB
    """
    services = _services()
    registration = request.args.get('registration', '').strip() or None
    icao24 = request.args.get('icao24', '').strip() or None

    if not registration and not icao24:
        return jsonify({'error': 'Registration or ICAO24 required'}), 400

    if not registration:
        aircraft = services.remote_client.lookup_aircraft(icao24)
        if aircraft and aircraft.registration:
            registration = aircraft.registration

    search_term = registration or icao24
    cached = services.photos.is_cached(search_term)
    photo_url = services.photos.lookup_photo(search_term)

    return jsonify({
        'photo_url': photo_url,
        'search_url': services.photos.search_url(search_term),
        'source': 'jetphotos',
        'registration': registration,
        'icao24': icao24,
        'cached': cached,
    })
