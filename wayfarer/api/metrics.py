"""
Metrics API endpoints.

Provides endpoints for:
- GET /api/metrics/status - Service health plus cache and provider stats
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from wayfarer.config import config

logger = logging.getLogger(__name__)

metrics_bp = Blueprint('metrics', __name__, url_prefix='/api/metrics')


@metrics_bp.route('/status', methods=['GET'])
def get_system_status():
    """
    Get system health and status information.

    Returns:
    - Database connectivity (via GeoCache stats)
    - Resolver, provider and memo cache statistics
    - Sweeper status
    """
    start_time = time.perf_counter()
    services = current_app.config['SERVICES']

    db_ok = True
    try:
        geo_cache_stats = services.geo_cache.stats
    except Exception as e:
        db_ok = False
        geo_cache_stats = None
        logger.error(f'Database health check failed: {e}')

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'status': 'healthy' if db_ok else 'degraded',
        'database': {
            'connected': db_ok,
            'type': 'sqlite' if config.database.is_sqlite else 'postgresql',
        },
        'resolver': services.resolver.stats,
        'static_table': services.static_table.stats,
        'remote': services.remote_client.stats,
        'scraper': services.scraper.stats if services.scraper else {'enabled': False},
        'photos': services.photos.stats,
        'memo_caches': [cache.stats for cache in services.memo_caches],
        'geo_cache': geo_cache_stats,
        'poi_pipeline': services.poi_pipeline.stats,
        'destination_hook': services.destination_hook.stats,
        'sweeper': services.sweeper.stats,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })
