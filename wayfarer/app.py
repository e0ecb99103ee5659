"""
Wayfarer Flask Application.

Main entry point for the enrichment service. Initializes:
- Database schema
- Service container (lookup clients, resolver, POI pipeline)
- Cache sweeper
- API routes

Usage:
    python -m wayfarer.app

Or with gunicorn:
    gunicorn 'wayfarer.app:create_app()'
"""

import logging
import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from wayfarer.api import area_explorer_bp, flights_bp, metrics_bp
from wayfarer.config import config
from wayfarer.errors import ConfigError
from wayfarer.models import init_db
from wayfarer.services.container import EnrichmentServices, build_services

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def create_app(
    services: Optional[EnrichmentServices] = None,
    start_sweeper: bool = True,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        services: Prebuilt service container. Built from config (and the
                  database schema created) when omitted.
        start_sweeper: Whether to start the background cache sweeper.
                       Set to False for testing.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    if services is None:
        logger.info('Initializing database...')
        init_db()
        services = build_services()

    app.config['SERVICES'] = services

    # Register API blueprints
    app.register_blueprint(flights_bp)
    app.register_blueprint(area_explorer_bp)
    app.register_blueprint(metrics_bp)

    if start_sweeper:
        services.sweeper.start_background()

    logger.info(f'Static table loaded: {services.static_table.stats}')

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(ConfigError)
    def config_error(e):
        logger.error(f'Configuration error: {e}')
        return {'error': str(e)}, 503

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {'error': 'Method not allowed'}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    port = int(os.environ.get('PORT', 5000))
    logger.info(f'Starting Wayfarer on http://localhost:{port}')

    try:
        app.run(
            host='0.0.0.0',
            port=port,
            debug=config.debug,
            use_reloader=False,  # Reloader would start a second sweeper thread
        )
    finally:
        app.config['SERVICES'].close()


if __name__ == '__main__':
    run_development_server()
