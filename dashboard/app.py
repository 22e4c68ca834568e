#!/usr/bin/env python3
"""
Flask application entry point for the Guesty sync API.
"""

import sys
import os

# Set up paths before any project imports so this works as
# python3 dashboard/app.py as well as python3 -m dashboard.app
_this_file = os.path.abspath(os.path.realpath(__file__))
_dashboard_dir = os.path.dirname(_this_file)
project_root = os.path.dirname(_dashboard_dir)

# Python adds the script's directory to sys.path, which would shadow top-level packages
if _dashboard_dir in sys.path:
    sys.path.remove(_dashboard_dir)

if project_root not in sys.path:
    sys.path.insert(0, project_root)

import logging
from flask import Flask, jsonify
import sqlalchemy

import config
from utils.dates import utcnow
from utils.logging_config import setup_logging
from dashboard.services import EXTENSION_KEY
from dashboard.sync.routes import register_sync_routes
from dashboard.properties.routes import register_property_routes


def create_app(orchestrator=None, aggregator=None, importer=None,
               database_url=None, configure_logging=True, session_factory=None,
               webhook_processor=None, webhook_secret=None):
    """
    Create and configure the Flask application.

    Args:
        orchestrator: Optional SyncOrchestrator (built on first use otherwise).
        aggregator: Optional CalendarAggregator.
        importer: Optional CSVImporter.
        database_url: Database for the health check and lazily built services.
        configure_logging: Set up root logging handlers.
        session_factory: Optional sessionmaker for sync history and lazily built services.
        webhook_processor: Optional WebhookProcessor.
        webhook_secret: Webhook signing key. Defaults to GUESTY_WEBHOOK_SECRET.
    """
    if configure_logging:
        log_file = config.LOG_FILE
        if log_file and not os.path.isabs(log_file):
            log_file = os.path.join(project_root, log_file)
        setup_logging(log_file=log_file)
    logger = logging.getLogger(__name__)
    logger.info("Initializing Guesty sync API")

    app = Flask(__name__)
    app.config['DATABASE_URL'] = database_url or config.DATABASE_URL
    app.config['GUESTY_WEBHOOK_SECRET'] = webhook_secret or config.GUESTY_WEBHOOK_SECRET
    app.extensions[EXTENSION_KEY] = {
        'orchestrator': orchestrator,
        'aggregator': aggregator,
        'importer': importer,
        'session_factory': session_factory,
        'webhook_processor': webhook_processor,
    }

    register_sync_routes(app)
    register_property_routes(app)

    # Health check endpoint for monitoring
    @app.route('/health')
    def health_check():
        """Health check endpoint for monitoring and load balancers"""
        try:
            # Check database connectivity
            from database.models import get_engine
            engine = get_engine(app.config['DATABASE_URL'])

            # Simple connection test
            with engine.connect() as conn:
                conn.execute(sqlalchemy.text("SELECT 1"))

            return {
                'status': 'healthy',
                'database': 'connected',
                'timestamp': utcnow().isoformat()
            }, 200
        except Exception as e:
            logger.error(f"Health check failed: {e}", exc_info=True)
            return {
                'status': 'unhealthy',
                'database': 'disconnected',
                'error': str(e),
                'timestamp': utcnow().isoformat()
            }, 503

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    return app


if __name__ == '__main__':
    app = create_app()
    logger = logging.getLogger(__name__)
    logger.info(f"Starting Guesty sync API on http://{config.FLASK_HOST}:{config.FLASK_PORT}")
    logger.info("Press Ctrl+C to stop")
    app.run(host=config.FLASK_HOST, port=config.FLASK_PORT, debug=config.FLASK_DEBUG)
