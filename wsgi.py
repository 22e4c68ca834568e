#!/usr/bin/env python3
"""
WSGI entry point for Gunicorn: gunicorn wsgi:application

Guesty credentials are only needed once a sync route is called.
"""
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import config
from dashboard.app import create_app

application = create_app()

if __name__ == "__main__":
    application.run(host=config.FLASK_HOST, port=config.FLASK_PORT, debug=config.FLASK_DEBUG)
