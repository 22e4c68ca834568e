#!/usr/bin/env python3
"""
Per-app service instances used by the route handlers.

Services passed to create_app() are used as-is; otherwise they are built on
first use so the app can start without Guesty credentials. Only the sync and
health routes need credentials; sync history, calendars, CSV import and
webhooks work from the database alone.
"""

import logging
import threading

from flask import current_app

from calendars.aggregator import CalendarAggregator
from database.models import get_session_factory as _database_session_factory, init_models
from importers.csv_properties import CSVImporter
from sync.sync_manager import SyncOrchestrator, build_orchestrator
from sync.webhooks import WebhookProcessor

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'guesty_sync'

_build_lock = threading.Lock()


def _services() -> dict:
    return current_app.extensions.setdefault(EXTENSION_KEY, {})


def _database_url():
    return current_app.config.get('DATABASE_URL')


def _build_session_factory(services: dict):
    if services.get('session_factory') is None:
        database_url = _database_url()
        init_models(database_url)
        services['session_factory'] = _database_session_factory(database_url)
    return services['session_factory']


def get_session_factory():
    services = _services()
    with _build_lock:
        return _build_session_factory(services)


def get_orchestrator() -> SyncOrchestrator:
    services = _services()
    with _build_lock:
        if services.get('orchestrator') is None:
            logger.info("Creating Guesty sync orchestrator")
            services['orchestrator'] = build_orchestrator(
                _database_url(), session_factory=services.get('session_factory'))
    return services['orchestrator']


def get_aggregator() -> CalendarAggregator:
    services = _services()
    with _build_lock:
        if services.get('aggregator') is None:
            services['aggregator'] = CalendarAggregator(_build_session_factory(services))
    return services['aggregator']


def get_importer() -> CSVImporter:
    services = _services()
    with _build_lock:
        if services.get('importer') is None:
            services['importer'] = CSVImporter(_build_session_factory(services))
    return services['importer']


def get_webhook_processor() -> WebhookProcessor:
    services = _services()
    with _build_lock:
        if services.get('webhook_processor') is None:
            services['webhook_processor'] = WebhookProcessor(_build_session_factory(services))
    return services['webhook_processor']
