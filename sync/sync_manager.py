#!/usr/bin/env python3
"""
Sync manager to orchestrate Guesty synchronization operations.
Runs property and reservation syncs and exposes the latest sync log.
"""

import sys
import os
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sync.api_client import GuestyAPIClient
from sync.sync_log import get_latest_sync_log, get_sync_status, list_sync_logs
from sync.sync_properties import SYNC_TYPE as PROPERTIES, sync_properties
from sync.sync_reservations import (
    SYNC_TYPE as RESERVATIONS, sync_property_reservations, sync_reservations
)
from sync.token_manager import TokenManager
from database.models import SyncLog, get_session_factory, init_models
from utils.dates import utcnow
from config import RESERVATION_LOOKBACK_DAYS

# Configure logging
logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Coordinates property and reservation syncs against one Guesty client.

    Runs of the same sync type are serialized in-process; properties and
    reservations may run concurrently with each other.
    """

    def __init__(self, client: GuestyAPIClient, session_factory: Optional[Callable] = None,
                 clock: Callable[[], datetime] = utcnow,
                 lookback_days: int = RESERVATION_LOOKBACK_DAYS):
        self.client = client
        self.session_factory = session_factory or get_session_factory()
        self.clock = clock
        self.lookback_days = lookback_days
        self._locks = {
            PROPERTIES: threading.Lock(),
            RESERVATIONS: threading.Lock(),
        }

    def sync_properties(self) -> Dict[str, Any]:
        with self._locks[PROPERTIES]:
            logger.info("Starting property sync")
            return sync_properties(self.client, self.session_factory, clock=self.clock)

    def sync_reservations(self) -> Dict[str, Any]:
        with self._locks[RESERVATIONS]:
            logger.info("Starting reservation sync")
            return sync_reservations(self.client, self.session_factory, clock=self.clock,
                                     lookback_days=self.lookback_days)

    def sync_property_reservations(self, property_ref) -> Dict[str, Any]:
        """Sync all reservations of one Guesty property (remote id or local id)."""
        with self._locks[RESERVATIONS]:
            logger.info(f"Starting reservation sync for property {property_ref}")
            return sync_property_reservations(self.client, self.session_factory, property_ref,
                                              clock=self.clock)

    def sync_all(self) -> Dict[str, Any]:
        """
        Sync properties, then reservations.

        Reservations are synced even if the property sync failed, so each
        run leaves exactly one SyncLog row per type.

        Returns:
            Dictionary with per-type counts, overall status and the per-type results.
        """
        properties = self.sync_properties()
        reservations = self.sync_reservations()

        sync_status = 'success' if properties['success'] and reservations['success'] else 'error'
        logger.info(
            f"Full sync finished with status {sync_status}: {properties['count']} properties, "
            f"{reservations['count']} reservations"
        )

        return {
            'properties_synced': properties['count'],
            'reservations_synced': reservations['count'],
            'sync_status': sync_status,
            'properties': properties,
            'reservations': reservations,
        }

    def get_latest_sync_log(self, sync_type: Optional[str] = None) -> Optional[SyncLog]:
        return get_latest_sync_log(self.session_factory, sync_type)

    def list_sync_logs(self, sync_type: Optional[str] = None, limit: Optional[int] = 50) -> List[SyncLog]:
        return list_sync_logs(self.session_factory, sync_type, limit)

    def get_sync_status(self) -> Dict[str, SyncLog]:
        return get_sync_status(self.session_factory)


def build_orchestrator(database_url: Optional[str] = None,
                       session_factory: Optional[Callable] = None) -> SyncOrchestrator:
    """Create the token manager, API client and tables, and wire up an orchestrator."""
    if session_factory is None:
        init_models(database_url)
        session_factory = get_session_factory(database_url)
    client = GuestyAPIClient(TokenManager())
    return SyncOrchestrator(client, session_factory)


if __name__ == "__main__":
    import argparse

    # Setup logging
    from utils.logging_config import setup_logging
    setup_logging()

    parser = argparse.ArgumentParser(
        description='Sync Guesty data to local database',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 -m sync.sync_manager                  # Sync properties and reservations
  python3 -m sync.sync_manager --properties     # Sync properties only
  python3 -m sync.sync_manager --reservations   # Sync reservations only
  python3 -m sync.sync_manager --property L123  # Sync all reservations of one property
        """
    )
    parser.add_argument(
        '--properties',
        action='store_true',
        help='Sync properties only'
    )
    parser.add_argument(
        '--reservations',
        action='store_true',
        help='Sync reservations only'
    )
    parser.add_argument(
        '--property',
        metavar='PROPERTY_ID',
        help='Sync all reservations of one property (Guesty id or local id)'
    )

    args = parser.parse_args()

    try:
        orchestrator = build_orchestrator()
        if args.property:
            result = orchestrator.sync_property_reservations(args.property)
            success = result['success']
            print(result['message'])
        elif args.properties and not args.reservations:
            result = orchestrator.sync_properties()
            success = result['success']
            print(result['message'])
        elif args.reservations and not args.properties:
            result = orchestrator.sync_reservations()
            success = result['success']
            print(result['message'])
        else:
            result = orchestrator.sync_all()
            success = result['sync_status'] == 'success'
            print(result['properties']['message'])
            print(result['reservations']['message'])
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        logger.info("Sync interrupted by user")
        print("\n\nSync interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        print(f"\n\nFatal error: {e}")
        sys.exit(1)
