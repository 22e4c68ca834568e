#!/usr/bin/env python3
"""
Sync reservations from the Guesty API to the database.
Only reservations checking in within the lookback window (or later) are fetched,
unless a single property's reservations are requested.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List

from sync.api_client import GuestyAPIClient
from sync.errors import PMSError
from sync.schemas import ReservationRecord, parse_reservation
from sync.sync_log import summarize_errors, write_sync_log
from database.models import Reservation, find_property
from utils.dates import utcnow
from config import RESERVATION_LOOKBACK_DAYS, VERBOSE

# Configure logging
logger = logging.getLogger(__name__)

SYNC_TYPE = 'reservations'


def upsert_reservation(session, record: ReservationRecord, now: datetime) -> bool:
    """
    Insert or update one reservation keyed by its remote id.

    Returns:
        True if a new row was created, False if an existing one was updated.
    """
    existing = session.query(Reservation).filter(
        Reservation.reservation_id == record.reservation_id
    ).first()

    values = {
        'property_id': record.property_id,
        'guest_name': record.guest_name,
        'guest_email': record.guest_email,
        'check_in': record.check_in,
        'check_out': record.check_out,
        'status': record.status,
        'channel': record.channel,
        'total_price': record.total_price,
        'last_synced_at': now,
    }

    if existing:
        for key, value in values.items():
            setattr(existing, key, value)
        return False

    session.add(Reservation(reservation_id=record.reservation_id, **values))
    return True


def _failed_fetch(session_factory: Callable, error_msg: str, reason: str) -> Dict[str, Any]:
    write_sync_log(session_factory, SYNC_TYPE, 'error', 0, error_message=error_msg)
    return {
        'success': False,
        'count': 0,
        'created': 0,
        'updated': 0,
        'failed': 0,
        'errors': [error_msg],
        'message': f"Failed to sync reservations: {reason}"
    }


def _reconcile(reservations: List[Dict], session_factory: Callable,
               clock: Callable[[], datetime], scope: str) -> Dict[str, Any]:
    """Upsert fetched reservations one commit at a time and write the SyncLog row."""
    created = 0
    updated = 0
    errors: List[str] = []

    if VERBOSE:
        logger.info(f"Fetched {len(reservations)} reservations {scope}")

    session = session_factory()
    try:
        now = clock()

        for raw in reservations:
            raw_id = (raw.get('_id') or raw.get('id')) if isinstance(raw, dict) else None
            try:
                record = parse_reservation(raw)
                if upsert_reservation(session, record, now):
                    created += 1
                else:
                    updated += 1
                session.commit()
            except Exception as e:
                session.rollback()
                error_msg = f"Error syncing reservation {raw_id}: {e}"
                errors.append(error_msg)
                logger.warning(error_msg)

    except Exception as e:
        session.rollback()
        error_msg = f"Fatal error in sync_reservations: {e}"
        logger.error(error_msg, exc_info=True)
        errors.append(error_msg)
        count = created + updated
        write_sync_log(session_factory, SYNC_TYPE, 'error', count,
                       failed=len(errors), error_message=summarize_errors(errors))
        return {
            'success': False,
            'count': count,
            'created': created,
            'updated': updated,
            'failed': len(errors),
            'errors': errors,
            'message': f"Failed to sync reservations: {e}"
        }
    finally:
        session.close()

    count = created + updated
    status = 'success' if not errors else 'error'
    write_sync_log(session_factory, SYNC_TYPE, status, count,
                   failed=len(errors), error_message=summarize_errors(errors))

    logger.info(
        f"Reservation sync complete {scope}: {len(reservations)} fetched, {created} created, "
        f"{updated} updated, {len(errors)} errors"
    )

    if errors:
        message = (f"Synced {count} reservations from Guesty with "
                   f"{len(errors)} failed records")
    else:
        message = f"Successfully synced {created} new and {updated} updated reservations from Guesty"

    return {
        'success': not errors,
        'count': count,
        'created': created,
        'updated': updated,
        'failed': len(errors),
        'errors': errors,
        'message': message
    }


def sync_reservations(client: GuestyAPIClient, session_factory: Callable,
                      clock: Callable[[], datetime] = utcnow,
                      lookback_days: int = RESERVATION_LOOKBACK_DAYS) -> Dict[str, Any]:
    """
    Sync reservations checking in on or after (now - lookback_days).

    Returns:
        Dictionary with success flag, counts, per-record errors and a message.
    """
    check_in_from = (clock() - timedelta(days=lookback_days)).date()

    try:
        if VERBOSE:
            logger.info(f"Fetching reservations checking in from {check_in_from} from Guesty API...")
        reservations = client.get_all_reservations(check_in_from=check_in_from)
    except PMSError as e:
        error_msg = f"Failed to fetch reservations: {e.message}"
        logger.error(error_msg)
        return _failed_fetch(session_factory, error_msg, e.message)
    except Exception as e:
        error_msg = f"Unexpected error fetching reservations: {e}"
        logger.error(error_msg, exc_info=True)
        return _failed_fetch(session_factory, error_msg, str(e))

    return _reconcile(reservations, session_factory, clock, f"from {check_in_from}")


def sync_property_reservations(client: GuestyAPIClient, session_factory: Callable,
                               property_ref, clock: Callable[[], datetime] = utcnow) -> Dict[str, Any]:
    """
    Sync every reservation of one Guesty property, regardless of check-in date.

    Args:
        property_ref: Remote property id, or the local integer id.

    Returns:
        Same shape as sync_reservations(), plus the resolved propertyId.
    """
    session = session_factory()
    try:
        prop = find_property(session, property_ref)
        listing_id = prop.property_id if prop else None
        source = prop.source if prop else None
    except Exception as e:
        error_msg = f"Failed to load property {property_ref}: {e}"
        logger.error(error_msg, exc_info=True)
        return dict(_failed_fetch(session_factory, error_msg, str(e)), propertyId=None)
    finally:
        session.close()

    if listing_id is None or source != 'guesty':
        error_msg = f"Property {property_ref} not found or missing Guesty ID"
        logger.warning(error_msg)
        return dict(_failed_fetch(session_factory, error_msg, error_msg), propertyId=listing_id)

    try:
        if VERBOSE:
            logger.info(f"Fetching reservations for listing {listing_id} from Guesty API...")
        reservations = client.get_all_reservations(listing_id=listing_id)
    except PMSError as e:
        error_msg = f"Failed to fetch reservations for listing {listing_id}: {e.message}"
        logger.error(error_msg)
        return dict(_failed_fetch(session_factory, error_msg, e.message), propertyId=listing_id)
    except Exception as e:
        error_msg = f"Unexpected error fetching reservations for listing {listing_id}: {e}"
        logger.error(error_msg, exc_info=True)
        return dict(_failed_fetch(session_factory, error_msg, str(e)), propertyId=listing_id)

    result = _reconcile(reservations, session_factory, clock, f"for listing {listing_id}")
    result['propertyId'] = listing_id
    return result
