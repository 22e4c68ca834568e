#!/usr/bin/env python3
"""
Sync properties from the Guesty API to the database.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Set

from sqlalchemy.exc import SQLAlchemyError

from sync.api_client import GuestyAPIClient
from sync.errors import PMSError
from sync.schemas import ListingRecord, parse_listing
from sync.sync_log import summarize_errors, write_sync_log
from database.models import Property
from utils.dates import utcnow
from config import VERBOSE

# Configure logging
logger = logging.getLogger(__name__)

SYNC_TYPE = 'properties'


def upsert_property(session, record: ListingRecord, now: datetime) -> bool:
    """
    Insert or update one property keyed by its remote id.

    The locally managed ical_url is never touched.

    Returns:
        True if a new row was created, False if an existing one was updated.
    """
    existing = session.query(Property).filter(Property.property_id == record.property_id).first()

    values = {
        'name': record.name,
        'nickname': record.nickname,
        'address': record.address,
        'bedrooms': record.bedrooms,
        'bathrooms': record.bathrooms,
        'amenities': json.dumps(record.amenities),
        'tags': json.dumps(record.tags),
        'property_type': record.property_type,
        'listing_url': record.listing_url,
        'source': 'guesty',
        'is_active': True,
        'last_synced_at': now,
    }

    if existing:
        for key, value in values.items():
            setattr(existing, key, value)
        return False

    session.add(Property(property_id=record.property_id, **values))
    return True


def deactivate_missing_properties(session, seen_ids: Set[str]) -> int:
    """Mark Guesty properties that are no longer in the active listing set as inactive."""
    stale = session.query(Property).filter(
        Property.source == 'guesty',
        Property.is_active.is_(True),
    ).all()

    deactivated = 0
    for prop in stale:
        if prop.property_id not in seen_ids:
            prop.is_active = False
            deactivated += 1
            logger.info(f"Property {prop.property_id} ({prop.name}) is no longer active in Guesty")
    return deactivated


def sync_properties(client: GuestyAPIClient, session_factory: Callable,
                    clock: Callable[[], datetime] = utcnow) -> Dict[str, Any]:
    """
    Sync all active listings from Guesty.

    Every record is committed on its own, so one bad record never aborts
    the batch. Exactly one SyncLog row is written per call.

    Returns:
        Dictionary with success flag, counts, per-record errors and a message.
    """
    created = 0
    updated = 0
    deactivated = 0
    errors: List[str] = []

    try:
        if VERBOSE:
            logger.info("Fetching listings from Guesty API...")
        listings = client.get_all_listings(active_only=True)
    except PMSError as e:
        error_msg = f"Failed to fetch listings: {e.message}"
        logger.error(error_msg)
        write_sync_log(session_factory, SYNC_TYPE, 'error', 0, error_message=error_msg)
        return {
            'success': False,
            'count': 0,
            'created': 0,
            'updated': 0,
            'deactivated': 0,
            'failed': 0,
            'errors': [error_msg],
            'message': f"Failed to sync properties: {e.message}"
        }
    except Exception as e:
        error_msg = f"Unexpected error fetching listings: {e}"
        logger.error(error_msg, exc_info=True)
        write_sync_log(session_factory, SYNC_TYPE, 'error', 0, error_message=error_msg)
        return {
            'success': False,
            'count': 0,
            'created': 0,
            'updated': 0,
            'deactivated': 0,
            'failed': 0,
            'errors': [error_msg],
            'message': f"Failed to sync properties: {e}"
        }

    if VERBOSE:
        logger.info(f"Found {len(listings)} active listings")

    session = session_factory()
    try:
        now = clock()
        seen_ids: Set[str] = set()

        for raw in listings:
            raw_id = (raw.get('_id') or raw.get('id')) if isinstance(raw, dict) else None
            if raw_id:
                seen_ids.add(str(raw_id))
            try:
                record = parse_listing(raw)
                if upsert_property(session, record, now):
                    created += 1
                else:
                    updated += 1
                session.commit()
            except Exception as e:
                session.rollback()
                error_msg = f"Error syncing listing {raw_id}: {e}"
                errors.append(error_msg)
                logger.warning(error_msg)

        try:
            deactivated = deactivate_missing_properties(session, seen_ids)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            error_msg = f"Error deactivating missing properties: {e}"
            errors.append(error_msg)
            logger.warning(error_msg)

    except Exception as e:
        session.rollback()
        error_msg = f"Fatal error in sync_properties: {e}"
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
            'deactivated': deactivated,
            'failed': len(errors),
            'errors': errors,
            'message': f"Failed to sync properties: {e}"
        }
    finally:
        session.close()

    count = created + updated
    status = 'success' if not errors else 'error'
    write_sync_log(session_factory, SYNC_TYPE, status, count,
                   failed=len(errors), error_message=summarize_errors(errors))

    logger.info(
        f"Property sync complete: {len(listings)} fetched, {created} created, "
        f"{updated} updated, {deactivated} deactivated, {len(errors)} errors"
    )

    if errors:
        message = (f"Synced {count} properties from Guesty with "
                   f"{len(errors)} failed records")
    else:
        message = f"Successfully synced {created} new and {updated} updated properties from Guesty"

    return {
        'success': not errors,
        'count': count,
        'created': created,
        'updated': updated,
        'deactivated': deactivated,
        'failed': len(errors),
        'errors': errors,
        'message': message
    }
