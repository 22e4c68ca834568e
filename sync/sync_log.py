#!/usr/bin/env python3
"""
Append-only sync run log helpers.
"""

import logging
from typing import Callable, Dict, List, Optional

from database.models import SyncLog

logger = logging.getLogger(__name__)

# Maximum number of per-record errors copied into SyncLog.error_message
MAX_LOGGED_ERRORS = 10

# Default page size for sync history listings
DEFAULT_HISTORY_LIMIT = 50


def summarize_errors(errors: List[str]) -> Optional[str]:
    if not errors:
        return None
    summary = "; ".join(errors[:MAX_LOGGED_ERRORS])
    if len(errors) > MAX_LOGGED_ERRORS:
        summary += f"; ... and {len(errors) - MAX_LOGGED_ERRORS} more"
    return summary


def write_sync_log(session_factory: Callable, sync_type: str, status: str, count: int,
                   failed: int = 0, error_message: Optional[str] = None) -> Optional[SyncLog]:
    """
    Insert one SyncLog row in its own session.

    A fresh session is used so a poisoned sync session cannot prevent the
    run from being recorded.

    Returns:
        The inserted row, or None if it could not be written.
    """
    session = session_factory()
    try:
        sync_log = SyncLog(
            sync_type=sync_type,
            status=status,
            properties_count=count if sync_type.endswith('properties') else None,
            reservations_count=count if sync_type.endswith('reservations') else None,
            records_failed=failed,
            error_message=error_message,
        )
        session.add(sync_log)
        session.commit()
        return sync_log
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to write {sync_type} sync log: {e}", exc_info=True)
        return None
    finally:
        session.close()


def get_latest_sync_log(session_factory: Callable, sync_type: Optional[str] = None) -> Optional[SyncLog]:
    """Return the most recent SyncLog row, optionally for one sync type."""
    session = session_factory()
    try:
        query = session.query(SyncLog)
        if sync_type:
            query = query.filter(SyncLog.sync_type == sync_type)
        return query.order_by(SyncLog.sync_date.desc(), SyncLog.id.desc()).first()
    finally:
        session.close()


def list_sync_logs(session_factory: Callable, sync_type: Optional[str] = None,
                   limit: Optional[int] = DEFAULT_HISTORY_LIMIT) -> List[SyncLog]:
    """Return SyncLog rows newest first, optionally for one sync type."""
    session = session_factory()
    try:
        query = session.query(SyncLog)
        if sync_type:
            query = query.filter(SyncLog.sync_type == sync_type)
        query = query.order_by(SyncLog.sync_date.desc(), SyncLog.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()
    finally:
        session.close()


def get_sync_status(session_factory: Callable) -> Dict[str, SyncLog]:
    """Latest SyncLog row for every sync type that has run at least once."""
    latest: Dict[str, SyncLog] = {}
    for sync_log in list_sync_logs(session_factory, limit=None):
        latest.setdefault(sync_log.sync_type, sync_log)
    return latest
