#!/usr/bin/env python3
"""
Unified property calendar: iCal feed events merged with synced reservations.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests

from calendars.ical_feed import (
    CalendarEvent, check_ical_url, fetch_ical, parse_ical_events, sample_event
)
from database.models import Property, Reservation, find_property
from sync.errors import (
    NotFoundError, ParseError, PMSError, RequestTimeoutError, ValidationError
)
from utils.dates import normalize_to_utc_midnight
from config import ICAL_FETCH_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_RESERVATION_TITLE = 'Reserved'

URL_INVALID = 'URL_INVALID'
PARSE_ERROR = 'PARSE_ERROR'
TIMEOUT = 'TIMEOUT'
UNKNOWN = 'UNKNOWN'

SUGGESTIONS = {
    URL_INVALID: [
        "Check that the URL begins with http:// or https://",
        "Verify you can access the URL in a web browser",
        "Contact the calendar provider if the URL was provided by them",
    ],
    PARSE_ERROR: [
        "Verify this is an iCal format calendar URL (.ics)",
        "Check if the calendar requires authentication",
        "Try accessing the URL directly in a browser to see the raw calendar data",
    ],
    TIMEOUT: [
        "The calendar server might be slow or overloaded",
        "Try again later",
        "Check if the URL is correct",
    ],
    UNKNOWN: [
        "Try with a different URL",
        "Check your internet connection",
        "Contact support if the issue persists",
    ],
}


def classify_feed_error(error: Exception) -> str:
    """Map a feed failure to one of the validation error categories."""
    if isinstance(error, ValidationError):
        return URL_INVALID
    if isinstance(error, RequestTimeoutError):
        return TIMEOUT
    if isinstance(error, ParseError):
        return PARSE_ERROR
    return UNKNOWN


def _failure(error_type: str, message: str) -> Dict[str, Any]:
    return {
        'valid': False,
        'errorType': error_type,
        'message': message,
        'suggestions': list(SUGGESTIONS[error_type]),
        'eventCount': 0,
    }


class CalendarAggregator:
    """Builds time-ordered calendars for properties and validates feed URLs."""

    def __init__(self, session_factory: Callable, timeout: float = ICAL_FETCH_TIMEOUT,
                 http_session: Optional[requests.Session] = None):
        self.session_factory = session_factory
        self.timeout = timeout
        self.http_session = http_session

    def _find_property(self, session, property_ref) -> Property:
        prop = find_property(session, property_ref)
        if prop is None:
            raise NotFoundError(f"Property {property_ref} not found", status_code=404)
        return prop

    def _reservation_events(self, session, prop: Property, start: Optional[datetime],
                            end: Optional[datetime]) -> List[CalendarEvent]:
        query = session.query(Reservation).filter(Reservation.property_id == prop.property_id)
        if start is not None:
            query = query.filter(Reservation.check_out > start)
        if end is not None:
            query = query.filter(Reservation.check_in < end)

        events = []
        for reservation in query.order_by(Reservation.check_in).all():
            events.append(CalendarEvent(
                id=f"db-{reservation.reservation_id}",
                start=reservation.check_in,
                end=reservation.check_out,
                checkout=normalize_to_utc_midnight(reservation.check_out),
                title=reservation.guest_name or DEFAULT_RESERVATION_TITLE,
                source='database',
                status=reservation.status,
                property_id=prop.property_id,
            ))
        return events

    def get_property_calendar(self, property_ref, start: Optional[datetime] = None,
                              end: Optional[datetime] = None) -> List[CalendarEvent]:
        """
        Return feed and database events for a property, sorted by start.

        Args:
            property_ref: Remote property id, or the local integer id.
            start: Optional window start (naive UTC, inclusive).
            end: Optional window end (naive UTC, exclusive).

        Raises:
            NotFoundError: No such property.
            PMSError: The property's iCal feed could not be fetched or parsed.
        """
        session = self.session_factory()
        try:
            prop = self._find_property(session, property_ref)
            db_events = self._reservation_events(session, prop, start, end)
            ical_url = prop.ical_url
            property_id = prop.property_id
        finally:
            session.close()

        ical_events: List[CalendarEvent] = []
        if ical_url:
            logger.debug(f"Fetching calendar feed for property {property_id}")
            data = fetch_ical(ical_url, timeout=self.timeout, session=self.http_session)
            ical_events = [event for event in parse_ical_events(data, property_id)
                           if event.overlaps(start, end)]
        else:
            logger.debug(f"No iCal URL for property {property_id}, using database events only")

        # sorted() is stable: feed events precede database events on equal starts
        events = sorted(ical_events + db_events, key=lambda event: event.start)
        logger.info(
            f"Calendar for property {property_id}: {len(ical_events)} feed events, "
            f"{len(db_events)} database events"
        )
        return events

    def validate_ical_url(self, url: Optional[str]) -> Dict[str, Any]:
        """
        Check that a URL serves a usable iCal feed.

        Never raises; failures are returned as
        {valid: False, errorType, message, suggestions, eventCount: 0}.
        """
        try:
            url = check_ical_url(url)
        except ValidationError as e:
            return _failure(URL_INVALID, e.message)

        try:
            data = fetch_ical(url, timeout=self.timeout, session=self.http_session)
            events = parse_ical_events(data)
        except PMSError as e:
            error_type = classify_feed_error(e)
            logger.warning(f"iCal validation failed for {url} ({error_type}): {e.message}")
            return _failure(error_type, e.message)
        except Exception as e:
            logger.error(f"Unexpected error validating iCal URL {url}: {e}", exc_info=True)
            return _failure(UNKNOWN, f"Unexpected error: {e}")

        if not events:
            return _failure(PARSE_ERROR, "Calendar feed contains no events")

        events.sort(key=lambda event: event.start)
        logger.info(f"Validated iCal URL {url}: {len(events)} events")
        return {
            'valid': True,
            'message': f"Valid iCal feed with {len(events)} events",
            'eventCount': len(events),
            'firstEventDate': events[0].start.strftime('%Y-%m-%d'),
            'lastEventDate': events[-1].start.strftime('%Y-%m-%d'),
            'sampleEvent': sample_event(events[0]),
        }
