#!/usr/bin/env python3
"""
Fetch and parse iCal (RFC 5545) reservation feeds.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import requests
from icalendar import Calendar

from sync.errors import (
    NetworkError, ParseError, RequestTimeoutError, ValidationError, error_for_status
)
from utils.dates import format_date, get_checkout_date, normalize_to_utc_midnight, to_naive_utc
from config import ICAL_FETCH_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_ICAL_TITLE = 'Reservation'
DEFAULT_ICAL_STATUS = 'confirmed'


@dataclass
class CalendarEvent:
    """One occupied span on a property calendar, from a feed or the database."""
    id: str
    start: datetime
    end: datetime
    checkout: datetime
    title: str
    source: str  # 'ical' or 'database'
    status: str
    property_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'checkout': self.checkout.isoformat(),
            'title': self.title,
            'source': self.source,
            'status': self.status,
            'propertyId': self.property_id,
        }

    def overlaps(self, start: Optional[datetime], end: Optional[datetime]) -> bool:
        if start is not None and self.end <= start:
            return False
        if end is not None and self.start >= end:
            return False
        return True


def check_ical_url(url: Optional[str]) -> str:
    """Reject empty URLs and anything that is not an absolute http(s) URL."""
    url = (url or '').strip()
    if not url:
        raise ValidationError("Calendar URL is required")
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        raise ValidationError(f"Invalid URL protocol '{parsed.scheme or 'none'}': only http and https are supported")
    if not parsed.netloc:
        raise ValidationError(f"Invalid URL format: {url}")
    return url


def fetch_ical(url: str, timeout: float = ICAL_FETCH_TIMEOUT,
               session: Optional[requests.Session] = None) -> bytes:
    """
    Download a calendar feed.

    Raises:
        ValidationError: URL is not an http(s) URL (no request is made).
        RequestTimeoutError: The server did not answer within the timeout.
        NetworkError: DNS/connection failure.
        APIError: The server answered with an HTTP error status.
    """
    url = check_ical_url(url)
    http = session or requests

    try:
        response = http.get(url, timeout=timeout, headers={'Accept': 'text/calendar, */*'})
    except requests.exceptions.Timeout as e:
        raise RequestTimeoutError(f"Calendar request timed out after {timeout}s", original=e)
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Calendar URL is inaccessible: {e}", original=e)

    if response.status_code >= 400:
        raise error_for_status(response.status_code, response.text[:500], context=f"GET {url}")

    return response.content


def _to_datetime(value: Union[date, datetime]) -> datetime:
    # All-day (DATE) values are pinned to UTC midnight
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return normalize_to_utc_midnight(value)


def parse_ical_events(data: Union[bytes, str], property_id: Optional[str] = None) -> List[CalendarEvent]:
    """
    Parse VEVENT components with both DTSTART and DTEND into CalendarEvents.

    Raises:
        ParseError: The payload is not an iCal calendar.
    """
    try:
        cal = Calendar.from_ical(data)
    except (ValueError, IndexError, KeyError) as e:
        raise ParseError(f"Failed to parse calendar data: {e}")

    if getattr(cal, 'name', None) != 'VCALENDAR':
        raise ParseError("Failed to parse calendar data: no VCALENDAR found")

    events = []
    for index, component in enumerate(cal.walk('VEVENT')):
        dtstart = component.get('dtstart')
        dtend = component.get('dtend')
        if not dtstart or not dtend:
            continue

        try:
            start = _to_datetime(dtstart.dt)
            end = _to_datetime(dtend.dt)
        except (TypeError, ValueError) as e:
            logger.debug(f"Skipping VEVENT {index} with invalid dates: {e}")
            continue

        uid = str(component.get('uid', '') or '').strip()
        summary = str(component.get('summary', '') or '').strip()
        status = str(component.get('status', '') or '').strip().lower()

        events.append(CalendarEvent(
            id=f"ical-{uid}" if uid else f"ical-{index}",
            start=start,
            end=end,
            checkout=get_checkout_date(end),
            title=summary or DEFAULT_ICAL_TITLE,
            source='ical',
            status=status or DEFAULT_ICAL_STATUS,
            property_id=property_id,
        ))

    return events


def sample_event(event: CalendarEvent) -> Dict[str, Any]:
    return {
        'title': event.title,
        'startDate': format_date(event.start),
        'endDate': format_date(event.end),
        'checkoutDate': format_date(event.checkout),
        'status': event.status,
    }
