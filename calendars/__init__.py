"""
Property calendar aggregation from iCal feeds and synced reservations.
"""

from .ical_feed import CalendarEvent, fetch_ical, parse_ical_events
from .aggregator import CalendarAggregator

__all__ = [
    'CalendarEvent',
    'CalendarAggregator',
    'fetch_ical',
    'parse_ical_events'
]
