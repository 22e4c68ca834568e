#!/usr/bin/env python3
"""
Unit tests for iCal feed parsing and URL checks.
"""

import unittest
from datetime import datetime
from unittest.mock import MagicMock

import sys
import os
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from calendars.ical_feed import check_ical_url, fetch_ical, parse_ical_events
from sync.errors import ParseError, ServerError, ValidationError

ICS = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Example//Calendar//EN
BEGIN:VEVENT
DTSTART:20250701T150000Z
DTEND:20250704T110000Z
SUMMARY:Jane Doe
STATUS:CONFIRMED
END:VEVENT
BEGIN:VEVENT
UID:no-end
DTSTART;VALUE=DATE:20250710
SUMMARY:Open ended
END:VEVENT
BEGIN:VTODO
UID:todo-1
SUMMARY:Not an event
END:VTODO
END:VCALENDAR
"""


class TestParseIcalEvents(unittest.TestCase):

    def test_parses_only_complete_vevents(self):
        events = parse_ical_events(ICS, property_id='L1')

        self.assertEqual(len(events), 1)
        event = events[0]
        self.assertEqual(event.id, 'ical-0')
        self.assertEqual(event.start, datetime(2025, 7, 1, 15, 0))
        self.assertEqual(event.end, datetime(2025, 7, 4, 11, 0))
        self.assertEqual(event.checkout, datetime(2025, 7, 3))
        self.assertEqual(event.title, 'Jane Doe')
        self.assertEqual(event.status, 'confirmed')
        self.assertEqual(event.source, 'ical')
        self.assertEqual(event.property_id, 'L1')

    def test_to_dict(self):
        data = parse_ical_events(ICS)[0].to_dict()
        self.assertEqual(data['start'], '2025-07-01T15:00:00')
        self.assertEqual(data['checkout'], '2025-07-03T00:00:00')
        self.assertEqual(data['source'], 'ical')

    def test_garbage_raises_parse_error(self):
        with self.assertRaises(ParseError):
            parse_ical_events('<html><body>Login required</body></html>')


class TestFetchIcal(unittest.TestCase):

    def test_invalid_urls(self):
        for url in ('', 'ftp://bad', 'webcal://example.com/cal.ics', 'https://'):
            with self.assertRaises(ValidationError):
                check_ical_url(url)

    def test_rejected_url_is_not_fetched(self):
        http = MagicMock()
        with self.assertRaises(ValidationError):
            fetch_ical('ftp://bad', session=http)
        http.get.assert_not_called()

    def test_server_error(self):
        http = MagicMock()
        http.get.return_value = MagicMock(status_code=500, text='oops')
        with self.assertRaises(ServerError):
            fetch_ical('https://example.com/cal.ics', session=http)

    def test_returns_body(self):
        http = MagicMock()
        http.get.return_value = MagicMock(status_code=200, content=b'BEGIN:VCALENDAR')
        self.assertEqual(fetch_ical('https://example.com/cal.ics', timeout=3, session=http),
                         b'BEGIN:VCALENDAR')
        self.assertEqual(http.get.call_args.kwargs['timeout'], 3)


if __name__ == '__main__':
    unittest.main()
