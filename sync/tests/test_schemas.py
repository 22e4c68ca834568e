#!/usr/bin/env python3
"""
Unit tests for Guesty payload mapping.
"""

import unittest
from datetime import datetime

import sys
import os
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from sync.errors import SchemaError, ValidationError
from sync.schemas import (
    guest_display_name, parse_listing, parse_reservation, to_minor_units
)


class TestParseListing(unittest.TestCase):

    def test_full_listing(self):
        record = parse_listing({
            '_id': 'L1',
            'title': 'Lake House',
            'nickname': 'LAKE-1',
            'address': {'full': '1 Lake Rd, Tahoe, CA'},
            'bedrooms': 3,
            'bathrooms': 2.5,
            'amenities': ['Wifi', ' Pool ', ''],
            'tags': ['premium'],
            'propertyType': 'House',
            'publicUrl': 'https://example.com/l1',
        })
        self.assertEqual(record.property_id, 'L1')
        self.assertEqual(record.name, 'Lake House')
        self.assertEqual(record.nickname, 'LAKE-1')
        self.assertEqual(record.address, '1 Lake Rd, Tahoe, CA')
        self.assertEqual(record.bedrooms, 3)
        self.assertEqual(record.bathrooms, 2.5)
        self.assertEqual(record.amenities, ['Wifi', 'Pool'])
        self.assertEqual(record.listing_url, 'https://example.com/l1')

    def test_minimal_listing_defaults(self):
        record = parse_listing({'id': 42})
        self.assertEqual(record.property_id, '42')
        self.assertEqual(record.name, 'Unnamed Property')
        self.assertEqual(record.address, 'No address provided')
        self.assertIsNone(record.bedrooms)
        self.assertEqual(record.amenities, [])

    def test_address_parts_and_accommodations(self):
        record = parse_listing({
            '_id': 'L2',
            'nickname': 'Cabin',
            'address': {'street': '5 Pine St', 'city': 'Aspen', 'state': 'CO'},
            'accommodations': {'bedrooms': '2', 'bathrooms': '1'},
        })
        self.assertEqual(record.name, 'Cabin')
        self.assertEqual(record.address, '5 Pine St, Aspen, CO')
        self.assertEqual(record.bedrooms, 2)
        self.assertEqual(record.bathrooms, 1.0)

    def test_missing_id_rejected(self):
        with self.assertRaises(SchemaError) as ctx:
            parse_listing({'title': 'No id'})
        self.assertIsInstance(ctx.exception, ValidationError)

    def test_non_numeric_bedrooms_rejected(self):
        with self.assertRaises(SchemaError):
            parse_listing({'_id': 'L3', 'bedrooms': 'many'})

    def test_non_object_rejected(self):
        with self.assertRaises(SchemaError):
            parse_listing(['not', 'a', 'listing'])


class TestParseReservation(unittest.TestCase):

    def base(self, **overrides):
        raw = {
            '_id': 'R1',
            'listingId': 'L1',
            'checkIn': '2025-07-01T15:00:00.000Z',
            'checkOut': '2025-07-05T11:00:00.000Z',
            'status': 'confirmed',
            'source': 'airbnb2',
            'guest': {'firstName': 'Ada', 'lastName': 'Lovelace', 'email': 'ada@example.com'},
            'money': {'netAmount': 1234.565},
        }
        raw.update(overrides)
        return raw

    def test_full_reservation(self):
        record = parse_reservation(self.base())
        self.assertEqual(record.reservation_id, 'R1')
        self.assertEqual(record.property_id, 'L1')
        self.assertEqual(record.guest_name, 'Ada Lovelace')
        self.assertEqual(record.guest_email, 'ada@example.com')
        self.assertEqual(record.check_in, datetime(2025, 7, 1, 15, 0))
        self.assertEqual(record.check_out, datetime(2025, 7, 5, 11, 0))
        self.assertEqual(record.channel, 'airbnb2')
        self.assertEqual(record.total_price, 123457)

    def test_status_defaults_to_unknown(self):
        raw = self.base()
        del raw['status']
        self.assertEqual(parse_reservation(raw).status, 'unknown')

    def test_listing_id_from_nested_listing(self):
        raw = self.base(listing={'_id': 'L9'})
        del raw['listingId']
        self.assertEqual(parse_reservation(raw).property_id, 'L9')

    def test_missing_listing_rejected(self):
        raw = self.base()
        del raw['listingId']
        with self.assertRaises(SchemaError):
            parse_reservation(raw)

    def test_invalid_check_in_rejected(self):
        with self.assertRaises(SchemaError):
            parse_reservation(self.base(checkIn='not a date'))

    def test_timezone_offset_converted_to_utc(self):
        record = parse_reservation(self.base(checkIn='2025-07-01T10:00:00-05:00'))
        self.assertEqual(record.check_in, datetime(2025, 7, 1, 15, 0))


class TestGuestDisplayName(unittest.TestCase):

    def test_first_and_last(self):
        self.assertEqual(guest_display_name({'firstName': ' Ada ', 'lastName': None}), 'Ada')

    def test_full_name_fallback(self):
        self.assertEqual(guest_display_name({'fullName': 'Grace Hopper'}), 'Grace Hopper')

    def test_unknown_guest(self):
        self.assertEqual(guest_display_name({}), 'Unknown Guest')
        self.assertEqual(guest_display_name(None), 'Unknown Guest')


class TestMinorUnits(unittest.TestCase):

    def test_half_up_rounding(self):
        self.assertEqual(to_minor_units('10.005'), 1001)
        self.assertEqual(to_minor_units(99.99), 9999)
        self.assertEqual(to_minor_units(0), 0)

    def test_missing_amount(self):
        self.assertIsNone(to_minor_units(None))

    def test_invalid_amount(self):
        with self.assertRaises(SchemaError):
            to_minor_units('abc')


if __name__ == '__main__':
    unittest.main()
