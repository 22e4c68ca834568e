#!/usr/bin/env python3
"""
Tests for webhook signature checks and single-record reconciliation.
"""

import unittest
from datetime import datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import sys
import os
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from database.models import Base, Property, Reservation, SyncLog
from sync.errors import ValidationError
from sync.webhooks import (
    WebhookProcessor, compute_signature, parse_webhook_event, verify_signature
)

NOW = datetime(2025, 6, 1, 12, 0, 0)
SECRET = 'whsec-test'


def make_session_factory():
    engine = create_engine('sqlite://', poolclass=StaticPool,
                           connect_args={'check_same_thread': False})
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


class TestSignature(unittest.TestCase):

    def test_valid_signature(self):
        body = b'{"event":"listing.updated"}'
        self.assertTrue(verify_signature(body, compute_signature(body, SECRET), SECRET))

    def test_uppercase_hex_accepted(self):
        body = b'{}'
        self.assertTrue(verify_signature(body, compute_signature(body, SECRET).upper(), SECRET))

    def test_tampered_body_rejected(self):
        signature = compute_signature(b'{"event":"listing.updated"}', SECRET)
        self.assertFalse(verify_signature(b'{"event":"listing.removed"}', signature, SECRET))

    def test_missing_signature_or_secret_rejected(self):
        body = b'{}'
        self.assertFalse(verify_signature(body, None, SECRET))
        self.assertFalse(verify_signature(body, compute_signature(body, SECRET), None))


class TestParseWebhookEvent(unittest.TestCase):

    def test_listing_event(self):
        event = parse_webhook_event({'event': 'listing.updated', 'data': {'_id': 'L1'}})
        self.assertEqual(event.entity_type, 'property')
        self.assertEqual(event.action, 'updated')
        self.assertEqual(event.entity_id, 'L1')

    def test_entity_keyed_payload(self):
        event = parse_webhook_event({'event': 'reservation.new', 'reservation': {'id': 'R1'}})
        self.assertEqual(event.entity_type, 'reservation')
        self.assertEqual(event.entity_id, 'R1')

    def test_id_only_deletion(self):
        event = parse_webhook_event({'event': 'listing.removed', 'listingId': 'L9'})
        self.assertEqual(event.entity_id, 'L9')
        self.assertEqual(event.data, {})

    def test_missing_event_rejected(self):
        for payload in ({}, {'event': 5}, {'event': 'listing'}, ['listing.updated']):
            with self.assertRaises(ValidationError):
                parse_webhook_event(payload)


class TestWebhookProcessor(unittest.TestCase):

    def setUp(self):
        self.session_factory = make_session_factory()
        self.processor = WebhookProcessor(self.session_factory, clock=lambda: NOW)

    def query(self, model):
        session = self.session_factory()
        try:
            return session.query(model).all()
        finally:
            session.close()

    def test_listing_created_then_updated(self):
        first = self.processor.process({'event': 'listing.created',
                                        'data': {'_id': 'L1', 'title': 'Loft', 'bedrooms': 2}})
        second = self.processor.process({'event': 'listing.updated',
                                         'data': {'_id': 'L1', 'title': 'Big Loft', 'bedrooms': 3}})

        self.assertEqual(first['action'], 'created')
        self.assertEqual(second['action'], 'updated')
        properties = self.query(Property)
        self.assertEqual(len(properties), 1)
        self.assertEqual(properties[0].name, 'Big Loft')
        self.assertEqual(properties[0].bedrooms, 3)
        self.assertEqual(properties[0].last_synced_at, NOW)

        logs = self.query(SyncLog)
        self.assertEqual([log.sync_type for log in logs], ['webhook_properties', 'webhook_properties'])
        self.assertEqual(logs[0].properties_count, 1)

    def test_listing_update_keeps_ical_url(self):
        session = self.session_factory()
        session.add(Property(property_id='L1', name='Loft', address='', source='guesty',
                             ical_url='https://example.com/l1.ics'))
        session.commit()
        session.close()

        self.processor.process({'event': 'listing.updated', 'data': {'_id': 'L1', 'title': 'Loft 2'}})

        self.assertEqual(self.query(Property)[0].ical_url, 'https://example.com/l1.ics')

    def test_listing_removed_deactivates(self):
        self.processor.process({'event': 'listing.created', 'data': {'_id': 'L1', 'title': 'Loft'}})

        result = self.processor.process({'event': 'listing.removed', 'data': {'_id': 'L1'}})

        self.assertTrue(result['success'])
        self.assertEqual(result['action'], 'deactivated')
        properties = self.query(Property)
        self.assertEqual(len(properties), 1)
        self.assertFalse(properties[0].is_active)

    def test_unknown_listing_removal_is_ignored(self):
        result = self.processor.process({'event': 'listing.deleted', 'data': {'_id': 'nope'}})

        self.assertTrue(result['success'])
        self.assertEqual(result['action'], 'ignored')
        self.assertEqual(self.query(SyncLog), [])

    def test_reservation_upsert_and_cancel(self):
        data = {'_id': 'R1', 'listingId': 'L1', 'checkIn': '2025-06-10', 'checkOut': '2025-06-12',
                'status': 'confirmed', 'guest': {'fullName': 'Ada Lovelace'}}

        created = self.processor.process({'event': 'reservation.new', 'data': data})
        deleted = self.processor.process({'event': 'reservation.deleted', 'data': {'_id': 'R1'}})

        self.assertEqual(created['action'], 'created')
        self.assertEqual(deleted['action'], 'canceled')
        reservations = self.query(Reservation)
        self.assertEqual(len(reservations), 1)
        self.assertEqual(reservations[0].guest_name, 'Ada Lovelace')
        self.assertEqual(reservations[0].status, 'canceled')
        self.assertEqual(self.query(SyncLog)[0].reservations_count, 1)

    def test_invalid_record_is_logged_as_error(self):
        result = self.processor.process({'event': 'reservation.updated',
                                         'data': {'_id': 'R1', 'checkIn': '2025-06-10'}})

        self.assertFalse(result['success'])
        self.assertEqual(result['action'], 'failed')
        self.assertEqual(self.query(Reservation), [])
        logs = self.query(SyncLog)
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0].sync_type, 'webhook_reservations')
        self.assertEqual(logs[0].status, 'error')
        self.assertEqual(logs[0].records_failed, 1)

    def test_unsupported_event_is_ignored(self):
        result = self.processor.process({'event': 'guest.updated', 'data': {'_id': 'G1'}})

        self.assertTrue(result['success'])
        self.assertEqual(result['action'], 'ignored')


if __name__ == '__main__':
    unittest.main()
