#!/usr/bin/env python3
"""
Reconcile single Guesty records pushed by webhooks.

Payloads look like {"event": "<entity>.<action>", "data": {...}}. Listing and
reservation create/update events are upserted with the same mappers as the
batch syncs; delete events never remove rows, they deactivate properties and
cancel reservations.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sync.errors import PMSError, ValidationError
from sync.schemas import parse_listing, parse_reservation
from sync.sync_log import write_sync_log
from sync.sync_properties import upsert_property
from sync.sync_reservations import upsert_reservation
from database.models import Property, Reservation
from utils.dates import utcnow

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = 'X-Guesty-Signature-V2'

PROPERTY_WEBHOOK = 'webhook_properties'
RESERVATION_WEBHOOK = 'webhook_reservations'

ENTITY_TYPES = {
    'listing': 'property',
    'property': 'property',
    'reservation': 'reservation',
}
UPSERT_ACTIONS = {'new', 'created', 'updated', 'cancelled', 'canceled'}
DELETE_ACTIONS = {'deleted', 'removed'}

DELETED_RESERVATION_STATUS = 'canceled'


def compute_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """Constant-time check of a webhook signature against the raw body."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature.strip().lower())


@dataclass(frozen=True)
class WebhookEvent:
    entity_type: str  # 'property' or 'reservation'
    action: str
    entity_id: Optional[str]
    data: Dict[str, Any]


def parse_webhook_event(payload: Any) -> WebhookEvent:
    """
    Split a webhook payload into entity type, action, id and record data.

    Raises:
        ValidationError: The payload has no usable "event" field.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get('event'), str):
        raise ValidationError("Webhook payload has no 'event' field")

    entity, _, action = payload['event'].partition('.')
    entity = entity.strip().lower()
    action = action.strip().lower()
    if not entity or not action:
        raise ValidationError(f"Unrecognized webhook event {payload['event']!r}")

    data = payload.get('data')
    if not isinstance(data, dict):
        data = payload.get(entity) if isinstance(payload.get(entity), dict) else {}

    entity_id = data.get('_id') or data.get('id') or payload.get(f"{entity}Id")
    return WebhookEvent(
        entity_type=ENTITY_TYPES.get(entity, entity),
        action=action,
        entity_id=str(entity_id) if entity_id else None,
        data=data,
    )


class WebhookProcessor:
    """Applies webhook events to the database, one committed record per event."""

    def __init__(self, session_factory: Callable, clock: Callable[[], datetime] = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    def process(self, payload: Any) -> Dict[str, Any]:
        """
        Dispatch one webhook payload.

        Returns:
            Dictionary with success flag, action taken, entity id and a message.
        """
        event = parse_webhook_event(payload)
        logger.info(f"Processing {event.entity_type} webhook {event.action} for {event.entity_id}")

        if event.entity_type == 'property':
            if event.action in UPSERT_ACTIONS:
                return self.process_property(event.data)
            if event.action in DELETE_ACTIONS:
                return self.process_property_deletion(event.entity_id)
        elif event.entity_type == 'reservation':
            if event.action in UPSERT_ACTIONS:
                return self.process_reservation(event.data)
            if event.action in DELETE_ACTIONS:
                return self.process_reservation_deletion(event.entity_id)

        message = f"Ignored unsupported webhook event {event.entity_type}.{event.action}"
        logger.info(message)
        return {'success': True, 'action': 'ignored', 'entityId': event.entity_id, 'message': message}

    def _apply(self, sync_type: str, entity_id: Optional[str], change: Callable) -> Dict[str, Any]:
        session = self.session_factory()
        try:
            action, message = change(session)
            session.commit()
        except Exception as e:
            session.rollback()
            error_msg = f"Error processing webhook for {entity_id}: {e}"
            if isinstance(e, PMSError):
                logger.warning(error_msg)
            else:
                logger.error(error_msg, exc_info=True)
            write_sync_log(self.session_factory, sync_type, 'error', 0, failed=1,
                           error_message=error_msg)
            return {'success': False, 'action': 'failed', 'entityId': entity_id, 'message': error_msg}
        finally:
            session.close()

        if action != 'ignored':
            write_sync_log(self.session_factory, sync_type, 'success', 1)
        logger.info(message)
        return {'success': True, 'action': action, 'entityId': entity_id, 'message': message}

    def process_property(self, data: Dict[str, Any]) -> Dict[str, Any]:
        def change(session):
            record = parse_listing(data)
            created = upsert_property(session, record, self.clock())
            return ('created' if created else 'updated',
                    f"Property {'created' if created else 'updated'}: {record.name} ({record.property_id})")

        return self._apply(PROPERTY_WEBHOOK, data.get('_id') or data.get('id'), change)

    def process_reservation(self, data: Dict[str, Any]) -> Dict[str, Any]:
        def change(session):
            record = parse_reservation(data)
            created = upsert_reservation(session, record, self.clock())
            return ('created' if created else 'updated',
                    f"Reservation {'created' if created else 'updated'}: {record.reservation_id} "
                    f"for guest {record.guest_name}")

        return self._apply(RESERVATION_WEBHOOK, data.get('_id') or data.get('id'), change)

    def process_property_deletion(self, property_id: Optional[str]) -> Dict[str, Any]:
        def change(session):
            if not property_id:
                raise ValidationError("Property deletion webhook has no property id")
            prop = session.query(Property).filter(Property.property_id == property_id).first()
            if prop is None:
                return 'ignored', f"Property {property_id} is not stored locally, nothing to deactivate"
            prop.is_active = False
            prop.last_synced_at = self.clock()
            return 'deactivated', f"Property deactivated: {prop.name} ({property_id})"

        return self._apply(PROPERTY_WEBHOOK, property_id, change)

    def process_reservation_deletion(self, reservation_id: Optional[str]) -> Dict[str, Any]:
        def change(session):
            if not reservation_id:
                raise ValidationError("Reservation deletion webhook has no reservation id")
            reservation = session.query(Reservation).filter(
                Reservation.reservation_id == reservation_id
            ).first()
            if reservation is None:
                return 'ignored', f"Reservation {reservation_id} is not stored locally, nothing to cancel"
            reservation.status = DELETED_RESERVATION_STATUS
            reservation.last_synced_at = self.clock()
            return 'canceled', f"Reservation canceled: {reservation_id} for guest {reservation.guest_name}"

        return self._apply(RESERVATION_WEBHOOK, reservation_id, change)
