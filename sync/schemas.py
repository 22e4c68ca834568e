#!/usr/bin/env python3
"""
Typed records for the Guesty listings and reservations payloads.

The parse_* functions are total: they either return a fully populated record
or raise SchemaError naming the missing/invalid field. Optional fields get
explicit defaults; required fields never do.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sync.errors import SchemaError
from utils.dates import parse_timestamp

DEFAULT_PROPERTY_NAME = 'Unnamed Property'
DEFAULT_ADDRESS = 'No address provided'
DEFAULT_GUEST_NAME = 'Unknown Guest'
DEFAULT_RESERVATION_STATUS = 'unknown'


@dataclass
class ListingRecord:
    """Guesty listing (open-api v1) normalized to the Property shape."""
    property_id: str
    name: str
    address: str
    nickname: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    amenities: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    property_type: Optional[str] = None
    listing_url: Optional[str] = None


@dataclass
class ReservationRecord:
    """Guesty reservation (open-api v1) normalized to the Reservation shape."""
    reservation_id: str
    property_id: str
    guest_name: str
    check_in: datetime
    check_out: datetime
    status: str = DEFAULT_RESERVATION_STATUS
    guest_email: Optional[str] = None
    channel: Optional[str] = None
    total_price: Optional[int] = None


def _require_id(raw: Dict[str, Any], *keys: str, kind: str) -> str:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ''):
            return str(value)
    raise SchemaError(f"{kind} record is missing required field '{keys[0]}'", body=raw)


def _optional_int(value: Any, name: str) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SchemaError(f"Field '{name}' is not an integer: {value!r}")


def _optional_float(value: Any, name: str) -> Optional[float]:
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise SchemaError(f"Field '{name}' is not a number: {value!r}")


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def _format_address(address: Any) -> str:
    if isinstance(address, str):
        return address.strip() or DEFAULT_ADDRESS
    if not isinstance(address, dict):
        return DEFAULT_ADDRESS
    if address.get('full'):
        return str(address['full'])
    parts = [address.get(key) for key in ('street', 'city', 'state', 'country', 'zipcode')]
    joined = ', '.join(str(part) for part in parts if part)
    return joined or DEFAULT_ADDRESS


def to_minor_units(amount: Any) -> Optional[int]:
    """Convert a decimal currency amount to integer cents (half-up)."""
    if amount in (None, ''):
        return None
    try:
        cents = Decimal(str(amount)) * 100
    except InvalidOperation:
        raise SchemaError(f"Monetary amount is not a number: {amount!r}")
    return int(cents.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def parse_listing(raw: Dict[str, Any]) -> ListingRecord:
    """Map one Guesty listing payload to a ListingRecord."""
    if not isinstance(raw, dict):
        raise SchemaError(f"Listing record is not an object: {type(raw).__name__}")

    property_id = _require_id(raw, '_id', 'id', kind='Listing')
    accommodations = raw.get('accommodations') if isinstance(raw.get('accommodations'), dict) else {}

    bedrooms = raw.get('bedrooms', accommodations.get('bedrooms'))
    bathrooms = raw.get('bathrooms', accommodations.get('bathrooms'))

    return ListingRecord(
        property_id=property_id,
        name=(raw.get('title') or raw.get('nickname') or DEFAULT_PROPERTY_NAME).strip(),
        nickname=raw.get('nickname') or None,
        address=_format_address(raw.get('address')),
        bedrooms=_optional_int(bedrooms, 'bedrooms'),
        bathrooms=_optional_float(bathrooms, 'bathrooms'),
        amenities=_string_list(raw.get('amenities')),
        tags=_string_list(raw.get('tags')),
        property_type=raw.get('propertyType') or None,
        listing_url=raw.get('publicUrl') or raw.get('listingUrl') or None,
    )


def guest_display_name(guest: Any) -> str:
    """First + last name, else fullName, else 'Unknown Guest'."""
    if not isinstance(guest, dict):
        return DEFAULT_GUEST_NAME
    name = f"{guest.get('firstName') or ''} {guest.get('lastName') or ''}".strip()
    if name:
        return name
    full_name = (guest.get('fullName') or '').strip()
    return full_name or DEFAULT_GUEST_NAME


def parse_reservation(raw: Dict[str, Any]) -> ReservationRecord:
    """Map one Guesty reservation payload to a ReservationRecord."""
    if not isinstance(raw, dict):
        raise SchemaError(f"Reservation record is not an object: {type(raw).__name__}")

    reservation_id = _require_id(raw, '_id', 'id', kind='Reservation')

    property_id = raw.get('listingId')
    if not property_id and isinstance(raw.get('listing'), dict):
        property_id = raw['listing'].get('_id') or raw['listing'].get('id')
    if not property_id:
        raise SchemaError(f"Reservation {reservation_id} is missing required field 'listingId'", body=raw)

    check_in = parse_timestamp(raw.get('checkIn'))
    if check_in is None:
        raise SchemaError(f"Reservation {reservation_id} has missing or invalid 'checkIn'", body=raw)
    check_out = parse_timestamp(raw.get('checkOut'))
    if check_out is None:
        raise SchemaError(f"Reservation {reservation_id} has missing or invalid 'checkOut'", body=raw)

    guest = raw.get('guest') if isinstance(raw.get('guest'), dict) else {}
    money = raw.get('money') if isinstance(raw.get('money'), dict) else {}

    return ReservationRecord(
        reservation_id=reservation_id,
        property_id=str(property_id),
        guest_name=guest_display_name(guest),
        guest_email=guest.get('email') or None,
        check_in=check_in,
        check_out=check_out,
        status=(raw.get('status') or DEFAULT_RESERVATION_STATUS),
        channel=raw.get('source') or None,
        total_price=to_minor_units(money.get('netAmount')),
    )
