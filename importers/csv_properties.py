#!/usr/bin/env python3
"""
Import properties from a Guesty CSV export.

Rows are processed strictly in file order and committed one at a time, so a
bad row is attributed to its row number and never blocks the rest of the file.
"""

import csv
import json
import logging
import math
import os
import re
import sys
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database.models import Property
from utils.dates import utcnow

logger = logging.getLogger(__name__)

DEFAULT_BEDROOMS = 1
DEFAULT_BATHROOMS = 1.0

# Canonical field -> accepted (normalized) header names
COLUMN_ALIASES = {
    'property_id': ('id', 'property_id', 'listing_id'),
    'nickname': ('nickname',),
    'title': ('title', 'name'),
    'property_type': ('type_of_unit', 'property_type'),
    'address': ('address',),
    'tags': ('tags',),
    'bedrooms': ('bedrooms',),
    'bathrooms': ('bathrooms',),
    'amenities': ('amenities',),
    'listing_url': ('listing_url', 'listingurl'),
    'ical_url': ('ical_url', 'icalurl'),
}


class CSVImportError(Exception):
    """The file as a whole cannot be imported (empty, unrecognized header, undecodable)."""


def normalize_header(header: Optional[str]) -> str:
    """'TYPE OF UNIT', 'Type_of_Unit' and ' type of  unit ' all become 'type_of_unit'."""
    return re.sub(r'[\s_]+', '_', (header or '').strip().lower())


def slugify(value: str) -> str:
    return re.sub(r'\s+', '-', value.strip().lower())


def parse_list_field(value: Optional[str]) -> List[str]:
    """Accept either a JSON array or a comma-separated string."""
    if not value:
        return []
    value = value.strip()
    if value.startswith('[') and value.endswith(']'):
        try:
            parsed = json.loads(value)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]
    return [item.strip() for item in value.split(',') if item.strip()]


def build_column_map(fieldnames: List[str]) -> Dict[str, str]:
    """Map canonical field names to the actual header names present in the file."""
    by_normalized = {}
    for name in fieldnames:
        by_normalized.setdefault(normalize_header(name), name)

    column_map = {}
    for field_name, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in by_normalized:
                column_map[field_name] = by_normalized[alias]
                break
    return column_map


class CSVImporter:
    """Upserts CSV property rows into the properties table."""

    def __init__(self, session_factory: Callable, clock: Callable[[], datetime] = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    @staticmethod
    def _value(row: Dict[str, Any], column_map: Dict[str, str], field_name: str) -> str:
        column = column_map.get(field_name)
        if not column:
            return ''
        value = row.get(column)
        return value.strip() if isinstance(value, str) else ''

    @staticmethod
    def _number(raw: str, cast, default, label: str, name: str, warnings: List[str]):
        if not raw:
            return default
        try:
            value = cast(raw)
        except ValueError:
            value = None
        if value is None or not math.isfinite(value) or value < 0:
            warnings.append(f'Invalid {label} value "{raw}" for property "{name}", using default: {default}')
            return default
        return value

    def _map_row(self, row: Dict[str, Any], column_map: Dict[str, str],
                 warnings: List[str]) -> Tuple[Dict[str, Any], Optional[str]]:
        """
        Map one CSV row to Property values.

        Returns:
            (values, error) where error is set for malformed rows.
        """
        if row.get(None):
            return {}, f"Row has {len(row[None])} more field(s) than the header"

        nickname = self._value(row, column_map, 'nickname')
        title = self._value(row, column_map, 'title')
        if not title and not nickname:
            return {}, "Row has neither a title nor a nickname"

        name = title or nickname
        property_id = self._value(row, column_map, 'property_id') or f"csv-{slugify(nickname or title)}"

        values = {
            'property_id': property_id,
            'name': name,
            'nickname': nickname or None,
            'address': self._value(row, column_map, 'address'),
            'property_type': self._value(row, column_map, 'property_type') or None,
            'tags': json.dumps(parse_list_field(self._value(row, column_map, 'tags'))),
            'amenities': json.dumps(parse_list_field(self._value(row, column_map, 'amenities'))),
            'bedrooms': self._number(self._value(row, column_map, 'bedrooms'), int,
                                     DEFAULT_BEDROOMS, 'bedroom', name, warnings),
            'bathrooms': self._number(self._value(row, column_map, 'bathrooms'), float,
                                      DEFAULT_BATHROOMS, 'bathroom', name, warnings),
            'listing_url': self._value(row, column_map, 'listing_url') or None,
        }
        ical_url = self._value(row, column_map, 'ical_url')
        if ical_url:
            values['ical_url'] = ical_url
        return values, None

    def _upsert(self, session, values: Dict[str, Any], now: datetime) -> bool:
        """Upsert by nickname when present, else by property id. Returns True if created."""
        existing = None
        if values.get('nickname'):
            existing = session.query(Property).filter(Property.nickname == values['nickname']).first()
        if existing is None:
            existing = session.query(Property).filter(
                Property.property_id == values['property_id']
            ).first()

        if existing:
            for key, value in values.items():
                # Keep the key of a row matched by nickname
                if key == 'property_id':
                    continue
                setattr(existing, key, value)
            existing.is_active = True
            existing.last_synced_at = now
            return False

        session.add(Property(source='csv', is_active=True, last_synced_at=now, **values))
        return True

    def import_file(self, path: str) -> Dict[str, Any]:
        """
        Import every row of a CSV file.

        Args:
            path: Path to the CSV file.

        Returns:
            Dictionary with success, message, properties_count, created, updated,
            errors ([{row, message}]) and warnings.

        Raises:
            FileNotFoundError: The file does not exist.
            CSVImportError: The file is empty, has no recognized columns, or
                cannot be decoded.
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"File not found: {path}")
        if os.path.getsize(path) == 0:
            raise CSVImportError("CSV file is empty")

        created = 0
        updated = 0
        errors: List[Dict[str, Any]] = []
        warnings: List[str] = []

        session = self.session_factory()
        try:
            with open(path, 'r', encoding='utf-8-sig', newline='') as csvfile:
                reader = csv.DictReader(csvfile)
                if not reader.fieldnames:
                    raise CSVImportError("CSV file is empty or has no header row")

                column_map = build_column_map(reader.fieldnames)
                if 'title' not in column_map and 'nickname' not in column_map:
                    raise CSVImportError(
                        "CSV file has no recognized property columns. Expected NICKNAME or TITLE, found: "
                        + ', '.join(reader.fieldnames)
                    )
                logger.info(f"Importing properties from {path} (columns: {', '.join(column_map)})")

                now = self.clock()
                for row_number, row in enumerate(reader, start=1):
                    values, error = self._map_row(row, column_map, warnings)
                    if error:
                        errors.append({'row': row_number, 'message': error})
                        logger.warning(f"Skipping CSV row {row_number}: {error}")
                        continue

                    try:
                        if self._upsert(session, values, now):
                            created += 1
                        else:
                            updated += 1
                        session.commit()
                    except Exception as e:
                        session.rollback()
                        message = f"Error storing property {values['name']}: {e}"
                        errors.append({'row': row_number, 'message': message})
                        logger.warning(f"CSV row {row_number}: {message}")
        except UnicodeDecodeError as e:
            session.rollback()
            raise CSVImportError(f"CSV file could not be decoded as UTF-8: {e}")
        except csv.Error as e:
            session.rollback()
            raise CSVImportError(f"CSV parse error: {e}")
        finally:
            session.close()

        count = created + updated
        message = f"Successfully imported {created} properties from CSV ({updated} updated)"
        if errors:
            message += f", {len(errors)} rows failed"
        logger.info(message)

        return {
            'success': True,
            'message': message,
            'properties_count': count,
            'created': created,
            'updated': updated,
            'errors': errors,
            'warnings': warnings,
        }


if __name__ == "__main__":
    import argparse

    from database.models import get_session_factory, init_models
    from utils.logging_config import setup_logging
    setup_logging()

    parser = argparse.ArgumentParser(description='Import properties from a Guesty CSV export')
    parser.add_argument('csv_file', help='Path to the CSV file')
    args = parser.parse_args()

    try:
        init_models()
        result = CSVImporter(get_session_factory()).import_file(args.csv_file)
    except (FileNotFoundError, CSVImportError) as e:
        logger.error(str(e))
        print(f"\n\nImport failed: {e}")
        sys.exit(1)

    print(result['message'])
    for error in result['errors']:
        print(f"  Row {error['row']}: {error['message']}")
    for warning in result['warnings']:
        print(f"  Warning: {warning}")
