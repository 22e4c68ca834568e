#!/usr/bin/env python3
"""
Property calendar API routes.
"""

import logging
from flask import Blueprint, jsonify, request

# Configure logger
logger = logging.getLogger(__name__)

from calendars.aggregator import SUGGESTIONS, classify_feed_error
from dashboard.services import get_aggregator
from sync.errors import NotFoundError, PMSError
from utils.dates import parse_timestamp

properties_bp = Blueprint('properties', __name__, url_prefix='/api/properties')

# HTTP status returned for each failed validation category
VALIDATION_STATUS = {
    'URL_INVALID': 400,
    'PARSE_ERROR': 422,
    'TIMEOUT': 504,
    'UNKNOWN': 502,
}


def _window_arg(name):
    """Parse an optional ISO date/datetime query parameter. Raises ValueError if invalid."""
    raw = request.args.get(name)
    if not raw:
        return None
    value = parse_timestamp(raw)
    if value is None:
        raise ValueError(f"Invalid '{name}' date: {raw}")
    return value


@properties_bp.route('/<property_ref>/calendar')
def api_property_calendar(property_ref):
    """Feed and database events for a property, sorted by start"""
    try:
        start = _window_arg('start')
        end = _window_arg('end')
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    try:
        events = get_aggregator().get_property_calendar(property_ref, start=start, end=end)
    except NotFoundError as e:
        return jsonify({'error': e.message}), 404
    except PMSError as e:
        error_type = classify_feed_error(e)
        logger.warning(f"Calendar feed failed for property {property_ref}: {e.message}")
        return jsonify({
            'error': f'Failed to fetch calendar data: {e.message}',
            'errorType': error_type,
            'suggestions': SUGGESTIONS[error_type],
        }), 502
    except Exception as e:
        logger.error(f"Error building calendar for property {property_ref}: {str(e)}", exc_info=True)
        return jsonify({'error': f'Failed to build calendar: {str(e)}'}), 500

    return jsonify([event.to_dict() for event in events])


@properties_bp.route('/validate-ical', methods=['POST'])
def api_validate_ical():
    """Check that a URL serves a usable iCal feed"""
    data = request.get_json(silent=True) or {}
    result = get_aggregator().validate_ical_url(data.get('url'))
    if result['valid']:
        return jsonify(result)
    return jsonify(result), VALIDATION_STATUS.get(result['errorType'], 500)


def register_property_routes(app):
    """Register property routes with Flask app"""
    app.register_blueprint(properties_bp)
