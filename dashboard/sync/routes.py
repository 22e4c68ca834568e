#!/usr/bin/env python3
"""
Guesty sync API routes.
"""

import os
import logging
import tempfile
from flask import Blueprint, current_app, jsonify, request

# Configure logger
logger = logging.getLogger(__name__)

from dashboard.services import (
    get_importer, get_orchestrator, get_session_factory, get_webhook_processor
)
from importers.csv_properties import CSVImportError
from sync.errors import ValidationError
from sync.sync_log import DEFAULT_HISTORY_LIMIT, get_latest_sync_log, get_sync_status, list_sync_logs
from sync.webhooks import SIGNATURE_HEADER, verify_signature

sync_bp = Blueprint('guesty_sync', __name__, url_prefix='/api/guesty')


@sync_bp.route('/sync', methods=['POST'])
def api_sync_all():
    """Sync properties then reservations"""
    try:
        result = get_orchestrator().sync_all()
        return jsonify(result)
    except Exception as e:
        logger.error(f"Error running Guesty sync: {str(e)}", exc_info=True)
        return jsonify({'error': f'Failed to sync with Guesty: {str(e)}'}), 500


@sync_bp.route('/sync/properties', methods=['POST'])
def api_sync_properties():
    """Sync properties only"""
    try:
        result = get_orchestrator().sync_properties()
        return jsonify(result)
    except Exception as e:
        logger.error(f"Error syncing Guesty properties: {str(e)}", exc_info=True)
        return jsonify({'error': f'Failed to sync properties: {str(e)}'}), 500


@sync_bp.route('/sync/reservations', methods=['POST'])
def api_sync_reservations():
    """Sync reservations only"""
    try:
        result = get_orchestrator().sync_reservations()
        return jsonify(result)
    except Exception as e:
        logger.error(f"Error syncing Guesty reservations: {str(e)}", exc_info=True)
        return jsonify({'error': f'Failed to sync reservations: {str(e)}'}), 500


@sync_bp.route('/sync/properties/<property_ref>/reservations', methods=['POST'])
def api_sync_property_reservations(property_ref):
    """Sync all reservations of one property"""
    try:
        result = get_orchestrator().sync_property_reservations(property_ref)
        return jsonify(result)
    except Exception as e:
        logger.error(f"Error syncing reservations for property {property_ref}: {str(e)}", exc_info=True)
        return jsonify({'error': f'Failed to sync reservations: {str(e)}'}), 500


@sync_bp.route('/sync-log')
def api_latest_sync_log():
    """Most recent sync log entry (optionally ?type=properties|reservations), or null"""
    sync_type = request.args.get('type')
    try:
        sync_log = get_latest_sync_log(get_session_factory(), sync_type)
    except Exception as e:
        logger.error(f"Error loading sync log: {str(e)}", exc_info=True)
        return jsonify({'error': f'Failed to load sync log: {str(e)}'}), 500
    return jsonify(sync_log.to_dict() if sync_log else None)


@sync_bp.route('/sync-logs')
def api_sync_logs():
    """Sync history, newest first (?type=...&limit=N)"""
    sync_type = request.args.get('type')
    limit = request.args.get('limit', DEFAULT_HISTORY_LIMIT, type=int)
    if limit is None or limit < 1:
        return jsonify({'error': 'limit must be a positive integer'}), 400
    try:
        sync_logs = list_sync_logs(get_session_factory(), sync_type, limit)
    except Exception as e:
        logger.error(f"Error loading sync history: {str(e)}", exc_info=True)
        return jsonify({'error': f'Failed to load sync history: {str(e)}'}), 500
    return jsonify([sync_log.to_dict() for sync_log in sync_logs])


@sync_bp.route('/sync-status')
def api_sync_status():
    """Latest sync log entry for every sync type"""
    try:
        latest = get_sync_status(get_session_factory())
    except Exception as e:
        logger.error(f"Error loading sync status: {str(e)}", exc_info=True)
        return jsonify({'error': f'Failed to load sync status: {str(e)}'}), 500
    return jsonify({'syncLogs': {sync_type: sync_log.to_dict() for sync_type, sync_log in latest.items()}})


@sync_bp.route('/health')
def api_guesty_health():
    """Check that the Guesty API is reachable with the configured credentials"""
    try:
        result = get_orchestrator().client.health_check()
    except Exception as e:
        logger.error(f"Guesty health check failed: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': str(e)}), 503
    return jsonify(result), (200 if result['success'] else 503)


@sync_bp.route('/import-csv', methods=['POST'])
def api_import_csv():
    """Import properties from an uploaded CSV export (multipart field 'file')"""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return jsonify({'error': 'No CSV file uploaded'}), 400

    fd, temp_path = tempfile.mkstemp(suffix='.csv')
    os.close(fd)
    try:
        upload.save(temp_path)
        logger.info(f"Importing uploaded CSV {upload.filename}")
        result = get_importer().import_file(temp_path)
        return jsonify(result)
    except CSVImportError as e:
        logger.warning(f"Rejected CSV upload {upload.filename}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error importing CSV: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'error': f'Failed to import CSV: {str(e)}'}), 500
    finally:
        os.remove(temp_path)


@sync_bp.route('/webhook', methods=['POST'])
def api_guesty_webhook():
    """Apply one signed Guesty webhook (header X-Guesty-Signature-V2, HMAC-SHA256 of the raw body)"""
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning(f"Rejected webhook without {SIGNATURE_HEADER} header")
        return jsonify({'success': False, 'error': 'Missing signature header'}), 400

    secret = current_app.config.get('GUESTY_WEBHOOK_SECRET')
    if not secret:
        logger.error("GUESTY_WEBHOOK_SECRET is not set, cannot verify webhooks")
        return jsonify({'success': False, 'error': 'Webhook secret is not configured'}), 500

    body = request.get_data()
    if not verify_signature(body, signature, secret):
        logger.warning("Rejected webhook with invalid signature")
        return jsonify({'success': False, 'error': 'Invalid signature'}), 403

    payload = request.get_json(force=True, silent=True)
    if payload is None:
        return jsonify({'success': False, 'error': 'Webhook body is not valid JSON'}), 400

    try:
        result = get_webhook_processor().process(payload)
    except ValidationError as e:
        logger.warning(f"Rejected webhook payload: {e.message}")
        return jsonify({'success': False, 'error': e.message}), 400
    except Exception as e:
        logger.error(f"Error processing Guesty webhook: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'error': f'Failed to process webhook: {str(e)}'}), 500
    return jsonify(result), (200 if result['success'] else 422)


def register_sync_routes(app):
    """Register sync routes with Flask app"""
    app.register_blueprint(sync_bp)
