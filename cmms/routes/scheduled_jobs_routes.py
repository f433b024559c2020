#!/usr/bin/env python3
"""
Scheduled jobs routes for Cloud Scheduler
These endpoints are called by Google Cloud Scheduler to run periodic tasks
when the HTTP surface is used instead of the scheduled functions.
"""

import hmac
import logging
from functools import wraps

from flask import Blueprint, jsonify, request

from ..db import get_clients
from ..errors import NotificationJobError
from ..lib.app_config import get_notification_settings
from ..notification_cleanup import cleanup_old_notifications
from ..notification_sweep import run_notification_sweep

# Create logger for this module
logger = logging.getLogger(__name__)

SCHEDULER_SECRET_HEADER = 'X-Scheduler-Secret'

bp = Blueprint('scheduled_jobs', __name__)


def require_scheduler_secret(view):
    """Reject calls without the shared secret when SCHEDULER_SECRET is configured."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        secret = get_notification_settings().scheduler_secret
        if secret:
            provided = request.headers.get(SCHEDULER_SECRET_HEADER, '')
            if not hmac.compare_digest(provided, secret):
                logger.warning(f"[Scheduler] Rejected call to {request.path}: bad or missing secret")
                return jsonify({'status': 'error', 'message': 'Forbidden'}), 403
        return view(*args, **kwargs)
    return wrapper


@bp.route('/scheduled/check-notifications', methods=['GET', 'POST'])
@require_scheduler_secret
def scheduled_check_notifications():
    """
    Push reminders for due maintenance notification groups.
    Called by Cloud Scheduler at the configured sweep times.
    """
    logger.info("[Sweep] /scheduled/check-notifications endpoint called")
    try:
        result = run_notification_sweep(get_clients())
        return jsonify({
            'status': 'success',
            'message': f'Processed {result.processed_count} notification groups',
            **result.to_dict(),
        }), 200
    except NotificationJobError as e:
        logger.error(f"[Sweep] Error in scheduled task: {e}", exc_info=True)
        return jsonify({
            'status': 'error',
            'message': str(e)
        }), 500


@bp.route('/scheduled/cleanup', methods=['GET', 'POST'])
@require_scheduler_secret
def scheduled_cleanup():
    """
    Delete triggered notification groups past the retention window.
    Called by Cloud Scheduler once a week.
    """
    logger.info("[Cleanup] /scheduled/cleanup endpoint called")
    try:
        result = cleanup_old_notifications(get_clients())
        return jsonify({
            'status': 'success',
            'message': f'Deleted {result.deleted_count} old notification groups',
            **result.to_dict(),
        }), 200
    except NotificationJobError as e:
        logger.error(f"[Cleanup] Error in scheduled task: {e}", exc_info=True)
        return jsonify({
            'status': 'error',
            'message': str(e)
        }), 500
