"""
Cloud Functions for the maintenance sweep and cleanup over plain HTTP
Triggered by Cloud Scheduler
"""

import logging
import sys
from pathlib import Path

# Add parent directory to path
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from functions_framework import http

from cmms.db import get_clients
from cmms.errors import NotificationJobError
from cmms.lib.logging_config import setup_logging
from cmms.notification_cleanup import cleanup_old_notifications
from cmms.notification_sweep import run_notification_sweep

setup_logging()

# Create logger for this module
logger = logging.getLogger(__name__)


@http
def scheduled_check_notifications(request):
    """Cloud Function triggered by Cloud Scheduler for the due-notification sweep"""
    try:
        result = run_notification_sweep(get_clients())
        return {'status': 'success', **result.to_dict()}, 200
    except NotificationJobError as e:
        logger.error(f"[Sweep] Error in scheduled task: {e}", exc_info=True)
        return {'status': 'error', 'message': str(e)}, 500


@http
def scheduled_cleanup(request):
    """Cloud Function triggered by Cloud Scheduler for the weekly cleanup"""
    try:
        result = cleanup_old_notifications(get_clients())
        return {'status': 'success', **result.to_dict()}, 200
    except NotificationJobError as e:
        logger.error(f"[Cleanup] Error in scheduled task: {e}", exc_info=True)
        return {'status': 'error', 'message': str(e)}, 500
