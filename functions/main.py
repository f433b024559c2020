"""
Cloud Functions entry points for the CMMS maintenance notifications.

Each function is a thin registration around a plain handler in cmms.handlers;
the scheduling and transport are owned by the Cloud Functions runtime.
"""

import os
import sys
from pathlib import Path

# Since we're deploying from project root, the cmms package is directly accessible
# But we still need to add the project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv
from firebase_functions import https_fn, scheduler_fn

load_dotenv(PROJECT_ROOT / '.env')

# GCP_PROJECT is automatically set by Cloud Functions
# Note: Cannot use FIREBASE_PROJECT_ID as env var (reserved prefix)
project_id = os.environ.get('GCP_PROJECT') or os.environ.get('PROJECT_ID')
if project_id:
    os.environ['PROJECT_ID'] = project_id

from cmms import handlers
from cmms.app import app
from cmms.db import get_clients, initialize_firebase
from cmms.lib.app_config import get_notification_settings
from cmms.lib.logging_config import setup_logging

setup_logging()
initialize_firebase()

settings = get_notification_settings()


@scheduler_fn.on_schedule(schedule=settings.sweep_schedule,
                          timezone=scheduler_fn.Timezone(settings.timezone))
def check_notifications(event: scheduler_fn.ScheduledEvent) -> None:
    """Push reminders for due maintenance notification groups."""
    handlers.handle_scheduled_sweep(get_clients(), schedule_time=event.schedule_time)


@scheduler_fn.on_schedule(schedule=settings.cleanup_schedule,
                          timezone=scheduler_fn.Timezone(settings.timezone))
def cleanup_old_notifications(event: scheduler_fn.ScheduledEvent) -> None:
    """Delete triggered notification groups past the retention window."""
    handlers.handle_scheduled_cleanup(get_clients(), schedule_time=event.schedule_time)


@https_fn.on_call()
def trigger_notifications_manually(req: https_fn.CallableRequest):
    return handlers.trigger_notifications_manually(handlers.CallContext.from_request(req), get_clients())


@https_fn.on_call()
def send_test_notification(req: https_fn.CallableRequest):
    return handlers.send_test_notification(handlers.CallContext.from_request(req), get_clients())


@https_fn.on_call()
def send_maintenance_notification(req: https_fn.CallableRequest):
    return handlers.send_maintenance_notification(handlers.CallContext.from_request(req), get_clients())


@https_fn.on_request()
def cmms_web(req: https_fn.Request) -> https_fn.Response:
    """Health check, messaging service worker and Cloud Scheduler endpoints."""
    with app.request_context(req.environ):
        return app.full_dispatch_request()
