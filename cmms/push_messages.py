#!/usr/bin/env python3
"""
Builders for FCM messages.

Every push carries the same platform blocks: an Android channel with high
priority, an APNs alert with sound and badge, and a Web push notification
matching what the service worker renders. FCM only accepts string values in
the data map, so everything is stringified here.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from firebase_admin import messaging

from .lib.app_config import NotificationSettings
from .models import NotificationGroup

MAINTENANCE_REMINDER_TITLE = '🔧 Maintenance Reminder'
TEST_NOTIFICATION_TITLE = '🔧 Test Maintenance Reminder'
TEST_NOTIFICATION_BODY = 'This is a test notification for maintenance tasks.'
MAINTENANCE_TASK_TITLE = 'Maintenance Task'
MAINTENANCE_TASK_BODY = 'You have a maintenance task to review'

TYPE_MAINTENANCE_REMINDER = 'maintenance_reminder'
TYPE_TEST_NOTIFICATION = 'test_notification'
TYPE_MAINTENANCE_TASK = 'maintenance_task'

# Flutter clients route taps on this click action to their notification handler
CLICK_ACTION = 'FLUTTER_NOTIFICATION_CLICK'
WEB_NOTIFICATION_TAG = 'maintenance-notification'


def reminder_body(categories: List[str]) -> str:
    return f"Upcoming maintenance tasks for the following categories: {', '.join(categories)}"


def string_data(data: Dict[str, Any]) -> Dict[str, str]:
    """Drop None values and stringify the rest."""
    return {key: str(value) for key, value in data.items() if value is not None}


def build_message_parts(title: str, body: str, data: Dict[str, Any],
                        settings: NotificationSettings) -> Dict[str, Any]:
    """
    Keyword arguments shared by messaging.Message and messaging.MulticastMessage.
    """
    ttl = settings.message_ttl_seconds
    fcm_options = None
    if settings.web_link:
        fcm_options = messaging.WebpushFCMOptions(link=settings.web_link)

    return {
        'notification': messaging.Notification(title=title, body=body),
        'data': string_data(data),
        'android': messaging.AndroidConfig(
            priority='high',
            ttl=ttl,
            notification=messaging.AndroidNotification(
                icon=settings.android_icon,
                channel_id=settings.android_channel_id,
                priority='high',
                default_sound=True,
                default_vibrate_timings=True,
            ),
        ),
        'apns': messaging.APNSConfig(
            headers={'apns-priority': '10', 'apns-push-type': 'alert'},
            payload=messaging.APNSPayload(
                aps=messaging.Aps(sound='default', badge=1),
            ),
        ),
        'webpush': messaging.WebpushConfig(
            headers={'TTL': str(ttl), 'Urgency': 'high'},
            notification=messaging.WebpushNotification(
                title=title,
                body=body,
                icon=settings.web_icon,
                badge=settings.web_icon,
                tag=WEB_NOTIFICATION_TAG,
                require_interaction=True,
                renotify=True,
                vibrate=list(settings.vibrate_pattern),
                actions=[
                    messaging.WebpushNotificationAction('view', 'View Details', icon=settings.web_icon),
                    messaging.WebpushNotificationAction('dismiss', 'Dismiss', icon=settings.web_icon),
                ],
            ),
            fcm_options=fcm_options,
        ),
    }


def build_reminder_parts(group: NotificationGroup, settings: NotificationSettings) -> Dict[str, Any]:
    """Message parts for the due-maintenance reminder of one notification group."""
    categories = group.categories()
    data = {
        'notificationId': group.id,
        'type': TYPE_MAINTENANCE_REMINDER,
        'taskCount': group.task_count,
        'categories': ','.join(categories),
        'dueDate': group.due_date,
        'clickAction': CLICK_ACTION,
        'url': settings.web_click_route,
    }
    return build_message_parts(MAINTENANCE_REMINDER_TITLE, reminder_body(categories), data, settings)


def build_test_parts(settings: NotificationSettings, now: Optional[datetime] = None) -> Dict[str, Any]:
    data = {
        'type': TYPE_TEST_NOTIFICATION,
        'timestamp': (now or datetime.now(timezone.utc)).isoformat(),
        'clickAction': CLICK_ACTION,
    }
    return build_message_parts(TEST_NOTIFICATION_TITLE, TEST_NOTIFICATION_BODY, data, settings)


def build_task_parts(title: str, body: str, task_id: Optional[str], facility_id: Optional[str],
                     screen: Optional[str], settings: NotificationSettings) -> Dict[str, Any]:
    data = {
        'type': TYPE_MAINTENANCE_TASK,
        'taskId': task_id,
        'facilityId': facility_id,
        'screen': screen,
        'clickAction': CLICK_ACTION,
    }
    return build_message_parts(title, body, data, settings)
