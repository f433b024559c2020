#!/usr/bin/env python3
"""
Template context for the Firebase messaging service worker.

The script itself lives in templates/firebase-messaging-sw.js; the Firebase
web config, default texts and click route are injected from app_config.json
so one build serves every environment.
"""

from typing import Any, Dict, Optional

from .lib.app_config import NotificationSettings, get_firebase_config, get_notification_settings
from .push_messages import TYPE_MAINTENANCE_REMINDER, WEB_NOTIFICATION_TAG

FIREBASE_JS_VERSION = '10.12.2'
BADGE_STORAGE_KEY = 'notification_count'
CLICK_MESSAGE_TYPE = 'NOTIFICATION_CLICKED'
DEFAULT_BODY = 'You have maintenance tasks to check'


def get_service_worker_context(settings: Optional[NotificationSettings] = None) -> Dict[str, Any]:
    settings = settings or get_notification_settings()
    return {
        'firebase_js_version': FIREBASE_JS_VERSION,
        'firebase_config': get_firebase_config(),
        'default_title': settings.app_name,
        'default_body': DEFAULT_BODY,
        'default_type': TYPE_MAINTENANCE_REMINDER,
        'icon': settings.web_icon,
        'tag': WEB_NOTIFICATION_TAG,
        'vibrate': list(settings.vibrate_pattern),
        'click_route': settings.web_click_route,
        'badge_storage_key': BADGE_STORAGE_KEY,
        'click_message_type': CLICK_MESSAGE_TYPE,
    }
