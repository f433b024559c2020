#!/usr/bin/env python3
"""
Email reminders queued in the EmailNotifications collection.

Documents use the Firebase "Trigger Email" extension format
({to, message: {subject, text, html}}); the extension does the actual SMTP
delivery.
"""

import logging
from pathlib import Path
from typing import Iterable

from google.cloud.firestore import SERVER_TIMESTAMP
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..db import EMAIL_NOTIFICATIONS
from ..models import NotificationGroup, Recipient
from ..push_messages import MAINTENANCE_REMINDER_TITLE, TYPE_MAINTENANCE_REMINDER, reminder_body

# Create logger for this module
logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / 'templates' / 'email'

_jinja_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(['html', 'xml']),
)


def render_reminder_html(group: NotificationGroup, app_name: str) -> str:
    template = _jinja_env.get_template('maintenance_reminder.html')
    return template.render(
        app_name=app_name,
        title=MAINTENANCE_REMINDER_TITLE,
        categories=group.categories(),
        due_date=group.due_date,
        tasks=group.tasks,
    )


def build_reminder_email(group: NotificationGroup, recipient_email: str, app_name: str) -> dict:
    return {
        'to': [recipient_email],
        'message': {
            'subject': f"{MAINTENANCE_REMINDER_TITLE} - {app_name}",
            'text': reminder_body(group.categories()),
            'html': render_reminder_html(group, app_name),
        },
        'notificationId': group.id,
        'type': TYPE_MAINTENANCE_REMINDER,
        'createdAt': SERVER_TIMESTAMP,
    }


def queue_reminder_emails(db, group: NotificationGroup, recipients: Iterable[Recipient],
                          app_name: str) -> int:
    """
    Queue one reminder email per recipient that has an address.

    Returns:
        int: Number of emails queued
    """
    queued = 0
    for recipient in recipients:
        if not recipient.email:
            continue
        try:
            db.collection(EMAIL_NOTIFICATIONS).add(build_reminder_email(group, recipient.email, app_name))
            queued += 1
        except Exception as e:
            logger.error(f"[Email] Failed to queue reminder for user {recipient.user_id}: {e}", exc_info=True)

    if queued:
        logger.info(f"[Email] Queued {queued} reminder email(s) for group {group.id}")
    return queued
