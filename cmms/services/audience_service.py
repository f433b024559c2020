#!/usr/bin/env python3
"""
Resolve who receives maintenance reminders.

'staff' mode reads the Technicians and Admins role collections and looks up
each uid in Users. 'all_users' mode reads every user with an FCM token.
Users with notificationsEnabled == False are always left out.
"""

import logging
from typing import List

from google.cloud.firestore_v1.base_query import FieldFilter

from ..db import ADMINS, TECHNICIANS, USERS
from ..models import Recipient

# Create logger for this module
logger = logging.getLogger(__name__)


def get_staff_user_ids(db) -> List[str]:
    """Technician then admin uids, without duplicates."""
    user_ids = []
    for collection_name in (TECHNICIANS, ADMINS):
        for doc in db.collection(collection_name).stream():
            if doc.id not in user_ids:
                user_ids.append(doc.id)
    return user_ids


def load_staff_recipients(db) -> List[Recipient]:
    user_ids = get_staff_user_ids(db)
    logger.info(f"[Audience] Found {len(user_ids)} technician/admin user(s)")

    recipients = []
    for user_id in user_ids:
        try:
            user_doc = db.collection(USERS).document(user_id).get()
            if not user_doc.exists:
                logger.debug(f"[Audience] No Users document for {user_id}, skipping")
                continue
            recipient = Recipient.from_user_data(user_id, user_doc.to_dict() or {})
        except Exception as e:
            logger.error(f"[Audience] Error processing user {user_id}: {e}", exc_info=True)
            continue

        if recipient is not None:
            recipients.append(recipient)

    return recipients


def load_all_user_recipients(db) -> List[Recipient]:
    query = db.collection(USERS).where(filter=FieldFilter('fcmToken', '!=', None))

    recipients = []
    for user_doc in query.stream():
        recipient = Recipient.from_user_data(user_doc.id, user_doc.to_dict() or {})
        if recipient is not None:
            recipients.append(recipient)

    logger.info(f"[Audience] Found {len(recipients)} user(s) with notifications enabled")
    return recipients


def load_recipients(db, audience: str = 'all_users') -> List[Recipient]:
    """
    Load the reminder audience.

    Role or Users query failures propagate; a failing per-user lookup only
    skips that user.
    """
    if audience == 'staff':
        return load_staff_recipients(db)
    return load_all_user_recipients(db)
