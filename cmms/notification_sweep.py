#!/usr/bin/env python3
"""
Due-notification sweep.

Finds Notifications documents whose notificationDate is on or before today
and that have not been triggered, pushes a reminder for each one, and marks
them (and every embedded task) as triggered in a single batched write.

With claim_before_send enabled each group is first claimed through a
conditional update that only succeeds if the document is unchanged since the
sweep read it, so overlapping runs cannot both deliver the same group. With it
disabled the flag is only flipped by the final batch, and a run whose commit
fails will be re-sent by the next run.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud.firestore import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

from .db import NOTIFICATIONS, BatchWriter, FirebaseClients
from .errors import SweepError
from .lib.app_config import NotificationSettings, get_notification_settings
from .lib.time_utils import ensure_aware, local_hour, start_of_day, utc_now
from .models import NotificationGroup
from .push_messages import build_reminder_parts
from .services.audience_service import load_recipients
from .services.email_service import queue_reminder_emails
from .services.push_service import deliver

# Create logger for this module
logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    run_at: datetime
    processed_ids: List[str] = field(default_factory=list)
    skipped_ids: List[str] = field(default_factory=list)
    sent_count: int = 0
    failed_count: int = 0
    emails_queued: int = 0

    @property
    def processed_count(self) -> int:
        return len(self.processed_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processedCount': self.processed_count,
            'skippedCount': len(self.skipped_ids),
            'sentCount': self.sent_count,
            'failedCount': self.failed_count,
            'emailsQueued': self.emails_queued,
            'processedIds': list(self.processed_ids),
        }


def find_due_groups(db, today: datetime) -> list:
    """Untriggered Notifications documents dated on or before `today`."""
    query = (
        db.collection(NOTIFICATIONS)
        .where(filter=FieldFilter('notificationDate', '<=', today))
        .where(filter=FieldFilter('isTriggered', '==', False))
    )
    return list(query.stream())


def claim_group(db, snapshot) -> bool:
    """
    Flip isTriggered to True only if the document is unchanged since `snapshot`
    was read.

    Returns:
        bool: False when another invocation changed or removed the document first
    """
    try:
        snapshot.reference.update(
            {'isTriggered': True, 'claimedAt': SERVER_TIMESTAMP},
            option=db.write_option(last_update_time=snapshot.update_time),
        )
        return True
    except (google_exceptions.FailedPrecondition, google_exceptions.NotFound):
        return False


def build_triggered_update(group: NotificationGroup, now: datetime, settings: NotificationSettings,
                           manual: bool = False, triggered_by: Optional[str] = None) -> Dict[str, Any]:
    update = {
        'isTriggered': True,
        'isRead': False,
        'notifications': group.triggered_notifications(),
        'triggeredAt': SERVER_TIMESTAMP,
        'triggeredHour': local_hour(now, settings.timezone),
        'triggeredManually': manual,
    }
    if triggered_by:
        update['triggeredBy'] = triggered_by
    return update


def run_notification_sweep(clients: FirebaseClients, settings: Optional[NotificationSettings] = None,
                           now: Optional[datetime] = None, manual: bool = False,
                           triggered_by: Optional[str] = None) -> SweepResult:
    """
    Push reminders for every due, untriggered notification group and mark them triggered.

    Args:
        clients: Firestore and FCM clients
        settings: Defaults to get_notification_settings()
        now: Reference time, defaults to the current UTC time
        manual: True when started from the manual trigger callable
        triggered_by: uid of the caller for manual runs

    Raises:
        SweepError: The query, the recipient lookup, or the final commit failed
    """
    settings = settings or get_notification_settings()
    now = ensure_aware(now or utc_now())
    today = start_of_day(now, settings.timezone)
    db = clients.db
    tag = '[Manual Sweep]' if manual else '[Sweep]'

    logger.info(f"{tag} Running notification check at {now.isoformat()} (due on or before {today.isoformat()})")

    try:
        snapshots = find_due_groups(db, today)
    except Exception as e:
        logger.error(f"{tag} Failed to query due notifications: {e}", exc_info=True)
        raise SweepError('Failed to query due notification groups') from e

    logger.info(f"{tag} Found {len(snapshots)} notification group(s) to process")

    result = SweepResult(run_at=now)
    if not snapshots:
        return result

    # Nothing may be claimed before the audience is known
    try:
        recipients = load_recipients(db, settings.audience)
    except Exception as e:
        logger.error(f"{tag} Failed to load recipients: {e}", exc_info=True)
        raise SweepError('Failed to load notification recipients') from e

    writer = BatchWriter(db)

    for snapshot in snapshots:
        group = NotificationGroup.from_snapshot(snapshot)

        if settings.claim_before_send:
            try:
                claimed = claim_group(db, snapshot)
            except Exception as e:
                # Groups already sent this run still need their staged updates committed
                logger.error(f"{tag} Failed to claim notification group {group.id}, skipping: {e}", exc_info=True)
                result.skipped_ids.append(group.id)
                continue
            if not claimed:
                logger.info(f"{tag} Notification group {group.id} was claimed by another run, skipping")
                result.skipped_ids.append(group.id)
                continue

        logger.info(f"{tag} Processing notification group {group.id} with {group.task_count} task(s)")

        tokens = [recipient.fcm_token for recipient in recipients if recipient.fcm_token]
        logger.info(f"{tag} Sending notification group {group.id} to {len(tokens)} device(s)")
        report = deliver(clients.messaging, tokens, build_reminder_parts(group, settings),
                         mode=settings.delivery_mode)
        result.sent_count += report.success_count
        result.failed_count += report.failure_count

        if settings.email_enabled:
            result.emails_queued += queue_reminder_emails(db, group, recipients, settings.app_name)

        writer.update(group.reference, build_triggered_update(group, now, settings, manual, triggered_by))
        result.processed_ids.append(group.id)

    try:
        writer.commit()
    except Exception as e:
        logger.error(f"{tag} Failed to commit triggered notification groups: {e}", exc_info=True)
        raise SweepError('Failed to mark notification groups as triggered') from e

    logger.info(
        f"{tag} Successfully processed {result.processed_count} notification group(s), "
        f"{len(result.skipped_ids)} skipped, {result.sent_count} push(es) sent, {result.failed_count} failed"
    )
    return result
