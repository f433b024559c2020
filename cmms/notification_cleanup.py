#!/usr/bin/env python3
"""
Weekly cleanup of notification groups past the retention window.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from .db import NOTIFICATIONS, BatchWriter, FirebaseClients
from .errors import CleanupError
from .lib.app_config import NotificationSettings, get_notification_settings
from .lib.time_utils import ensure_aware, retention_cutoff, utc_now

# Create logger for this module
logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    cutoff: datetime
    deleted_ids: List[str] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'deletedCount': self.deleted_count,
            'cutoff': self.cutoff.isoformat(),
        }


def find_expired_groups(db, cutoff: datetime) -> list:
    """Triggered groups whose notificationDate is before `cutoff`."""
    query = (
        db.collection(NOTIFICATIONS)
        .where(filter=FieldFilter('notificationDate', '<', cutoff))
        .where(filter=FieldFilter('isTriggered', '==', True))
    )
    return list(query.stream())


def cleanup_old_notifications(clients: FirebaseClients, settings: Optional[NotificationSettings] = None,
                              now: Optional[datetime] = None) -> CleanupResult:
    """
    Delete triggered notification groups older than the retention window.

    Raises:
        CleanupError: The query or the delete batch failed
    """
    settings = settings or get_notification_settings()
    now = ensure_aware(now or utc_now())
    cutoff = retention_cutoff(now, settings.retention_days)

    logger.info(f"[Cleanup] Deleting triggered notifications dated before {cutoff.isoformat()}")

    try:
        snapshots = find_expired_groups(clients.db, cutoff)
    except Exception as e:
        logger.error(f"[Cleanup] Failed to query old notifications: {e}", exc_info=True)
        raise CleanupError('Failed to query old notification groups') from e

    result = CleanupResult(cutoff=cutoff)
    if not snapshots:
        logger.info("[Cleanup] No old notifications to delete")
        return result

    writer = BatchWriter(clients.db)
    for snapshot in snapshots:
        writer.delete(snapshot.reference)
        result.deleted_ids.append(snapshot.id)

    try:
        writer.commit()
    except Exception as e:
        logger.error(f"[Cleanup] Failed to delete old notifications: {e}", exc_info=True)
        raise CleanupError('Failed to delete old notification groups') from e

    logger.info(f"[Cleanup] Deleted {result.deleted_count} old notification group(s)")
    return result
