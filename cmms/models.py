#!/usr/bin/env python3
"""
Shapes of the Firestore documents this code reads and writes.

Embedded notifications are kept as the raw maps read from Firestore so that
fields written by the app (and unknown to this code) survive the
copy-and-flip update of the whole array.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .lib.time_utils import to_iso_date


@dataclass
class MaintenanceTask:
    """Read-only view of one embedded notification."""

    category: Optional[str] = None
    component: Optional[str] = None
    intervention: Optional[str] = None
    frequency: Optional[str] = None
    last_inspection_date: Any = None
    next_inspection_date: Any = None
    is_triggered: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MaintenanceTask':
        return cls(
            category=data.get('category'),
            component=data.get('component'),
            intervention=data.get('intervention'),
            frequency=data.get('frequency'),
            last_inspection_date=data.get('lastInspectionDate'),
            next_inspection_date=data.get('nextInspectionDate'),
            is_triggered=bool(data.get('isTriggered', False)),
        )


@dataclass
class NotificationGroup:
    """One Notifications document: every maintenance task due on the same date."""

    id: str
    notification_date: Any = None
    is_triggered: bool = False
    is_read: bool = False
    notifications: List[Dict[str, Any]] = field(default_factory=list)
    reference: Any = None

    @classmethod
    def from_snapshot(cls, snapshot) -> 'NotificationGroup':
        data = snapshot.to_dict() or {}
        return cls(
            id=snapshot.id,
            notification_date=data.get('notificationDate'),
            is_triggered=bool(data.get('isTriggered', False)),
            is_read=bool(data.get('isRead', False)),
            notifications=list(data.get('notifications') or []),
            reference=snapshot.reference,
        )

    @property
    def task_count(self) -> int:
        return len(self.notifications)

    @property
    def tasks(self) -> List[MaintenanceTask]:
        return [MaintenanceTask.from_dict(n) for n in self.notifications]

    @property
    def due_date(self) -> str:
        return to_iso_date(self.notification_date)

    def categories(self) -> List[str]:
        """Distinct non-empty categories, in order of first appearance."""
        seen = []
        for notification in self.notifications:
            category = notification.get('category')
            if category and category not in seen:
                seen.append(category)
        return seen

    def triggered_notifications(self) -> List[Dict[str, Any]]:
        """Copy of the embedded array with every element marked triggered."""
        return [{**notification, 'isTriggered': True} for notification in self.notifications]


@dataclass
class Recipient:
    """A user that may receive a maintenance reminder."""

    user_id: str
    fcm_token: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_user_data(cls, user_id: str, data: Dict[str, Any]) -> Optional['Recipient']:
        """
        Build a Recipient from a Users document.

        Returns None when the user switched notifications off.
        """
        if data.get('notificationsEnabled') is False:
            return None
        return cls(
            user_id=user_id,
            fcm_token=data.get('fcmToken') or None,
            email=data.get('email') or None,
        )
