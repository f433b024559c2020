#!/usr/bin/env python3
"""
Firebase client handles and Firestore collection names.

The Admin SDK is initialized at most once per process. Handlers never reach
for module globals directly: they are given a FirebaseClients instance, which
get_clients() builds lazily and set_clients() can replace (tests, emulator
runs).
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import firebase_admin
from firebase_admin import firestore, messaging

# Create logger for this module
logger = logging.getLogger(__name__)

# Collection names
NOTIFICATIONS = 'Notifications'
USERS = 'Users'
TECHNICIANS = 'Technicians'
ADMINS = 'Admins'
DEVELOPERS = 'Developers'
EMAIL_NOTIFICATIONS = 'EmailNotifications'

# Firestore rejects batches with more than 500 writes
MAX_BATCH_WRITES = 500


@dataclass
class FirebaseClients:
    """Firestore client plus the FCM sender (the firebase_admin.messaging module by default)."""

    db: Any
    messaging: Any


_clients: Optional[FirebaseClients] = None


def initialize_firebase() -> None:
    """Initialize the default Firebase app if nothing has yet."""
    if firebase_admin._apps:
        return

    project_id = os.environ.get('GCP_PROJECT') or os.environ.get('PROJECT_ID')
    options = {'projectId': project_id} if project_id else None
    firebase_admin.initialize_app(options=options)
    logger.info(f"[Firebase] Initialized default app (project: {project_id or 'auto'})")


def get_clients() -> FirebaseClients:
    """Return the process-wide clients, creating them on first use."""
    global _clients

    if _clients is None:
        initialize_firebase()
        _clients = FirebaseClients(db=firestore.client(), messaging=messaging)

    return _clients


def set_clients(clients: Optional[FirebaseClients]) -> None:
    """Replace the process-wide clients. Pass None to rebuild them lazily."""
    global _clients
    _clients = clients


class BatchWriter:
    """
    Stages Firestore writes and commits them in batches of at most
    MAX_BATCH_WRITES operations.

    Nothing is written until commit(); callers that hit an exception before
    committing leave the store untouched.
    """

    def __init__(self, db, max_writes: int = MAX_BATCH_WRITES):
        self.db = db
        self.max_writes = max_writes
        self._operations = []

    def __len__(self):
        return len(self._operations)

    def update(self, reference, fields) -> None:
        self._operations.append(('update', reference, fields))

    def delete(self, reference) -> None:
        self._operations.append(('delete', reference, None))

    def commit(self) -> int:
        """
        Commit all staged writes.

        Returns:
            int: Number of writes committed
        """
        committed = 0
        for start in range(0, len(self._operations), self.max_writes):
            chunk = self._operations[start:start + self.max_writes]
            batch = self.db.batch()
            for op, reference, fields in chunk:
                if op == 'update':
                    batch.update(reference, fields)
                else:
                    batch.delete(reference)
            batch.commit()
            committed += len(chunk)
            logger.debug(f"[Firestore] Committed batch of {len(chunk)} write(s)")

        self._operations = []
        return committed
