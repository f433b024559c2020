import json
from datetime import datetime, timedelta, timezone

import pytest

from cmms.db import NOTIFICATIONS, USERS, FirebaseClients, set_clients
from cmms.lib import app_config
from cmms.lib.app_config import NotificationSettings
from tests.fakes import FakeFirestore, FakeMessaging

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
TODAY = datetime(2026, 3, 10, tzinfo=timezone.utc)


def make_task(category, component='Pump', intervention='Inspect', is_triggered=False):
    return {
        'category': category,
        'component': component,
        'intervention': intervention,
        'frequency': 'Monthly',
        'lastInspectionDate': TODAY - timedelta(days=30),
        'nextInspectionDate': TODAY,
        'isTriggered': is_triggered,
    }


def seed_group(db, doc_id, notification_date, categories=('HVAC',), is_triggered=False):
    db.seed(NOTIFICATIONS, doc_id, {
        'notificationDate': notification_date,
        'isTriggered': is_triggered,
        'isRead': False,
        'notifications': [make_task(category) for category in categories],
    })


def seed_user(db, uid, token=None, email=None, enabled=None):
    data = {'fcmToken': token, 'email': email}
    if enabled is not None:
        data['notificationsEnabled'] = enabled
    db.seed(USERS, uid, data)


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def messaging_client():
    return FakeMessaging()


@pytest.fixture
def clients(db, messaging_client):
    return FirebaseClients(db=db, messaging=messaging_client)


@pytest.fixture
def settings():
    return NotificationSettings()


@pytest.fixture
def app_config_file(tmp_path, monkeypatch):
    """Point app_config at a temporary app_config.json and clear the cache around the test."""
    path = tmp_path / 'app_config.json'
    path.write_text(json.dumps({
        'firebase': {'projectId': 'cmms-test', 'messagingSenderId': '1234'},
        'notifications': {'timezone': 'Africa/Nairobi', 'retention_days': 14},
    }))
    monkeypatch.setenv('CMMS_APP_CONFIG', str(path))
    for name in ('CMMS_TIMEZONE', 'CMMS_AUDIENCE', 'CMMS_DELIVERY_MODE', 'CMMS_RETENTION_DAYS',
                 'CMMS_EMAIL_ENABLED', 'CMMS_CLAIM_BEFORE_SEND', 'SCHEDULER_SECRET'):
        monkeypatch.delenv(name, raising=False)
    app_config.reload_config()
    yield path
    monkeypatch.delenv('CMMS_APP_CONFIG')
    app_config.reload_config()


@pytest.fixture
def installed_clients(clients):
    set_clients(clients)
    yield clients
    set_clients(None)
