"""Tests for cmms.notification_sweep: the due-notification sweep.

Covers:
- Due, untriggered groups end fully triggered, with audit metadata
- Future and already-triggered groups are left alone
- Recipients without a token or with notifications disabled get nothing
- A failing token does not stop the others, in both delivery modes
- Query and commit failures abort the run
- The claim step skips groups another run already changed
- Staff audience mode and optional email queueing
"""
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from cmms.db import ADMINS, EMAIL_NOTIFICATIONS, NOTIFICATIONS, TECHNICIANS
from cmms.errors import SweepError
from cmms.lib.app_config import NotificationSettings
from cmms import notification_sweep
from cmms.notification_sweep import find_due_groups, run_notification_sweep
from tests.conftest import NOW, TODAY, seed_group, seed_user
from tests.fakes import FakeMessaging


class TestSelection:

    def test_due_groups_are_marked_triggered(self, db, clients, settings) -> None:
        seed_group(db, 'due-today', TODAY, categories=('HVAC', 'Plumbing'))
        seed_group(db, 'overdue', TODAY - timedelta(days=3))

        result = run_notification_sweep(clients, settings=settings, now=NOW)

        assert sorted(result.processed_ids) == ['due-today', 'overdue']
        for doc_id in ('due-today', 'overdue'):
            doc = db.get(NOTIFICATIONS, doc_id)
            assert doc['isTriggered'] is True
            assert doc['isRead'] is False
            assert doc['triggeredManually'] is False
            assert doc['triggeredHour'] == 9
            assert doc['triggeredAt'] is not None
            assert all(task['isTriggered'] for task in doc['notifications'])

    def test_embedded_fields_are_preserved(self, db, clients, settings) -> None:
        seed_group(db, 'g1', TODAY, categories=('HVAC', 'Electrical'))

        run_notification_sweep(clients, settings=settings, now=NOW)

        tasks = db.get(NOTIFICATIONS, 'g1')['notifications']
        assert [task['category'] for task in tasks] == ['HVAC', 'Electrical']
        assert all(task['component'] == 'Pump' for task in tasks)

    def test_future_and_triggered_groups_untouched(self, db, clients, settings) -> None:
        seed_group(db, 'future', TODAY + timedelta(days=1))
        seed_group(db, 'done', TODAY - timedelta(days=1), is_triggered=True)
        before = {doc_id: db.get(NOTIFICATIONS, doc_id) for doc_id in ('future', 'done')}

        result = run_notification_sweep(clients, settings=settings, now=NOW)

        assert result.processed_count == 0
        for doc_id, data in before.items():
            assert db.get(NOTIFICATIONS, doc_id) == data

    def test_find_due_groups_uses_both_predicates(self, db) -> None:
        seed_group(db, 'due', TODAY)
        seed_group(db, 'future', TODAY + timedelta(hours=1))
        seed_group(db, 'done', TODAY, is_triggered=True)

        assert [s.id for s in find_due_groups(db, TODAY)] == ['due']

    def test_today_follows_configured_timezone(self, db, clients) -> None:
        # 23:00 UTC on the 10th is already 02:00 on the 11th in Nairobi (UTC+3)
        nairobi_midnight = datetime(2026, 3, 11, tzinfo=ZoneInfo('Africa/Nairobi'))
        seed_group(db, 'nairobi-11th', nairobi_midnight)
        late_evening = TODAY + timedelta(hours=23)

        utc_run = run_notification_sweep(clients, settings=NotificationSettings(), now=late_evening)
        nairobi_run = run_notification_sweep(
            clients, settings=NotificationSettings(timezone='Africa/Nairobi'), now=late_evening
        )

        assert utc_run.processed_count == 0
        assert nairobi_run.processed_ids == ['nairobi-11th']
        assert db.get(NOTIFICATIONS, 'nairobi-11th')['triggeredHour'] == 2

    def test_no_due_groups_commits_nothing(self, db, clients, settings) -> None:
        result = run_notification_sweep(clients, settings=settings, now=NOW)

        assert result.processed_count == 0
        assert db.committed_batches == []


class TestDelivery:

    def test_message_content(self, db, clients, messaging_client, settings) -> None:
        seed_group(db, 'g1', TODAY, categories=('HVAC', 'Plumbing', 'HVAC'))
        seed_user(db, 'u1', token='token-1')

        run_notification_sweep(clients, settings=settings, now=NOW)

        [multicast] = messaging_client.multicasts
        assert multicast.tokens == ['token-1']
        assert multicast.notification.title == '🔧 Maintenance Reminder'
        assert multicast.notification.body == (
            'Upcoming maintenance tasks for the following categories: HVAC, Plumbing'
        )
        assert multicast.data['notificationId'] == 'g1'
        assert multicast.data['type'] == 'maintenance_reminder'
        assert multicast.data['taskCount'] == '3'
        assert multicast.data['dueDate'] == '2026-03-10'
        assert sorted(multicast.data['categories'].split(',')) == ['HVAC', 'Plumbing']

    def test_users_without_token_or_disabled_receive_nothing(self, db, clients, messaging_client, settings) -> None:
        seed_group(db, 'g1', TODAY)
        seed_user(db, 'enabled', token='token-enabled')
        seed_user(db, 'default', token='token-default', enabled=True)
        seed_user(db, 'disabled', token='token-disabled', enabled=False)
        seed_user(db, 'no-token', token=None)

        run_notification_sweep(clients, settings=settings, now=NOW)

        assert sorted(messaging_client.delivered_tokens) == ['token-default', 'token-enabled']

    @pytest.mark.parametrize('mode', ['multicast', 'per_token'])
    def test_failing_token_does_not_block_others(self, db, clients, mode) -> None:
        clients.messaging = FakeMessaging(failing_tokens={'token-2'})
        seed_group(db, 'g1', TODAY)
        for index in (1, 2, 3):
            seed_user(db, f'u{index}', token=f'token-{index}')
        settings = NotificationSettings(delivery_mode=mode)

        result = run_notification_sweep(clients, settings=settings, now=NOW)

        assert sorted(clients.messaging.delivered_tokens) == ['token-1', 'token-3']
        assert result.sent_count == 2
        assert result.failed_count == 1
        assert db.get(NOTIFICATIONS, 'g1')['isTriggered'] is True

    def test_shared_device_token_sent_once(self, db, clients, messaging_client, settings) -> None:
        seed_group(db, 'g1', TODAY)
        seed_user(db, 'u1', token='shared')
        seed_user(db, 'u2', token='shared')

        run_notification_sweep(clients, settings=settings, now=NOW)

        assert messaging_client.delivered_tokens == ['shared']

    def test_multicast_error_counts_every_token_as_failed(self, db, clients, settings) -> None:
        class BrokenMessaging(FakeMessaging):
            def send_each_for_multicast(self, multicast):
                raise RuntimeError('FCM unavailable')

        clients.messaging = BrokenMessaging()
        seed_group(db, 'g1', TODAY)
        seed_user(db, 'u1', token='token-1')
        seed_user(db, 'u2', token='token-2')

        result = run_notification_sweep(clients, settings=settings, now=NOW)

        assert result.failed_count == 2
        assert db.get(NOTIFICATIONS, 'g1')['isTriggered'] is True


class TestAudience:

    def test_staff_mode_reads_role_collections(self, db, clients, messaging_client) -> None:
        seed_group(db, 'g1', TODAY)
        db.seed(TECHNICIANS, 'tech', {})
        db.seed(ADMINS, 'admin', {})
        db.seed(ADMINS, 'tech', {})
        seed_user(db, 'tech', token='token-tech')
        seed_user(db, 'admin', token='token-admin')
        seed_user(db, 'outsider', token='token-outsider')

        run_notification_sweep(clients, settings=NotificationSettings(audience='staff'), now=NOW)

        assert messaging_client.delivered_tokens == ['token-tech', 'token-admin']

    def test_failing_user_lookup_is_skipped(self, db, clients, messaging_client) -> None:
        seed_group(db, 'g1', TODAY)
        db.seed(TECHNICIANS, 'broken', {})
        db.seed(TECHNICIANS, 'ok', {})
        seed_user(db, 'broken', token='token-broken')
        seed_user(db, 'ok', token='token-ok')
        db.failing_documents.add(('Users', 'broken'))

        result = run_notification_sweep(clients, settings=NotificationSettings(audience='staff'), now=NOW)

        assert messaging_client.delivered_tokens == ['token-ok']
        assert result.processed_ids == ['g1']


class TestFailures:

    def test_query_failure_raises(self, db, clients, settings) -> None:
        db.failing_collections.add(NOTIFICATIONS)

        with pytest.raises(SweepError):
            run_notification_sweep(clients, settings=settings, now=NOW)

    def test_commit_failure_raises_without_partial_updates(self, db, clients) -> None:
        seed_group(db, 'g1', TODAY)
        seed_group(db, 'g2', TODAY)
        seed_user(db, 'u1', token='token-1')
        db.fail_commit = True

        with pytest.raises(SweepError):
            run_notification_sweep(clients, settings=NotificationSettings(claim_before_send=False), now=NOW)

        for doc_id in ('g1', 'g2'):
            assert db.get(NOTIFICATIONS, doc_id)['isTriggered'] is False

    def test_recipient_query_failure_raises(self, db, clients, messaging_client, settings) -> None:
        seed_group(db, 'g1', TODAY)
        seed_user(db, 'u1', token='token-1')
        db.failing_collections.add('Users')

        with pytest.raises(SweepError):
            run_notification_sweep(clients, settings=settings, now=NOW)

        assert db.get(NOTIFICATIONS, 'g1')['isTriggered'] is False
        assert 'claimedAt' not in db.get(NOTIFICATIONS, 'g1')

        db.failing_collections.clear()
        result = run_notification_sweep(clients, settings=settings, now=NOW)

        assert result.processed_ids == ['g1']
        assert messaging_client.delivered_tokens == ['token-1']


class TestClaim:

    def test_group_changed_after_read_is_skipped(self, db, clients, messaging_client, settings, monkeypatch) -> None:
        seed_group(db, 'raced', TODAY)
        seed_group(db, 'mine', TODAY)
        seed_user(db, 'u1', token='token-1')
        stale = find_due_groups(db, TODAY)
        # Another invocation claims 'raced' between our read and our claim
        db.collection(NOTIFICATIONS).document('raced').update({'isTriggered': True})
        monkeypatch.setattr(notification_sweep, 'find_due_groups', lambda _db, _today: stale)

        result = run_notification_sweep(clients, settings=settings, now=NOW)

        assert result.skipped_ids == ['raced']
        assert result.processed_ids == ['mine']
        assert [m.data['notificationId'] for m in messaging_client.multicasts] == ['mine']

    def test_claim_error_skips_group_and_commits_the_rest(self, db, clients, messaging_client, settings) -> None:
        seed_group(db, 'g1', TODAY)
        seed_group(db, 'g2', TODAY)
        seed_group(db, 'g3', TODAY)
        seed_user(db, 'u1', token='token-1')
        db.failing_claims.add((NOTIFICATIONS, 'g2'))

        result = run_notification_sweep(clients, settings=settings, now=NOW)

        assert result.processed_ids == ['g1', 'g3']
        assert result.skipped_ids == ['g2']
        assert [m.data['notificationId'] for m in messaging_client.multicasts] == ['g1', 'g3']
        for doc_id in ('g1', 'g3'):
            doc = db.get(NOTIFICATIONS, doc_id)
            assert doc['isTriggered'] is True
            assert all(task['isTriggered'] for task in doc['notifications'])
        assert db.get(NOTIFICATIONS, 'g2')['isTriggered'] is False

        db.failing_claims.clear()
        retry = run_notification_sweep(clients, settings=settings, now=NOW)

        assert retry.processed_ids == ['g2']

    def test_claim_marks_group_before_commit(self, db, clients) -> None:
        seed_group(db, 'g1', TODAY)
        db.fail_commit = True

        with pytest.raises(SweepError):
            run_notification_sweep(clients, settings=NotificationSettings(), now=NOW)

        doc = db.get(NOTIFICATIONS, 'g1')
        assert doc['isTriggered'] is True
        assert 'claimedAt' in doc

    def test_second_run_sends_nothing(self, db, clients, messaging_client, settings) -> None:
        seed_group(db, 'g1', TODAY)
        seed_user(db, 'u1', token='token-1')

        run_notification_sweep(clients, settings=settings, now=NOW)
        second = run_notification_sweep(clients, settings=settings, now=NOW)

        assert second.processed_count == 0
        assert messaging_client.delivered_tokens == ['token-1']


class TestManualAndEmail:

    def test_manual_run_records_caller(self, db, clients, settings) -> None:
        seed_group(db, 'g1', TODAY)

        run_notification_sweep(clients, settings=settings, now=NOW, manual=True, triggered_by='dev-1')

        doc = db.get(NOTIFICATIONS, 'g1')
        assert doc['triggeredManually'] is True
        assert doc['triggeredBy'] == 'dev-1'

    def test_emails_queued_when_enabled(self, db, clients) -> None:
        seed_group(db, 'g1', TODAY, categories=('HVAC',))
        seed_user(db, 'u1', token='token-1', email='tech@example.com')
        seed_user(db, 'u2', token='token-2')

        result = run_notification_sweep(clients, settings=NotificationSettings(email_enabled=True), now=NOW)

        emails = [data for (collection, _), data in db.docs.items() if collection == EMAIL_NOTIFICATIONS]
        assert result.emails_queued == 1
        assert len(emails) == 1
        assert emails[0]['to'] == ['tech@example.com']
        assert emails[0]['notificationId'] == 'g1'
        assert 'HVAC' in emails[0]['message']['html']

    def test_no_emails_by_default(self, db, clients, settings) -> None:
        seed_group(db, 'g1', TODAY)
        seed_user(db, 'u1', token='token-1', email='tech@example.com')

        result = run_notification_sweep(clients, settings=settings, now=NOW)

        assert result.emails_queued == 0
        assert not any(collection == EMAIL_NOTIFICATIONS for collection, _ in db.docs)
