#!/usr/bin/env python3
"""
Trigger handlers.

Each handler is a plain function taking its trigger context and the Firebase
clients explicitly; functions/main.py registers them with the Cloud
Functions decorators. Callable handlers raise https_fn.HttpsError with the
platform error codes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from firebase_functions import https_fn

from .db import DEVELOPERS, USERS, FirebaseClients
from .errors import CleanupError, SweepError
from .lib.app_config import NotificationSettings, get_notification_settings
from .notification_cleanup import cleanup_old_notifications
from .notification_sweep import run_notification_sweep
from .push_messages import MAINTENANCE_TASK_BODY, MAINTENANCE_TASK_TITLE, build_task_parts, build_test_parts
from .services.push_service import mask_token, send_to_token

# Create logger for this module
logger = logging.getLogger(__name__)

ErrorCode = https_fn.FunctionsErrorCode


@dataclass
class CallContext:
    """Caller identity and payload of a callable invocation."""

    uid: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: https_fn.CallableRequest) -> 'CallContext':
        uid = request.auth.uid if request.auth is not None else None
        data = request.data if isinstance(request.data, dict) else {}
        return cls(uid=uid, data=data)


def require_auth(ctx: CallContext) -> str:
    if not ctx.uid:
        raise https_fn.HttpsError(code=ErrorCode.UNAUTHENTICATED, message='User must be authenticated')
    return ctx.uid


def handle_scheduled_sweep(clients: FirebaseClients, schedule_time: Optional[datetime] = None,
                           settings: Optional[NotificationSettings] = None) -> Dict[str, Any]:
    """Scheduled due-notification sweep. Store failures surface as an internal error."""
    try:
        result = run_notification_sweep(clients, settings=settings, now=schedule_time)
    except SweepError as e:
        logger.error(f"[Sweep] Error in checkNotifications: {e}", exc_info=True)
        raise https_fn.HttpsError(code=ErrorCode.INTERNAL, message='Failed to process notifications') from e

    return {
        'success': True,
        **result.to_dict(),
        'message': f'Processed {result.processed_count} notification groups',
    }


def handle_scheduled_cleanup(clients: FirebaseClients, schedule_time: Optional[datetime] = None,
                             settings: Optional[NotificationSettings] = None) -> Dict[str, Any]:
    try:
        result = cleanup_old_notifications(clients, settings=settings, now=schedule_time)
    except CleanupError as e:
        logger.error(f"[Cleanup] Error in cleanupOldNotifications: {e}", exc_info=True)
        raise https_fn.HttpsError(code=ErrorCode.INTERNAL, message='Failed to clean up notifications') from e

    return {
        'success': True,
        **result.to_dict(),
        'message': f'Deleted {result.deleted_count} old notification groups',
    }


def trigger_notifications_manually(ctx: CallContext, clients: FirebaseClients,
                                   settings: Optional[NotificationSettings] = None) -> Dict[str, Any]:
    """
    Run the due-notification sweep on behalf of an authenticated operator.

    Unauthenticated callers are rejected before anything is read.
    """
    uid = require_auth(ctx)
    settings = settings or get_notification_settings()

    if settings.require_developer_for_manual_trigger:
        developer_doc = clients.db.collection(DEVELOPERS).document(uid).get()
        if not developer_doc.exists:
            raise https_fn.HttpsError(
                code=ErrorCode.PERMISSION_DENIED,
                message='Only developers can manually trigger notifications',
            )

    try:
        result = run_notification_sweep(clients, settings=settings, manual=True, triggered_by=uid)
    except SweepError as e:
        logger.error(f"[Manual Sweep] Error in manual trigger: {e}", exc_info=True)
        raise https_fn.HttpsError(
            code=ErrorCode.INTERNAL, message='Failed to trigger notifications manually'
        ) from e

    return {
        'success': True,
        **result.to_dict(),
        'message': f'Manually triggered {result.processed_count} notifications',
    }


def send_test_notification(ctx: CallContext, clients: FirebaseClients,
                           settings: Optional[NotificationSettings] = None) -> Dict[str, Any]:
    """Push a canned reminder to the caller's own device."""
    uid = require_auth(ctx)
    settings = settings or get_notification_settings()

    user_doc = clients.db.collection(USERS).document(uid).get()
    if not user_doc.exists:
        raise https_fn.HttpsError(code=ErrorCode.NOT_FOUND, message='User not found')

    fcm_token = (user_doc.to_dict() or {}).get('fcmToken')
    if not fcm_token:
        raise https_fn.HttpsError(code=ErrorCode.FAILED_PRECONDITION, message='No FCM token found for user')

    try:
        message_id = send_to_token(clients.messaging, fcm_token, build_test_parts(settings))
    except Exception as e:
        logger.error(f"[Test Notification] Error sending test notification to {uid}: {e}", exc_info=True)
        raise https_fn.HttpsError(code=ErrorCode.INTERNAL, message='Failed to send test notification') from e

    logger.info(f"[Test Notification] Sent test notification to user {uid}")
    return {
        'success': True,
        'messageId': message_id,
        'message': 'Test notification sent successfully',
    }


def send_maintenance_notification(ctx: CallContext, clients: FirebaseClients,
                                  settings: Optional[NotificationSettings] = None) -> Dict[str, Any]:
    """
    Push an ad-hoc maintenance task message to one device token.

    Accepts token, title, body, taskId, facilityId and screen. No
    authentication is required.
    """
    settings = settings or get_notification_settings()
    data = ctx.data

    token = data.get('token')
    if not token or not isinstance(token, str):
        raise https_fn.HttpsError(code=ErrorCode.INVALID_ARGUMENT, message='A device token is required')

    title = data.get('title') or MAINTENANCE_TASK_TITLE
    body = data.get('body') or MAINTENANCE_TASK_BODY
    parts = build_task_parts(
        title,
        body,
        task_id=data.get('taskId'),
        facility_id=data.get('facilityId'),
        screen=data.get('screen'),
        settings=settings,
    )

    try:
        message_id = send_to_token(clients.messaging, token, parts)
    except Exception as e:
        logger.error(f"[Maintenance Notification] Error sending to {mask_token(token)}: {e}", exc_info=True)
        raise https_fn.HttpsError(
            code=ErrorCode.INTERNAL, message='Failed to send maintenance notification'
        ) from e

    logger.info(f"[Maintenance Notification] Sent task {data.get('taskId')} to {mask_token(token)}")
    return {'success': True, 'messageId': message_id}

