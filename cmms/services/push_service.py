#!/usr/bin/env python3
"""
Best-effort FCM delivery.

A failure for one token is logged and counted and never stops delivery to
the remaining tokens. There is no retry queue.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from firebase_admin import messaging

# Create logger for this module
logger = logging.getLogger(__name__)

# send_each_for_multicast accepts at most 500 tokens per call
MAX_MULTICAST_TOKENS = 500


@dataclass
class DeliveryReport:
    success_count: int = 0
    failure_count: int = 0
    failed_tokens: List[str] = field(default_factory=list)
    unregistered_tokens: List[str] = field(default_factory=list)

    def record_failure(self, token: str, error: Exception) -> None:
        self.failure_count += 1
        self.failed_tokens.append(token)
        if isinstance(error, messaging.UnregisteredError):
            self.unregistered_tokens.append(token)

    def merge(self, other: 'DeliveryReport') -> None:
        self.success_count += other.success_count
        self.failure_count += other.failure_count
        self.failed_tokens.extend(other.failed_tokens)
        self.unregistered_tokens.extend(other.unregistered_tokens)


def mask_token(token: str) -> str:
    """Short form of a device token for log lines."""
    return f"...{token[-8:]}" if token and len(token) > 8 else str(token)


def unique_tokens(tokens: Iterable[str]) -> List[str]:
    seen = []
    for token in tokens:
        if token and token not in seen:
            seen.append(token)
    return seen


def send_to_token(messaging_client, token: str, parts: Dict[str, Any]) -> str:
    """
    Send one message to one device. Errors propagate to the caller.

    Returns:
        str: The FCM message id
    """
    return messaging_client.send(messaging.Message(token=token, **parts))


def _send_per_token(messaging_client, tokens: List[str], parts: Dict[str, Any]) -> DeliveryReport:
    report = DeliveryReport()
    for token in tokens:
        try:
            send_to_token(messaging_client, token, parts)
            report.success_count += 1
        except Exception as e:
            logger.error(f"[Push] Error sending to token {mask_token(token)}: {e}")
            report.record_failure(token, e)
    return report


def _send_multicast(messaging_client, tokens: List[str], parts: Dict[str, Any]) -> DeliveryReport:
    report = DeliveryReport()
    for start in range(0, len(tokens), MAX_MULTICAST_TOKENS):
        chunk = tokens[start:start + MAX_MULTICAST_TOKENS]
        try:
            response = messaging_client.send_each_for_multicast(
                messaging.MulticastMessage(tokens=chunk, **parts)
            )
        except Exception as e:
            logger.error(f"[Push] Multicast to {len(chunk)} token(s) failed: {e}", exc_info=True)
            for token in chunk:
                report.record_failure(token, e)
            continue

        for token, send_response in zip(chunk, response.responses):
            if send_response.success:
                report.success_count += 1
            else:
                logger.error(f"[Push] Error sending to token {mask_token(token)}: {send_response.exception}")
                report.record_failure(token, send_response.exception)

    return report


def deliver(messaging_client, tokens: Iterable[str], parts: Dict[str, Any],
            mode: str = 'multicast') -> DeliveryReport:
    """
    Send the same message to every token.

    Args:
        messaging_client: Object exposing send() and send_each_for_multicast()
        tokens: Device tokens; duplicates and empty values are dropped
        parts: Keyword arguments from push_messages.build_message_parts()
        mode: 'multicast' or 'per_token'
    """
    tokens = unique_tokens(tokens)
    if not tokens:
        return DeliveryReport()

    if mode == 'per_token':
        report = _send_per_token(messaging_client, tokens, parts)
    else:
        report = _send_multicast(messaging_client, tokens, parts)

    logger.info(f"[Push] Delivered to {report.success_count}/{len(tokens)} token(s)")
    if report.unregistered_tokens:
        logger.warning(f"[Push] {len(report.unregistered_tokens)} token(s) are no longer registered")
    return report
