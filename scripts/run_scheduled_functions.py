#!/usr/bin/env python3
"""
Run the scheduled functions locally against Firestore (or the emulator)

Usage:
    python scripts/run_scheduled_functions.py [--function FUNCTION_NAME]

Examples:
    python scripts/run_scheduled_functions.py --function sweep
    python scripts/run_scheduled_functions.py --function cleanup
    FIRESTORE_EMULATOR_HOST=localhost:8080 python scripts/run_scheduled_functions.py
"""

import argparse
import logging
import os
import sys
import traceback
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / '.env')

# Configure logging to show INFO level messages
logging.basicConfig(
    level=logging.INFO,
    format='%(message)s'  # Simple format for local output
)

from cmms.db import get_clients
from cmms.errors import NotificationJobError
from cmms.lib.app_config import get_notification_settings
from cmms.notification_cleanup import cleanup_old_notifications
from cmms.notification_sweep import run_notification_sweep


def run_sweep(settings):
    print("=" * 80)
    print("Running due-notification sweep")
    print("=" * 80)
    try:
        result = run_notification_sweep(get_clients(), settings=settings)
        print(f"\n✓ Sweep completed: {result.to_dict()}")
        return True
    except NotificationJobError as e:
        print(f"\n✗ Sweep failed: {e}")
        traceback.print_exc()
        return False


def run_cleanup(settings):
    print("=" * 80)
    print("Running cleanup of old notifications")
    print("=" * 80)
    try:
        result = cleanup_old_notifications(get_clients(), settings=settings)
        print(f"\n✓ Cleanup completed: {result.to_dict()}")
        return True
    except NotificationJobError as e:
        print(f"\n✗ Cleanup failed: {e}")
        traceback.print_exc()
        return False


def main():
    parser = argparse.ArgumentParser(
        description="Run scheduled functions locally",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--function",
        choices=["sweep", "cleanup", "all"],
        default="all",
        help="Which function to run (default: all)"
    )
    parser.add_argument(
        "--per-token",
        action="store_true",
        help="Send one message per token instead of multicast"
    )
    parser.add_argument(
        "--no-claim",
        action="store_true",
        help="Skip the claim step (legacy at-least-once behaviour)"
    )
    args = parser.parse_args()

    overrides = {}
    if args.per_token:
        overrides['delivery_mode'] = 'per_token'
    if args.no_claim:
        overrides['claim_before_send'] = False
    settings = get_notification_settings(overrides)

    print(f"Project ID: {os.environ.get('PROJECT_ID') or os.environ.get('GCP_PROJECT') or 'not set'}")
    print(f"Firestore emulator: {os.environ.get('FIRESTORE_EMULATOR_HOST', 'not set')}")
    print(f"Time zone: {settings.timezone}, audience: {settings.audience}, delivery: {settings.delivery_mode}")
    print()

    results = {}
    if args.function in ("sweep", "all"):
        results["sweep"] = run_sweep(settings)
        print()
    if args.function in ("cleanup", "all"):
        results["cleanup"] = run_cleanup(settings)
        print()

    print("=" * 80)
    for name, success in results.items():
        status = "✓ PASSED" if success else "✗ FAILED"
        print(f"{name:30} {status}")
    print("=" * 80)

    if not all(results.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
