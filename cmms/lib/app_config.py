#!/usr/bin/env python3
"""
Configuration management for app_config.json and environment overrides.

app_config.json lives at the project root (override the path with
CMMS_APP_CONFIG). The "firebase" section holds the web app config injected
into the service worker; the "notifications" section tunes the sweep,
cleanup and push messages. Environment variables win over the file.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

# Create logger for this module
logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_APP_CONFIG_PATH = PROJECT_ROOT / 'app_config.json'

AUDIENCE_MODES = ('staff', 'all_users')
DELIVERY_MODES = ('multicast', 'per_token')

# Cache for the loaded config
_config_cache = None


def get_app_config_path() -> Path:
    return Path(os.environ.get('CMMS_APP_CONFIG') or DEFAULT_APP_CONFIG_PATH)


def get_app_config(reload=False):
    """
    Load and return the application configuration from app_config.json

    Args:
        reload: If True, force reload from file (default: False, uses cache)

    Returns:
        dict: Configuration dictionary, empty dict if the file is missing or invalid
    """
    global _config_cache

    if _config_cache is None or reload:
        config_path = get_app_config_path()
        try:
            if config_path.exists():
                with open(config_path, 'r', encoding='utf-8') as f:
                    _config_cache = json.load(f)
                    logger.debug(f"Loaded app config from {config_path}")
            else:
                logger.warning(f"app_config.json not found at {config_path}")
                _config_cache = {}
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse {config_path}: {e}")
            _config_cache = {}
        except OSError as e:
            logger.warning(f"Could not read {config_path}: {e}")
            _config_cache = {}

    return dict(_config_cache) if _config_cache else {}


def get_config_value(key, default=None, section=None):
    """
    Get a configuration value from app_config.json

    Args:
        key: The configuration key to retrieve
        default: Default value if key is not found
        section: Optional section name (e.g., 'notifications') to look within

    Examples:
        get_config_value('timezone', section='notifications')
        get_config_value('projectId', section='firebase')
    """
    config = get_app_config()

    if section:
        return config.get(section, {}).get(key, default)

    return config.get(key, default)


def get_firebase_config():
    """Firebase web app configuration (apiKey, projectId, messagingSenderId, ...)."""
    return dict(get_app_config().get('firebase', {}))


def reload_config():
    """
    Force reload of configuration from file (clears cache)
    """
    global _config_cache
    _config_cache = None
    return get_app_config(reload=True)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class NotificationSettings:
    """Tunables for the sweep, cleanup and push message builders."""

    timezone: str = 'UTC'
    sweep_schedule: str = '0 9,11 * * *'
    cleanup_schedule: str = '0 0 * * 0'
    audience: str = 'all_users'
    delivery_mode: str = 'multicast'
    claim_before_send: bool = True
    retention_days: int = 30
    email_enabled: bool = False
    require_developer_for_manual_trigger: bool = True
    android_channel_id: str = 'maintenance_channel'
    android_icon: str = 'ic_launcher'
    message_ttl_seconds: int = 86400
    app_name: str = 'NyumbaSmart Maintenance'
    web_icon: str = '/icon.png'
    web_click_route: str = '/maintenance-tasks'
    web_link: Optional[str] = None
    vibrate_pattern: List[int] = field(default_factory=lambda: [200, 100, 200])
    scheduler_secret: Optional[str] = None

    def __post_init__(self):
        if self.audience not in AUDIENCE_MODES:
            raise ValueError(f"audience must be one of {AUDIENCE_MODES}, got {self.audience!r}")
        if self.delivery_mode not in DELIVERY_MODES:
            raise ValueError(f"delivery_mode must be one of {DELIVERY_MODES}, got {self.delivery_mode!r}")
        if self.retention_days < 1:
            raise ValueError("retention_days must be at least 1")


def get_notification_settings(overrides: Optional[Dict[str, Any]] = None) -> NotificationSettings:
    """
    Build NotificationSettings from the "notifications" section of
    app_config.json, then environment variables, then explicit overrides.
    """
    known = NotificationSettings.__dataclass_fields__
    values = {
        key: value
        for key, value in get_app_config().get('notifications', {}).items()
        if key in known
    }

    if os.environ.get('CMMS_TIMEZONE'):
        values['timezone'] = os.environ['CMMS_TIMEZONE']
    if os.environ.get('CMMS_AUDIENCE'):
        values['audience'] = os.environ['CMMS_AUDIENCE']
    if os.environ.get('CMMS_DELIVERY_MODE'):
        values['delivery_mode'] = os.environ['CMMS_DELIVERY_MODE']
    if os.environ.get('CMMS_RETENTION_DAYS'):
        values['retention_days'] = int(os.environ['CMMS_RETENTION_DAYS'])
    values['email_enabled'] = _env_bool('CMMS_EMAIL_ENABLED', values.get('email_enabled', False))
    values['claim_before_send'] = _env_bool('CMMS_CLAIM_BEFORE_SEND', values.get('claim_before_send', True))
    if os.environ.get('SCHEDULER_SECRET'):
        values['scheduler_secret'] = os.environ['SCHEDULER_SECRET']

    if overrides:
        values.update(overrides)

    return NotificationSettings(**values)
