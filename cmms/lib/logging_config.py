#!/usr/bin/env python3
"""
Logging setup shared by the Cloud Functions entry points, the Flask app and
the local scripts.
"""

import logging
import os
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that are chatty at INFO inside Cloud Functions
NOISY_LOGGERS = ('google.auth', 'google.api_core', 'urllib3', 'grpc')

LEVELS = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


def get_log_level_from_env() -> int:
    """
    Read LOG_LEVEL from the environment.

    Returns:
        int: Logging level constant, logging.INFO when unset or invalid
    """
    raw_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
    log_level = LEVELS.get(raw_level)

    if log_level is None:
        logging.getLogger(__name__).warning(
            f"Invalid LOG_LEVEL value '{os.environ.get('LOG_LEVEL')}'. "
            f"Valid values are: {', '.join(LEVELS)}. Defaulting to INFO."
        )
        return logging.INFO

    return log_level


def setup_logging(force: bool = False) -> None:
    """
    Configure the root logger with a single stderr handler.

    Idempotent: when the root logger already has handlers (for example the
    Cloud Functions runtime installed its own) only the level is updated.

    Args:
        force: Drop existing handlers and reconfigure from scratch.
    """
    root_logger = logging.getLogger()
    log_level = get_log_level_from_env()

    if root_logger.handlers and not force:
        root_logger.setLevel(log_level)
        return

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logging.getLogger(__name__).debug(
        f"Logging configured with level: {logging.getLevelName(log_level)}"
    )
