#!/usr/bin/env python3
"""
Errors raised by the sweep and cleanup jobs.

Per-recipient delivery problems are logged and counted, never raised. These
exceptions cover the store failures that abort a whole invocation.
"""


class NotificationJobError(Exception):
    """A scheduled job could not read or write the document store."""


class SweepError(NotificationJobError):
    """Querying due groups, claiming a group, or committing the sweep batch failed."""


class CleanupError(NotificationJobError):
    """Querying or deleting expired notification groups failed."""
