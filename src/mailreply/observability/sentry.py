"""Sentry error reporting for batch runs.

Provides:
- ``init_sentry(dsn, production)``: Initialize the SDK.  No-op when *dsn* is
  empty.
- ``get_sentry_processor()``: structlog processor that turns ERROR events
  (failed sends, unreadable mailboxes, processing failures) into Sentry
  events.
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

SERVICE_NAME = "ai-mail-reply"


def init_sentry(dsn: str, production: bool = False) -> bool:
    """Initialize Sentry for this process.

    Message bodies and addresses are personal data, so PII sending stays
    off and tracing is disabled for the short-lived batch process.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        production: Selects the ``production`` / ``development`` environment.

    Returns:
        ``True`` if the SDK was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment="production" if production else "development",
        traces_sample_rate=0.0,
        send_default_pii=False,
        integrations=[
            # structlog-sentry does the event capture; keep the stdlib
            # logging integration from reporting the same error twice.
            LoggingIntegration(event_level=None, level=None),
        ],
    )
    sentry_sdk.set_tag("service", SERVICE_NAME)
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Place it after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
