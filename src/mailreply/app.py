"""Application entry point for one batch run over the mailbox.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting when ``SENTRY_DSN`` is set
- **Rate limiter** history store (JSON file or SQLite)
- **Mail store**, **SMTP transport**, and **Anthropic client** for the
  processing pipeline

Usage::

    python -m mailreply --env-file /etc/mailreply/.env
    mailreply --production
"""

from __future__ import annotations

import argparse
import logging
from typing import Any

import structlog

from mailreply.config import Settings, get_settings, validate_credentials
from mailreply.domain.errors import MailStoreConnectionError
from mailreply.email.client import ImapMailStore, MailStore
from mailreply.email.normalizer import ContentNormalizer
from mailreply.email.transport import SmtpTransport
from mailreply.llm.client import get_anthropic_client
from mailreply.observability.sentry import SERVICE_NAME, get_sentry_processor, init_sentry
from mailreply.pipeline.models import BatchSummary
from mailreply.pipeline.processor import MessageProcessor
from mailreply.ratelimit.limiter import RateLimiter
from mailreply.ratelimit.schema import init_history_db
from mailreply.ratelimit.store import HistoryStore, JsonHistoryStore, SqliteHistoryStore

logger = structlog.get_logger()


def configure_logging(
    production: bool = False, debug: bool = True, sentry_enabled: bool = False
) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode: JSON rendering at INFO level.  Development mode: colored
    console rendering at DEBUG level, or INFO when *debug* is off.

    Args:
        production: Enable production mode if ``True``.
        debug: Emit DEBUG events in development mode.
        sentry_enabled: Forward ERROR events to Sentry.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def build_history_store(settings: Settings) -> tuple[HistoryStore, Any]:
    """Create the configured request-history store.

    Returns:
        The store and, for the SQLite backend, its open connection (``None``
        for the JSON file backend) so the caller can close it.
    """
    if settings.request_history_backend == "sqlite":
        conn = init_history_db(settings.request_history_file)
        return SqliteHistoryStore(conn), conn
    return JsonHistoryStore(settings.request_history_file), None


def initialize_services(settings: Settings, mail_store: MailStore) -> dict[str, Any]:
    """Set up the shared services for one batch run.

    Args:
        settings: Application settings.
        mail_store: An open mailbox.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    services: dict[str, Any] = {"mail_store": mail_store}

    history_store, history_conn = build_history_store(settings)
    services["history_store"] = history_store
    services["history_conn"] = history_conn
    services["rate_limiter"] = RateLimiter(history_store, settings.daily_request_limit)
    logger.info(
        "rate_limiter_initialized",
        backend=settings.request_history_backend,
        path=str(settings.request_history_file),
        daily_limit=settings.daily_request_limit,
    )

    services["transport"] = SmtpTransport(
        host=settings.email_host,
        port=settings.email_port,
        username=settings.email_username,
        password=settings.email_password.get_secret_value(),
        encryption=settings.email_encryption,
        from_name=settings.email_from_name,
    )
    services["ai_client"] = get_anthropic_client(settings.anthropic_api_key.get_secret_value())
    services["normalizer"] = ContentNormalizer(truncate_signatures=settings.signature_truncation)

    services["processor"] = MessageProcessor(
        settings=settings,
        mail_store=mail_store,
        transport=services["transport"],
        ai_client=services["ai_client"],
        rate_limiter=services["rate_limiter"],
        normalizer=services["normalizer"],
    )
    return services


def run(settings: Settings) -> BatchSummary:
    """Open the mailbox, process every unseen message, close everything.

    Raises:
        MailStoreConnectionError: If the mailbox cannot be opened or listed.
    """
    mail_store = ImapMailStore(
        host=settings.imap_host,
        port=settings.imap_port,
        username=settings.imap_username,
        password=settings.imap_password.get_secret_value(),
        encryption=settings.imap_encryption,
        mailbox=settings.imap_mailbox,
    )
    with mail_store:
        services = initialize_services(settings, mail_store)
        try:
            return services["processor"].run_batch()
        finally:
            history_conn = services.get("history_conn")
            if history_conn is not None:
                history_conn.close()
                logger.info("request_history_closed")


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(
        description="Answer unseen mailbox messages with AI-written replies"
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Read settings from this .env file instead of ./.env",
    )
    parser.add_argument(
        "--production",
        action="store_true",
        help="Force production mode (JSON logs, strict credential check)",
    )
    return parser


def load_settings(env_file: str | None = None, production: bool = False) -> Settings:
    """Load settings, optionally from an explicit env file."""
    settings = Settings(_env_file=env_file) if env_file else get_settings()  # type: ignore[call-arg]
    if production and not settings.production:
        settings = settings.model_copy(update={"production": True})
    return settings


def main(argv: list[str] | None = None) -> int:
    """Main entry point: one batch run.

    1. Load settings and configure Sentry and logging
    2. Validate credentials (exits in production when any are missing)
    3. Process the unseen messages

    Returns:
        Process exit status: ``0`` after a completed batch, ``1`` when the
        mailbox cannot be reached.
    """
    args = build_parser().parse_args(argv)
    settings = load_settings(args.env_file, args.production)

    sentry_enabled = init_sentry(settings.sentry_dsn, production=settings.production)
    configure_logging(
        production=settings.production, debug=settings.debug, sentry_enabled=sentry_enabled
    )
    logger.info("application_starting", production=settings.production)

    validate_credentials(settings)

    try:
        summary = run(settings)
    except MailStoreConnectionError as exc:
        logger.error("mailbox_unavailable", host=exc.host, reason=exc.reason)
        return 1

    logger.info("application_finished", **summary.model_dump())
    return 0
