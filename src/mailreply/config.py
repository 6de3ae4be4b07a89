"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces credential presence in production mode.

IMPORTANT: This module has ZERO imports from the ``mailreply`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

import structlog
from pydantic import SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = structlog.get_logger()

AddressList = Annotated[list[str], NoDecode]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    Variable names match the deployed environment (``EMAIL_*`` for outbound
    SMTP, ``IMAP_*`` for the mailbox).  List-valued settings accept a
    comma-separated string.  ``SecretStr`` fields prevent accidental leaks
    in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    debug: bool = True
    agent_email: str = ""

    # -- Outbound SMTP ---------------------------------------------------------
    email_host: str = ""
    email_port: int = 587
    email_username: str = ""
    email_password: SecretStr = SecretStr("")
    email_encryption: Literal["ssl", "tls", "none"] = "tls"
    email_from_name: str = "Ai.Z"

    # -- IMAP mailbox ----------------------------------------------------------
    imap_host: str = ""
    imap_port: int = 993
    imap_username: str = ""
    imap_password: SecretStr = SecretStr("")
    imap_encryption: Literal["ssl", "tls", "none"] = "ssl"
    imap_mailbox: str = "INBOX"

    # -- LLM / Anthropic -------------------------------------------------------
    anthropic_api_key: SecretStr = SecretStr("")
    ai_model: str = "claude-sonnet-4-5-20250929"
    ai_max_tokens: int = 7000
    ai_temperature: float = 0.7
    default_prompt: str = ""

    # -- Sender / recipient policy ---------------------------------------------
    allowed_domains: AddressList = []
    blocked_recipients: AddressList = []
    blocked_senders: AddressList = []
    reply_allowlist: AddressList = []
    max_recipients: int = 10
    ignore_cc_emails: bool = False
    allow_ai_recipients: bool = False
    ai_recipient_instructions: bool = False
    honor_sender_directives: bool = False
    include_custom_prompt: bool = False

    # -- Reply content ---------------------------------------------------------
    include_thread_emails: bool = False
    signature_truncation: bool = False

    # -- Rate limiting ---------------------------------------------------------
    daily_request_limit: int = 10
    request_history_file: Path = Path("data/request_history.json")
    request_history_backend: Literal["json", "sqlite"] = "json"

    # -- Pacing ----------------------------------------------------------------
    mark_read_retry_delay: float = 1.0
    message_pause_seconds: float = 1.0

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    @field_validator(
        "allowed_domains",
        "blocked_recipients",
        "blocked_senders",
        "reply_allowlist",
        mode="before",
    )
    @classmethod
    def split_comma_separated(cls, value: Any) -> Any:
        """Accept ``a,b , c`` as well as a real list; drop blank entries."""
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    @property
    def self_address(self) -> str:
        """The system's own mailbox address, used for CC-only and routing checks."""
        return self.agent_email or self.email_username


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In **production** mode (``settings.production is True``), the application
    exits with a clear error block if any required credential is missing.

    In **development** mode, each missing credential is logged as a warning
    but the application continues to start.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.imap_host or not settings.imap_username:
        errors.append("IMAP_HOST / IMAP_USERNAME is empty or not set")
    if not settings.imap_password.get_secret_value():
        errors.append("IMAP_PASSWORD is empty or not set")

    if not settings.email_host or not settings.email_username:
        errors.append("EMAIL_HOST / EMAIL_USERNAME is empty or not set")
    if not settings.email_password.get_secret_value():
        errors.append("EMAIL_PASSWORD is empty or not set")

    if not settings.anthropic_api_key.get_secret_value():
        errors.append("ANTHROPIC_API_KEY is empty or not set")

    # An empty allowlist drops every message at the domain gate.
    if not settings.allowed_domains:
        errors.append("ALLOWED_DOMAINS is empty; every message would be dropped")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
