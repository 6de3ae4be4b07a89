"""Tests for centralized Settings, credential validation, and get_settings cache.

Covers: defaults, env-override, comma-separated lists, production credential
gate, dev-mode warnings, and lru_cache behavior.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from mailreply.config import Settings, get_settings, validate_credentials

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


def _complete(**overrides: object) -> Settings:
    fields: dict[str, object] = {
        "imap_host": "imap.firma.com.tr",
        "imap_username": "asistan@firma.com.tr",
        "imap_password": "imap-secret",
        "email_host": "smtp.firma.com.tr",
        "email_username": "asistan@firma.com.tr",
        "email_password": "smtp-secret",
        "anthropic_api_key": "sk-ant-test",
        "allowed_domains": ["firma.com.tr"],
    }
    fields.update(overrides)
    return Settings(_env_file=None, **fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------


class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.email_port == 587
        assert s.email_encryption == "tls"
        assert s.imap_port == 993
        assert s.imap_encryption == "ssl"
        assert s.email_from_name == "Ai.Z"
        assert s.daily_request_limit == 10
        assert s.max_recipients == 10
        assert s.request_history_file == Path("data/request_history.json")
        assert s.allow_ai_recipients is False
        assert s.allowed_domains == []

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("EMAIL_PORT", "465")
        monkeypatch.setenv("EMAIL_ENCRYPTION", "ssl")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")
        monkeypatch.setenv("DAILY_REQUEST_LIMIT", "25")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.email_port == 465
        assert s.email_encryption == "ssl"
        assert s.anthropic_api_key.get_secret_value() == "sk-ant-env"
        assert s.daily_request_limit == 25

    def test_comma_separated_lists(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ALLOWED_DOMAINS", "firma.com.tr, ortak.com ,")
        monkeypatch.setenv("BLOCKED_SENDERS", "spam@x.com")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.allowed_domains == ["firma.com.tr", "ortak.com"]
        assert s.blocked_senders == ["spam@x.com"]
        assert s.reply_allowlist == []

    def test_env_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("IMAP_HOST=imap.example.com\nMAX_RECIPIENTS=3\n", encoding="utf-8")

        s = Settings(_env_file=env_file)  # type: ignore[call-arg]

        assert s.imap_host == "imap.example.com"
        assert s.max_recipients == 3

    def test_self_address_falls_back_to_smtp_user(self) -> None:
        assert _complete().self_address == "asistan@firma.com.tr"
        assert _complete(agent_email="ai@firma.com.tr").self_address == "ai@firma.com.tr"


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------


class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    def test_validate_credentials_production_missing(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        s = _complete(production=True, anthropic_api_key="")

        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(s)

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "STARTUP FAILED" in err
        assert "ANTHROPIC_API_KEY" in err

    def test_validate_credentials_production_empty_allowlist(self) -> None:
        with pytest.raises(SystemExit):
            validate_credentials(_complete(production=True, allowed_domains=[]))

    def test_validate_credentials_production_complete(self) -> None:
        validate_credentials(_complete(production=True))

    def test_validate_credentials_dev_missing(self) -> None:
        validate_credentials(Settings(_env_file=None))  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------


class TestGetSettingsCache:
    """Verify lru_cache on get_settings."""

    def test_get_settings_returns_same_instance(self) -> None:
        assert get_settings() is get_settings()

    def test_get_settings_cache_clear(self) -> None:
        first = get_settings()
        get_settings.cache_clear()

        assert get_settings() is not first
