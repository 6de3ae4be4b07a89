"""Shared pytest fixtures for the mail auto-reply test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from mailreply.config import Settings
from mailreply.email.models import InboundMessage

AGENT = "asistan@firma.com.tr"


@pytest.fixture
def agent_address() -> str:
    """The service's own mailbox address."""
    return AGENT


@pytest.fixture
def sample_message() -> InboundMessage:
    """A representative inbound message from an allowed domain."""
    return InboundMessage(
        message_id="<msg-001@firma.com.tr>",
        subject="Toplantı hakkında",
        body="Merhaba,\n\nYarınki toplantının gündemini paylaşabilir misiniz?\n",
        from_email="ayse@firma.com.tr",
        from_name="Ayşe Demir",
        to=(AGENT, "mehmet@firma.com.tr"),
        cc=("can@ortak.com",),
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, with pauses disabled."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        agent_email=AGENT,
        email_username=AGENT,
        allowed_domains=["firma.com.tr", "ortak.com"],
        request_history_file=tmp_path / "history.json",
        mark_read_retry_delay=0,
        message_pause_seconds=0,
    )
