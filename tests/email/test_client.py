"""Tests for the IMAP mail store."""

from __future__ import annotations

import imaplib
from email.message import EmailMessage
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from mailreply.domain.errors import MailStoreConnectionError
from mailreply.email.client import ImapMailStore
from mailreply.resilience.retry import best_effort_retry

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

HOST = "imap.firma.com.tr"
MESSAGE_ID = "<b@firma.com.tr>"


def _make_raw(message_id: str | None = MESSAGE_ID, body: str = "Merhaba\n") -> bytes:
    msg = EmailMessage()
    msg["From"] = "ayse@firma.com.tr"
    msg["To"] = "asistan@firma.com.tr"
    msg["Subject"] = "Deneme"
    if message_id:
        msg["Message-ID"] = message_id
    msg.set_content(body)
    return msg.as_bytes()


SCAN_RESPONSE = (
    "OK",
    [
        (b"1 (UID 17 BODY[HEADER.FIELDS (MESSAGE-ID)] {26}", b"Message-ID: <a@firma.com.tr>\r\n\r\n"),
        b")",
        (b"2 (UID 18 BODY[HEADER.FIELDS (MESSAGE-ID)] {26}", b"Message-ID: <b@firma.com.tr>\r\n\r\n"),
        b")",
    ],
)


def _make_store(conn: MagicMock | None = None) -> tuple[ImapMailStore, MagicMock]:
    store = ImapMailStore(HOST, 993, "asistan@firma.com.tr", "secret")
    conn = conn or MagicMock()
    store._conn = conn
    return store, conn


def _uid_router(store_error: bool = False, body: bytes | None = None) -> Any:
    """Fake ``IMAP4.uid`` answering scans, fetches, and flag stores."""

    def fake_uid(command: str, *args: Any) -> Any:
        if command == "FETCH" and args[0] == "1:*":
            return SCAN_RESPONSE
        if command == "FETCH":
            return ("OK", [(b"2 (UID 18 BODY[] {100}", body or _make_raw()), b")"])
        if command == "STORE":
            if store_error:
                raise imaplib.IMAP4.error("STORE failed")
            return ("OK", [b"2 (FLAGS (\\Seen))"])
        return ("OK", [b""])

    return fake_uid


# ---------------------------------------------------------------------------
# Connection lifecycle
# ---------------------------------------------------------------------------


class TestConnect:
    """Opening and closing the mailbox."""

    def test_connect_ssl(self) -> None:
        with patch("mailreply.email.client.imaplib.IMAP4_SSL") as mock_ssl:
            conn = mock_ssl.return_value
            conn.select.return_value = ("OK", [b"3"])
            store = ImapMailStore(HOST, 993, "user", "pw")

            store.connect()

        mock_ssl.assert_called_once_with(HOST, 993)
        conn.login.assert_called_once_with("user", "pw")
        conn.select.assert_called_once_with("INBOX")
        assert store.connection is conn

    def test_connect_starttls(self) -> None:
        with patch("mailreply.email.client.imaplib.IMAP4") as mock_plain:
            conn = mock_plain.return_value
            conn.select.return_value = ("OK", [b"3"])

            ImapMailStore(HOST, 143, "user", "pw", encryption="tls").connect()

        conn.starttls.assert_called_once()

    def test_connect_failure_raises(self) -> None:
        with patch(
            "mailreply.email.client.imaplib.IMAP4_SSL", side_effect=OSError("refused")
        ):
            with pytest.raises(MailStoreConnectionError, match="refused"):
                ImapMailStore(HOST, 993, "user", "pw").connect()

    def test_select_failure_raises(self) -> None:
        with patch("mailreply.email.client.imaplib.IMAP4_SSL") as mock_ssl:
            mock_ssl.return_value.select.return_value = ("NO", [b"no such mailbox"])

            with pytest.raises(MailStoreConnectionError):
                ImapMailStore(HOST, 993, "user", "pw", mailbox="Arşiv").connect()

    def test_connection_requires_connect(self) -> None:
        with pytest.raises(MailStoreConnectionError, match="not connected"):
            _ = ImapMailStore(HOST, 993, "user", "pw").connection

    def test_context_manager_closes(self) -> None:
        with patch("mailreply.email.client.imaplib.IMAP4_SSL") as mock_ssl:
            conn = mock_ssl.return_value
            conn.select.return_value = ("OK", [b"3"])

            with ImapMailStore(HOST, 993, "user", "pw"):
                pass

        conn.close.assert_called_once()
        conn.logout.assert_called_once()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    """Listing, fetching, and Message-ID lookups."""

    def test_list_unseen(self) -> None:
        store, conn = _make_store()
        conn.uid.return_value = ("OK", [b"4 7 9"])

        assert store.list_unseen() == ["4", "7", "9"]
        conn.uid.assert_called_once_with("SEARCH", None, "UNSEEN")

    def test_list_unseen_empty(self) -> None:
        store, conn = _make_store()
        conn.uid.return_value = ("OK", [b""])

        assert store.list_unseen() == []

    def test_list_unseen_failure_is_fatal(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = imaplib.IMAP4.error("connection reset")

        with pytest.raises(MailStoreConnectionError):
            store.list_unseen()

    def test_fetch_parses_message(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router()

        message = store.fetch("18")

        assert message is not None
        assert message.message_id == MESSAGE_ID
        assert message.from_email == "ayse@firma.com.tr"

    def test_fetch_without_message_id_marks_seen(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router(body=_make_raw(message_id=None))

        assert store.fetch("18") is None
        conn.uid.assert_any_call("STORE", "18", "+FLAGS", "(\\Seen)")

    def test_find_uids(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router()

        assert store.find_uids("<b@firma.com.tr>") == ["18"]
        assert store.find_uids("<zzz@firma.com.tr>") == []

    def test_fetch_body_by_message_id(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router(body=_make_raw(body="Önceki mesaj\n"))

        assert store.fetch_body_by_message_id(MESSAGE_ID) == "Önceki mesaj\n"
        assert store.fetch_body_by_message_id("<zzz@firma.com.tr>") is None


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class TestWrites:
    """Mark-read and delete by Message-ID."""

    def test_mark_read_flags_seen(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router()

        assert store.mark_read(MESSAGE_ID) is True
        conn.uid.assert_any_call("STORE", "18", "+FLAGS", "(\\Seen)")

    def test_mark_read_missing_message_is_success(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router()

        assert store.mark_read("<gone@firma.com.tr>") is True
        assert all(call.args[0] != "STORE" for call in conn.uid.call_args_list)

    def test_mark_read_store_error_returns_false(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router(store_error=True)

        assert store.mark_read(MESSAGE_ID) is False

    def test_delete_flags_and_expunges(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router()

        assert store.delete(MESSAGE_ID) is True
        conn.uid.assert_any_call("STORE", "18", "+FLAGS", "(\\Deleted)")
        conn.expunge.assert_called_once()

    def test_delete_missing_message_returns_false(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router()

        assert store.delete("<gone@firma.com.tr>") is False
        conn.expunge.assert_not_called()

    def test_delete_error_returns_false(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _uid_router(store_error=True)

        assert store.delete(MESSAGE_ID) is False


# ---------------------------------------------------------------------------
# Message-ID scan failures
# ---------------------------------------------------------------------------


def _failing_scan(failures: int) -> Any:
    """Fake ``IMAP4.uid`` whose first *failures* Message-ID scans error out."""
    router = _uid_router()
    remaining = [failures]

    def fake_uid(command: str, *args: Any) -> Any:
        if command == "FETCH" and args[0] == "1:*" and remaining[0] > 0:
            remaining[0] -= 1
            raise imaplib.IMAP4.error("connection reset")
        return router(command, *args)

    return fake_uid


class TestScanFailures:
    """A failed Message-ID scan is a failure, not a missing message."""

    def test_find_uids_raises(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _failing_scan(1)

        with pytest.raises(imaplib.IMAP4.error):
            store.find_uids(MESSAGE_ID)

    def test_find_uids_raises_on_no_response(self) -> None:
        store, conn = _make_store()
        conn.uid.return_value = ("NO", [b"scan refused"])

        with pytest.raises(imaplib.IMAP4.error):
            store.find_uids(MESSAGE_ID)

    def test_mark_read_returns_false(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _failing_scan(1)

        assert store.mark_read(MESSAGE_ID) is False

    def test_delete_returns_false_without_expunge(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _failing_scan(1)

        assert store.delete(MESSAGE_ID) is False
        conn.expunge.assert_not_called()

    def test_body_lookup_returns_none(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _failing_scan(1)

        assert store.fetch_body_by_message_id(MESSAGE_ID) is None

    def test_mark_read_retry_recovers(self) -> None:
        store, conn = _make_store()
        conn.uid.side_effect = _failing_scan(1)
        mark_read = best_effort_retry("mark_read", wait_seconds=0)(store.mark_read)

        assert mark_read(MESSAGE_ID) is True
        conn.uid.assert_any_call("STORE", "18", "+FLAGS", "(\\Seen)")
