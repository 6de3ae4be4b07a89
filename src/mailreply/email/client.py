"""IMAP mailbox client for listing, fetching, flagging, and deleting mail.

Provides the ``MailStore`` protocol the pipeline depends on and
``ImapMailStore``, its ``imaplib`` implementation.  Messages are listed and
fetched by UID, but every mark-read / delete / thread lookup goes through the
persistent ``Message-ID`` header: the mailbox is scanned and the header
compared, so no sequence number is ever cached across reconnects.
"""

from __future__ import annotations

import imaplib
import re
from email import message_from_bytes
from types import TracebackType
from typing import Any, Protocol

import structlog

from mailreply.domain.errors import MailStoreConnectionError
from mailreply.email.models import InboundMessage
from mailreply.email.parser import parse_raw_message

logger = structlog.get_logger()

_UID_RE = re.compile(rb"\bUID (\d+)")


class MailStore(Protocol):
    """Operations the processing pipeline needs from a mailbox."""

    def list_unseen(self) -> list[str]: ...

    def fetch(self, identifier: str) -> InboundMessage | None: ...

    def fetch_body_by_message_id(self, message_id: str) -> str | None: ...

    def mark_read(self, message_id: str) -> bool: ...

    def delete(self, message_id: str) -> bool: ...


def _literal(data: list[Any]) -> bytes | None:
    """Return the first message literal in an IMAP FETCH response."""
    for item in data:
        if isinstance(item, tuple) and len(item) >= 2 and isinstance(item[1], bytes):
            return item[1]
    return None


class ImapMailStore:
    """``imaplib`` backed mail store.

    Use as a context manager: the connection is opened on enter and closed
    (with a final ``EXPUNGE`` implied by ``CLOSE``) on exit.

    Args:
        host: IMAP server host.
        port: IMAP server port.
        username: Login user.
        password: Login password.
        encryption: ``ssl`` (implicit TLS), ``tls`` (STARTTLS) or ``none``.
        mailbox: Mailbox to select.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        encryption: str = "ssl",
        mailbox: str = "INBOX",
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._encryption = encryption
        self._mailbox = mailbox
        self._conn: imaplib.IMAP4 | None = None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open, authenticate, and select the mailbox.

        Raises:
            MailStoreConnectionError: If any step fails.
        """
        try:
            if self._encryption == "ssl":
                conn: imaplib.IMAP4 = imaplib.IMAP4_SSL(self._host, self._port)
            else:
                conn = imaplib.IMAP4(self._host, self._port)
                if self._encryption == "tls":
                    conn.starttls()
            conn.login(self._username, self._password)
            typ, _ = conn.select(self._mailbox)
            if typ != "OK":
                raise MailStoreConnectionError(self._host, f"cannot select {self._mailbox}")
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MailStoreConnectionError(self._host, str(exc)) from exc

        self._conn = conn
        logger.info("mailbox_opened", host=self._host, mailbox=self._mailbox)

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
            self._conn.logout()
        except (imaplib.IMAP4.error, OSError):
            logger.warning("mailbox_close_failed", host=self._host, exc_info=True)
        finally:
            self._conn = None

    def __enter__(self) -> ImapMailStore:
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def connection(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise MailStoreConnectionError(self._host, "not connected")
        return self._conn

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_unseen(self) -> list[str]:
        """Return the UIDs of all unseen messages.

        Raises:
            MailStoreConnectionError: If the search itself fails.
        """
        try:
            typ, data = self.connection.uid("SEARCH", None, "UNSEEN")
        except (imaplib.IMAP4.error, OSError) as exc:
            raise MailStoreConnectionError(self._host, str(exc)) from exc
        if typ != "OK" or not data or not data[0]:
            return []
        return data[0].decode().split()

    def _fetch_raw(self, uid: str) -> bytes | None:
        # BODY.PEEK leaves \Seen alone; marking read is an explicit step.
        typ, data = self.connection.uid("FETCH", uid, "(BODY.PEEK[])")
        if typ != "OK" or not data:
            return None
        return _literal(data)

    def fetch(self, identifier: str) -> InboundMessage | None:
        """Fetch and parse the message with UID *identifier*.

        A message without a ``Message-ID`` cannot be marked or deleted later,
        so it is flagged ``\\Seen`` here and ``None`` is returned.
        """
        raw = self._fetch_raw(identifier)
        if raw is None:
            logger.warning("message_fetch_empty", uid=identifier)
            return None

        message = parse_raw_message(raw)
        if message is None:
            self.connection.uid("STORE", identifier, "+FLAGS", "(\\Seen)")
        return message

    def find_uids(self, message_id: str) -> list[str]:
        """Scan the mailbox for UIDs whose ``Message-ID`` equals *message_id*.

        Raises:
            imaplib.IMAP4.error: If the scan fails.  Callers decide whether
                that is a failure or merely an unresolved lookup.
        """
        typ, data = self.connection.uid(
            "FETCH", "1:*", "(UID BODY.PEEK[HEADER.FIELDS (MESSAGE-ID)])"
        )
        if typ != "OK":
            raise imaplib.IMAP4.error(f"Message-ID scan failed: {typ}")
        if not data:
            return []

        matches: list[str] = []
        for item in data:
            if not isinstance(item, tuple) or len(item) < 2:
                continue
            uid_match = _UID_RE.search(item[0])
            if uid_match is None:
                continue
            header_id = str(message_from_bytes(item[1]).get("Message-ID", "")).strip()
            if header_id == message_id.strip():
                matches.append(uid_match.group(1).decode())
        return matches

    def fetch_body_by_message_id(self, message_id: str) -> str | None:
        """Return the raw body of the stored message with *message_id*, if any."""
        try:
            uids = self.find_uids(message_id)
            if not uids:
                return None
            raw = self._fetch_raw(uids[0])
        except (imaplib.IMAP4.error, OSError):
            logger.warning("message_id_scan_failed", message_id=message_id, exc_info=True)
            return None
        if raw is None:
            return None
        message = parse_raw_message(raw)
        return message.body if message is not None else None

    # ------------------------------------------------------------------
    # Writes (idempotent)
    # ------------------------------------------------------------------

    def mark_read(self, message_id: str) -> bool:
        """Flag the message ``\\Seen``.  A message that is already gone counts as done."""
        try:
            uids = self.find_uids(message_id)
            for uid in uids:
                self.connection.uid("STORE", uid, "+FLAGS", "(\\Seen)")
        except (imaplib.IMAP4.error, OSError):
            logger.warning("mark_read_failed", message_id=message_id, exc_info=True)
            return False

        if uids:
            logger.info("message_marked_read", message_id=message_id)
        return True

    def delete(self, message_id: str) -> bool:
        """Flag the message ``\\Deleted`` and expunge.  Returns False if not found."""
        try:
            uids = self.find_uids(message_id)
            if not uids:
                logger.warning("delete_target_not_found", message_id=message_id)
                return False
            for uid in uids:
                self.connection.uid("STORE", uid, "+FLAGS", "(\\Deleted)")
            self.connection.expunge()
        except (imaplib.IMAP4.error, OSError):
            logger.error("message_delete_failed", message_id=message_id, exc_info=True)
            return False

        logger.info("message_deleted", message_id=message_id)
        return True
