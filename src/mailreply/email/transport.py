"""SMTP transport for outbound replies and notifications."""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Protocol

import structlog

from mailreply.email.models import OutboundEmail

logger = structlog.get_logger()

SMTP_TIMEOUT_SECONDS = 30


class Transport(Protocol):
    """Anything that can deliver an ``OutboundEmail``."""

    def send(self, outbound: OutboundEmail) -> bool: ...


class SmtpTransport:
    """Send mail through an authenticated SMTP server.

    A fresh session is opened per message.  Failures are logged and reported
    as ``False``; nothing is retried here.

    Args:
        host: SMTP server host.
        port: SMTP server port.
        username: Login user, also used as the From and Reply-To address.
        password: Login password.
        encryption: ``ssl`` (implicit TLS), ``tls`` (STARTTLS) or ``none``.
        from_name: Display name for the From header.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        encryption: str = "tls",
        from_name: str = "",
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._encryption = encryption
        self._from_name = from_name

    def build_message(self, outbound: OutboundEmail) -> EmailMessage:
        """Compose a multipart/alternative message from *outbound*."""
        message = EmailMessage()
        message["From"] = formataddr((self._from_name, self._username))
        message["To"] = ", ".join(outbound.to)
        if outbound.cc:
            message["Cc"] = ", ".join(outbound.cc)
        message["Reply-To"] = formataddr((self._from_name, self._username))
        message["Subject"] = outbound.subject
        message["Date"] = formatdate(localtime=True)
        message["Message-ID"] = make_msgid(domain=self._username.rpartition("@")[2] or None)

        if outbound.in_reply_to:
            message["In-Reply-To"] = outbound.in_reply_to
        if outbound.references:
            message["References"] = outbound.references

        message.set_content(outbound.text_body)
        message.add_alternative(outbound.html_body, subtype="html")
        return message

    def _open(self) -> smtplib.SMTP:
        if self._encryption == "ssl":
            return smtplib.SMTP_SSL(self._host, self._port, timeout=SMTP_TIMEOUT_SECONDS)
        return smtplib.SMTP(self._host, self._port, timeout=SMTP_TIMEOUT_SECONDS)

    def send(self, outbound: OutboundEmail) -> bool:
        """Deliver *outbound*.

        STARTTLS runs inside the session block so a failed handshake still
        closes the socket.

        Returns:
            ``True`` once the server accepted the message, ``False`` on any
            SMTP or socket error, or when the message cannot be composed.
        """
        try:
            message = self.build_message(outbound)
            with self._open() as smtp:
                if self._encryption == "tls":
                    smtp.starttls()
                smtp.login(self._username, self._password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError, ValueError):
            logger.error(
                "smtp_send_failed",
                to=list(outbound.to),
                cc=list(outbound.cc),
                subject=outbound.subject,
                exc_info=True,
            )
            return False

        logger.info(
            "smtp_sent",
            to=list(outbound.to),
            cc=list(outbound.cc),
            subject=outbound.subject,
        )
        return True
