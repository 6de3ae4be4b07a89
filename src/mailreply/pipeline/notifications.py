"""Best-effort notices sent back to the sender.

A notice that cannot be delivered is logged and dropped; it never raises
into the pipeline.
"""

from __future__ import annotations

import structlog

from mailreply.email.formatter import build_notification
from mailreply.email.transport import Transport

logger = structlog.get_logger()

LIMIT_EXCEEDED_SUBJECT = "Günlük istek limitine ulaşıldı"
LIMIT_EXCEEDED_BODY = """\
Merhaba,

Günlük istek limitine ulaştınız. Lütfen 24 saat sonra tekrar deneyin.

Saygılarımızla,
{signature}"""

SEND_FAILED_SUBJECT = "E-posta yanıtı gönderilemedi"
SEND_FAILED_BODY = """\
Merhaba,

E-postanıza yanıt gönderilirken bir hata oluştu. Lütfen daha sonra tekrar deneyin \
veya sistem yöneticisiyle iletişime geçin.

Saygılarımızla,
{signature}"""

PROCESSING_FAILED_SUBJECT = "E-posta işlenirken hata oluştu"
PROCESSING_FAILED_BODY = """\
Merhaba,

E-postanız işlenirken bir hata oluştu. Lütfen daha sonra tekrar deneyin veya \
sistem yöneticisiyle iletişime geçin.

Hata: {detail}

Saygılarımızla,
{signature}"""


class Notifier:
    """Send limit / failure notices to senders.

    Args:
        transport: Outbound transport.
        signature: Name the notices are signed with.
    """

    def __init__(self, transport: Transport, signature: str) -> None:
        self._transport = transport
        self._signature = signature

    def notify(self, to: str, subject: str, message: str) -> bool:
        try:
            sent = self._transport.send(build_notification(to, subject, message))
        except Exception:
            logger.error("notification_failed", to=to, subject=subject, exc_info=True)
            return False
        if sent:
            logger.info("notification_sent", to=to, subject=subject)
        else:
            logger.error("notification_failed", to=to, subject=subject)
        return sent

    def limit_exceeded(self, to: str) -> bool:
        return self.notify(
            to, LIMIT_EXCEEDED_SUBJECT, LIMIT_EXCEEDED_BODY.format(signature=self._signature)
        )

    def send_failed(self, to: str) -> bool:
        return self.notify(
            to, SEND_FAILED_SUBJECT, SEND_FAILED_BODY.format(signature=self._signature)
        )

    def processing_failed(self, to: str, detail: str) -> bool:
        return self.notify(
            to,
            PROCESSING_FAILED_SUBJECT,
            PROCESSING_FAILED_BODY.format(detail=detail, signature=self._signature),
        )
