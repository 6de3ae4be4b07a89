"""Per-message processing: gates, rate limit, AI reply, routing, send.

Every fetched message walks the same state machine:

1. mark read (one retry, never fatal)
2. policy gates -- the first failing gate deletes the message, silently
3. rate limit -- a rejected sender gets a limit notice, the message stays
4. normalize, attach sender directives and thread history, build the prompt
5. AI call and reply parsing
6. recipient routing and reply formatting
7. send -- success deletes the original, failure notifies the sender

An unexpected error in steps 3-7 notifies the sender with the error text.
Provider and transport failures get a generic notice.  Nothing in a single
message can abort the batch; only the initial unseen-message listing is
fatal.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import structlog
from anthropic import Anthropic

from mailreply.config import Settings
from mailreply.domain.errors import AiProviderError
from mailreply.domain.types import ProcessingOutcome
from mailreply.email.client import MailStore
from mailreply.email.formatter import build_reply
from mailreply.email.models import InboundMessage
from mailreply.email.normalizer import ContentNormalizer
from mailreply.email.parser import extract_sender_directives
from mailreply.email.threading import ThreadAssembler
from mailreply.email.transport import Transport
from mailreply.llm.composer import build_request, generate_reply
from mailreply.llm.directives import parse_ai_reply
from mailreply.pipeline.gates import first_drop_reason
from mailreply.pipeline.models import BatchSummary, GatePolicy, MessageResult
from mailreply.pipeline.notifications import Notifier
from mailreply.ratelimit.limiter import RateLimiter
from mailreply.resilience.retry import best_effort_retry
from mailreply.routing.models import RoutingPolicy
from mailreply.routing.router import route

logger = structlog.get_logger()


class MessageProcessor:
    """Drive inbound messages through the reply pipeline.

    Args:
        settings: Application settings.
        mail_store: Mailbox the messages come from.
        transport: Outbound mail transport (replies and notices).
        ai_client: Anthropic client used for reply generation.
        rate_limiter: Per-sender rolling-window limiter.
        normalizer: Content normalizer.  Built from settings when omitted.
        sleep: Pause function between messages; injectable for tests.
    """

    def __init__(
        self,
        settings: Settings,
        mail_store: MailStore,
        transport: Transport,
        ai_client: Anthropic,
        rate_limiter: RateLimiter,
        normalizer: ContentNormalizer | None = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self._settings = settings
        self._mail_store = mail_store
        self._transport = transport
        self._ai_client = ai_client
        self._rate_limiter = rate_limiter
        self._normalizer = normalizer or ContentNormalizer(
            truncate_signatures=settings.signature_truncation
        )
        self._sleep = sleep

        self._gate_policy = GatePolicy.from_settings(settings)
        self._routing_policy = RoutingPolicy(allow_ai_recipients=settings.allow_ai_recipients)
        self._threads = ThreadAssembler(mail_store, self._normalizer)
        self._notifier = Notifier(transport, settings.email_from_name)
        self._mark_read = best_effort_retry(
            "mark_read", wait_seconds=settings.mark_read_retry_delay
        )(mail_store.mark_read)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def run_batch(self) -> BatchSummary:
        """Process every unseen message once.

        Raises:
            MailStoreConnectionError: If the unseen messages cannot be listed.
        """
        identifiers = self._mail_store.list_unseen()
        logger.info("unseen_messages_found", count=len(identifiers))

        results: list[MessageResult] = []
        for index, identifier in enumerate(identifiers):
            if index and self._settings.message_pause_seconds > 0:
                self._sleep(self._settings.message_pause_seconds)
            results.append(self._process_identifier(identifier))

        summary = BatchSummary.from_results(results)
        logger.info("batch_finished", **summary.model_dump())
        return summary

    def _process_identifier(self, identifier: str) -> MessageResult:
        try:
            message = self._mail_store.fetch(identifier)
            if message is None:
                logger.info("message_skipped", identifier=identifier)
                return MessageResult(message_id=identifier, outcome=ProcessingOutcome.SKIPPED)
            return self.process(message)
        except Exception as exc:
            logger.error("message_processing_crashed", identifier=identifier, exc_info=True)
            return MessageResult(
                message_id=identifier, outcome=ProcessingOutcome.FAILED, detail=str(exc)
            )

    # ------------------------------------------------------------------
    # Single message
    # ------------------------------------------------------------------

    def process(self, message: InboundMessage) -> MessageResult:
        """Run one message through the pipeline and report how it ended."""
        log = logger.bind(message_id=message.message_id, sender=message.from_email)
        log.info("message_processing_started", subject=message.subject)

        self._mark_read(message.message_id)

        reason = first_drop_reason(message, self._gate_policy)
        if reason is not None:
            log.info("message_dropped", reason=reason.value)
            self._mail_store.delete(message.message_id)
            return self._result(message, ProcessingOutcome.DROPPED, reason=reason)

        try:
            return self._reply(message, log)
        except AiProviderError as exc:
            log.error("ai_reply_failed", error=str(exc))
            self._notifier.send_failed(message.from_email)
            return self._result(message, ProcessingOutcome.FAILED, detail=str(exc))
        except Exception as exc:
            log.error("message_processing_failed", exc_info=True)
            self._notifier.processing_failed(message.from_email, str(exc))
            return self._result(message, ProcessingOutcome.FAILED, detail=str(exc))

    def _reply(self, message: InboundMessage, log: Any) -> MessageResult:
        settings = self._settings

        decision = self._rate_limiter.record_if_allowed(message.from_email)
        if not decision.accepted:
            self._notifier.limit_exceeded(message.from_email)
            return self._result(
                message,
                ProcessingOutcome.RATE_LIMITED,
                detail=f"{decision.count}/{decision.limit}",
            )

        message = extract_sender_directives(
            message,
            self._normalizer,
            honor_directives=settings.honor_sender_directives,
            include_custom_prompt=settings.include_custom_prompt,
        )
        message = self._threads.enrich(message)
        clean_body = self._normalizer.normalize(message.body)

        request = build_request(
            message,
            clean_body,
            system_prompt=settings.default_prompt,
            include_recipient_instruction=(
                settings.allow_ai_recipients and settings.ai_recipient_instructions
            ),
            model=settings.ai_model,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature,
        )
        ai_reply = parse_ai_reply(generate_reply(request, self._ai_client))

        recipients = route(message, ai_reply, settings.self_address, self._routing_policy)
        if not recipients.to:
            log.error("reply_has_no_recipients")
            self._notifier.send_failed(message.from_email)
            return self._result(
                message, ProcessingOutcome.SEND_FAILED, detail="no valid recipients"
            )

        outbound = build_reply(
            message, ai_reply.content, recipients, include_thread=settings.include_thread_emails
        )
        if not self._transport.send(outbound):
            self._notifier.send_failed(message.from_email)
            return self._result(message, ProcessingOutcome.SEND_FAILED)

        self._mail_store.delete(message.message_id)
        log.info("message_replied", to=list(recipients.to), cc=list(recipients.cc))
        return self._result(message, ProcessingOutcome.REPLIED)

    @staticmethod
    def _result(message: InboundMessage, outcome: ProcessingOutcome, **kwargs: Any) -> MessageResult:
        return MessageResult(
            message_id=message.message_id, sender=message.from_email, outcome=outcome, **kwargs
        )
