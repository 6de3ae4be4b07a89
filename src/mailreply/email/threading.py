"""Thread context assembly and reply header management.

Provides helpers for:
- Resolving a References chain into normalized prior message bodies
- Building RFC 2822 reply headers for threaded replies
"""

from __future__ import annotations

from typing import Protocol

import structlog

from mailreply.email.models import InboundMessage
from mailreply.email.normalizer import ContentNormalizer

logger = structlog.get_logger()


class BodyLookup(Protocol):
    """The slice of the mail store the assembler needs."""

    def fetch_body_by_message_id(self, message_id: str) -> str | None: ...


class ThreadAssembler:
    """Resolve a reference chain into normalized prior bodies.

    Args:
        mail_store: Anything that can look up a stored body by its
            persistent ``Message-ID``.
        normalizer: The run's normalizer variant.
    """

    def __init__(self, mail_store: BodyLookup, normalizer: ContentNormalizer) -> None:
        self._mail_store = mail_store
        self._normalizer = normalizer

    def assemble(self, reference_chain: list[str]) -> list[str]:
        """Return the normalized bodies of every resolvable reference.

        Blank identifiers are ignored and each identifier is looked up once.
        Identifiers that do not resolve, or resolve to an empty body, are
        skipped without error.

        Args:
            reference_chain: Message-IDs in References order (oldest first).

        Returns:
            Normalized bodies in the same order as *reference_chain*.
        """
        bodies: list[str] = []
        seen: set[str] = set()

        for message_id in reference_chain:
            message_id = message_id.strip()
            if not message_id or message_id in seen:
                continue
            seen.add(message_id)

            raw = self._mail_store.fetch_body_by_message_id(message_id)
            if not raw:
                logger.debug("thread_reference_unresolved", message_id=message_id)
                continue

            body = self._normalizer.normalize(raw)
            if body:
                bodies.append(body)

        return bodies

    def enrich(self, message: InboundMessage) -> InboundMessage:
        """Return a copy of *message* with ``thread_bodies`` filled in."""
        if not message.reference_ids:
            return message
        bodies = self.assemble(message.reference_ids)
        logger.info(
            "thread_assembled",
            message_id=message.message_id,
            references=len(message.reference_ids),
            resolved=len(bodies),
        )
        return message.model_copy(update={"thread_bodies": tuple(bodies)})


def build_reply_headers(message: InboundMessage) -> dict[str, str]:
    """Build RFC 2822 reply headers for a reply to *message*.

    The ``Subject`` is prefixed with ``Re: `` only if not already present
    (case-insensitive).  ``References`` is the original chain with the
    original ``Message-ID`` appended.

    Args:
        message: The message being answered.

    Returns:
        A dict of header names to values suitable for setting on an
        ``email.message.EmailMessage``.
    """
    subject = message.subject
    if not subject.lower().startswith("re:"):
        subject = f"Re: {subject}"

    references = " ".join([*message.reference_ids, message.message_id])

    return {
        "In-Reply-To": message.message_id,
        "References": references,
        "Subject": subject,
    }
