"""Pydantic v2 models for the email domain.

Provides frozen (immutable) models for inbound mailbox messages and outbound
replies.  Enrichment steps (thread bodies, sender directives) never mutate an
``InboundMessage``; they produce a new copy via ``model_copy(update=...)``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from mailreply.domain.types import DirectiveKind
from mailreply.llm.models import Directive


class InboundMessage(BaseModel):
    """A message fetched from the mailbox.

    ``message_id`` is the persistent RFC 2822 ``Message-ID`` header and is
    used as the thread key and for mark-read / delete lookups.  ``body`` is
    the raw body text (for multipart mail, the undecoded MIME body) and is
    normalized only when the prompt is built.
    """

    model_config = ConfigDict(frozen=True)

    message_id: str
    subject: str = ""
    body: str = ""
    html_body: str = ""
    from_email: str
    from_name: str = ""
    to: tuple[str, ...] = ()
    cc: tuple[str, ...] = ()
    reply_to: tuple[str, ...] = ()
    in_reply_to: str | None = None
    references: str | None = None
    date: str = ""
    thread_bodies: tuple[str, ...] = ()  # oldest first
    custom_prompt: str | None = None
    special_directives: tuple[Directive, ...] = ()

    @property
    def all_recipients(self) -> list[str]:
        """To followed by Cc, duplicates kept."""
        return [*self.to, *self.cc]

    @property
    def reference_ids(self) -> list[str]:
        """The References chain split into non-empty identifiers."""
        if not self.references:
            return []
        return [ref.strip() for ref in self.references.split() if ref.strip()]

    def get_directive(self, kind: DirectiveKind) -> Directive | None:
        """Return the first sender directive of *kind*, if any."""
        for directive in self.special_directives:
            if directive.kind == kind:
                return directive
        return None


class OutboundEmail(BaseModel):
    """An outbound reply or notification handed to the transport.

    When ``in_reply_to`` and ``references`` are provided the email is
    threaded as a reply.  ``references`` is the original References chain
    with the original Message-ID appended.
    """

    model_config = ConfigDict(frozen=True)

    to: tuple[str, ...]
    cc: tuple[str, ...] = ()
    subject: str
    html_body: str
    text_body: str
    in_reply_to: str | None = None  # RFC 2822 Message-ID to reply to
    references: str | None = None  # Space-separated RFC 2822 Message-IDs
