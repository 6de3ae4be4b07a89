"""Domain types and errors for the mail auto-reply service."""

from mailreply.domain.errors import (
    AiProviderError,
    MailReplyError,
    MailStoreConnectionError,
)
from mailreply.domain.types import DirectiveKind, DropReason, ProcessingOutcome

__all__ = [
    "AiProviderError",
    "DirectiveKind",
    "DropReason",
    "MailReplyError",
    "MailStoreConnectionError",
    "ProcessingOutcome",
]
