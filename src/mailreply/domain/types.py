"""Domain enumerations for the mail auto-reply service."""

from enum import StrEnum


class DirectiveKind(StrEnum):
    """Known routing directive kinds.

    Anything the AI (or a sender) emits that is not one of the named kinds
    is kept as ``UNKNOWN`` so the original key and value survive verbatim.
    """

    OVERRIDE_RECIPIENTS = "override_recipients"
    ONLY_TO_THESE_RECIPIENTS = "only_to_these_recipients"
    SEND_TO_ONLY = "send_to_only"
    ADD_RECIPIENT = "add_recipient"
    UNKNOWN = "unknown"


# Directive kinds that flag the AI recipient list as authoritative.
OVERRIDE_KINDS = frozenset(
    {DirectiveKind.OVERRIDE_RECIPIENTS, DirectiveKind.ONLY_TO_THESE_RECIPIENTS}
)


class DropReason(StrEnum):
    """Why a message was dropped by a policy gate."""

    TOO_MANY_RECIPIENTS = "too_many_recipients"
    BLOCKED_RECIPIENT = "blocked_recipient"
    BLOCKED_SENDER = "blocked_sender"
    CC_ONLY = "cc_only"
    SENDER_NOT_ALLOWLISTED = "sender_not_allowlisted"
    DOMAIN_NOT_ALLOWED = "domain_not_allowed"


class ProcessingOutcome(StrEnum):
    """Terminal outcome of processing a single inbound message."""

    REPLIED = "replied"
    DROPPED = "dropped"
    RATE_LIMITED = "rate_limited"
    SEND_FAILED = "send_failed"
    FAILED = "failed"
    SKIPPED = "skipped"
