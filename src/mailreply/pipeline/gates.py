"""Policy gates run before any AI work is done.

Each gate is a pure function returning the ``DropReason`` that applies, or
``None`` to let the message through.  ``POLICY_GATES`` fixes their order;
the first reason found wins.
"""

from __future__ import annotations

from collections.abc import Callable

from mailreply.domain.types import DropReason
from mailreply.email.models import InboundMessage
from mailreply.pipeline.models import GatePolicy
from mailreply.routing.addresses import address_key, contains_address, domain_of

Gate = Callable[[InboundMessage, GatePolicy], DropReason | None]


def check_recipient_count(message: InboundMessage, policy: GatePolicy) -> DropReason | None:
    if len(message.all_recipients) > policy.max_recipients:
        return DropReason.TOO_MANY_RECIPIENTS
    return None


def check_blocked_recipients(message: InboundMessage, policy: GatePolicy) -> DropReason | None:
    if any(contains_address(policy.blocked_recipients, r) for r in message.all_recipients):
        return DropReason.BLOCKED_RECIPIENT
    return None


def check_blocked_sender(message: InboundMessage, policy: GatePolicy) -> DropReason | None:
    if contains_address(policy.blocked_senders, message.from_email):
        return DropReason.BLOCKED_SENDER
    return None


def check_cc_only(message: InboundMessage, policy: GatePolicy) -> DropReason | None:
    """Drop mail where our mailbox is only copied, when configured to."""
    if not policy.ignore_cc_emails or not policy.self_address:
        return None
    if contains_address(message.to, policy.self_address):
        return None
    if contains_address(message.cc, policy.self_address):
        return DropReason.CC_ONLY
    return None


def check_reply_allowlist(message: InboundMessage, policy: GatePolicy) -> DropReason | None:
    """With a non-empty allowlist, only listed senders get a reply."""
    if not policy.reply_allowlist:
        return None
    if contains_address(policy.reply_allowlist, message.from_email):
        return None
    return DropReason.SENDER_NOT_ALLOWLISTED


def check_allowed_domain(message: InboundMessage, policy: GatePolicy) -> DropReason | None:
    allowed = {address_key(d).lstrip("@") for d in policy.allowed_domains}
    if domain_of(message.from_email) in allowed:
        return None
    return DropReason.DOMAIN_NOT_ALLOWED


POLICY_GATES: tuple[Gate, ...] = (
    check_recipient_count,
    check_blocked_recipients,
    check_blocked_sender,
    check_cc_only,
    check_reply_allowlist,
    check_allowed_domain,
)


def first_drop_reason(
    message: InboundMessage,
    policy: GatePolicy,
    gates: tuple[Gate, ...] = POLICY_GATES,
) -> DropReason | None:
    """Run *gates* in order and return the first drop reason, if any."""
    for gate in gates:
        reason = gate(message, policy)
        if reason is not None:
            return reason
    return None
