"""Recipient router: final To / Cc for an AI reply under layered policy.

Routing is an ordered tuple of step functions over an immutable
``RecipientDraft``.  Each step either returns the draft untouched or a new
one, so a new policy slots in between two existing steps without reordering
them:

1. ``apply_ai_override`` -- authoritative AI recipient list, if allowed
2. ``apply_default_recipients`` -- reply-all minus our own mailbox
3. ``apply_sender_directives`` -- ``send_to_only`` / ``add_recipient``
4. ``finalize_recipients`` -- validate, dedupe, keep Cc disjoint from To
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace

import structlog

from mailreply.domain.types import DirectiveKind
from mailreply.email.models import InboundMessage
from mailreply.llm.models import AiReply
from mailreply.routing.addresses import dedupe, is_valid_address, same_address, valid_addresses
from mailreply.routing.models import RoutingDecision, RoutingPolicy

logger = structlog.get_logger()


@dataclass(frozen=True)
class RoutingContext:
    """Everything a routing step may consult."""

    original: InboundMessage
    ai_reply: AiReply
    self_address: str
    policy: RoutingPolicy


@dataclass(frozen=True)
class RecipientDraft:
    """Recipients as they stand between two routing steps."""

    to: tuple[str, ...] = ()
    cc: tuple[str, ...] = ()
    overridden: bool = False


RoutingStep = Callable[[RecipientDraft, RoutingContext], RecipientDraft]


def apply_ai_override(draft: RecipientDraft, ctx: RoutingContext) -> RecipientDraft:
    """Use the AI's recipient list verbatim when policy and the reply allow it.

    Only syntax is checked here; the domain allowlist is not
    applied to AI-chosen recipients.
    """
    reply = ctx.ai_reply
    if not (ctx.policy.allow_ai_recipients and reply.overrides_recipients):
        return draft

    to = valid_addresses(reply.recipients)
    if not to:
        return draft

    logger.info("routing_ai_override", to=to, cc=list(reply.cc))
    return RecipientDraft(to=tuple(to), cc=tuple(valid_addresses(reply.cc)), overridden=True)


def apply_default_recipients(draft: RecipientDraft, ctx: RoutingContext) -> RecipientDraft:
    """Reply to the sender and every original To address except ourselves.

    Original Cc is kept.  With AI recipients allowed, AI suggestions are
    appended even without the override flag.
    """
    if draft.overridden:
        return draft

    original = ctx.original
    to = [original.from_email]
    to.extend(a for a in original.to if not same_address(a, ctx.self_address))
    cc = list(original.cc)

    if ctx.policy.allow_ai_recipients:
        to.extend(valid_addresses(ctx.ai_reply.recipients))
        cc.extend(valid_addresses(ctx.ai_reply.cc))

    return replace(draft, to=tuple(to), cc=tuple(cc))


def apply_sender_directives(draft: RecipientDraft, ctx: RoutingContext) -> RecipientDraft:
    """Honor routing directives the sender put in the original message."""
    only = ctx.original.get_directive(DirectiveKind.SEND_TO_ONLY)
    if only is not None and only.address and is_valid_address(only.address):
        draft = replace(draft, to=(only.address,), cc=())

    add = ctx.original.get_directive(DirectiveKind.ADD_RECIPIENT)
    if add is not None and add.address and is_valid_address(add.address):
        draft = replace(draft, cc=(*draft.cc, add.address))

    return draft


def finalize_recipients(draft: RecipientDraft, ctx: RoutingContext) -> RecipientDraft:
    """Drop invalid addresses and our own mailbox, dedupe, To wins over Cc."""
    exclude = [ctx.self_address] if ctx.self_address else []
    to = dedupe(valid_addresses(draft.to), exclude=exclude)
    cc = dedupe(valid_addresses(draft.cc), exclude=[*exclude, *to])
    return replace(draft, to=tuple(to), cc=tuple(cc))


ROUTING_STEPS: tuple[RoutingStep, ...] = (
    apply_ai_override,
    apply_default_recipients,
    apply_sender_directives,
    finalize_recipients,
)


def route(
    original: InboundMessage,
    ai_reply: AiReply,
    self_address: str,
    policy: RoutingPolicy,
    steps: tuple[RoutingStep, ...] = ROUTING_STEPS,
) -> RoutingDecision:
    """Compute the final recipients of the reply to *original*.

    Args:
        original: The inbound message being answered.
        ai_reply: The parsed AI reply.
        self_address: Our own mailbox address.
        policy: Routing policy switches.
        steps: Routing steps in order.  Defaults to ``ROUTING_STEPS``.

    Returns:
        A ``RoutingDecision`` with deduplicated, disjoint To and Cc.
    """
    ctx = RoutingContext(
        original=original, ai_reply=ai_reply, self_address=self_address, policy=policy
    )
    draft = RecipientDraft()
    for step in steps:
        draft = step(draft, ctx)

    decision = RoutingDecision(to=draft.to, cc=draft.cc)
    logger.debug(
        "recipients_routed",
        message_id=original.message_id,
        to=list(decision.to),
        cc=list(decision.cc),
        ai_override=draft.overridden,
    )
    return decision
