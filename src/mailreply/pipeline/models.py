"""Pydantic models for the processing pipeline."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict

from mailreply.domain.types import DropReason, ProcessingOutcome


class GatePolicy(BaseModel):
    """Settings consulted by the policy gates.

    Address and domain lists are compared case-insensitively after trimming.
    """

    model_config = ConfigDict(frozen=True)

    self_address: str
    max_recipients: int = 10
    blocked_recipients: tuple[str, ...] = ()
    blocked_senders: tuple[str, ...] = ()
    ignore_cc_emails: bool = False
    reply_allowlist: tuple[str, ...] = ()
    allowed_domains: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: Any) -> GatePolicy:
        return cls(
            self_address=settings.self_address,
            max_recipients=settings.max_recipients,
            blocked_recipients=tuple(settings.blocked_recipients),
            blocked_senders=tuple(settings.blocked_senders),
            ignore_cc_emails=settings.ignore_cc_emails,
            reply_allowlist=tuple(settings.reply_allowlist),
            allowed_domains=tuple(settings.allowed_domains),
        )


class MessageResult(BaseModel):
    """How one message left the pipeline."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    sender: str = ""
    outcome: ProcessingOutcome
    reason: DropReason | None = None
    detail: str | None = None


class BatchSummary(BaseModel):
    """Outcome counts for one batch run."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    replied: int = 0
    dropped: int = 0
    rate_limited: int = 0
    send_failed: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def from_results(cls, results: Iterable[MessageResult]) -> BatchSummary:
        counts = Counter(result.outcome for result in results)
        return cls(
            total=sum(counts.values()),
            **{outcome.value: counts.get(outcome, 0) for outcome in ProcessingOutcome},
        )
